# authentication.py
import jwt
from rest_framework.authentication import BaseAuthentication
from rest_framework.exceptions import AuthenticationFailed

from .models import User
from .utils import decode_jwt_token


class JWTAuthentication(BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request):
        auth = request.headers.get('Authorization')
        if not auth or not auth.startswith(self.keyword + ' '):
            return None

        token = auth.split(' ', 1)[1]
        try:
            payload = decode_jwt_token(token)
        except jwt.ExpiredSignatureError:
            raise AuthenticationFailed("Token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationFailed("Invalid token")

        try:
            user = User.objects.get(id=payload["user_id"])
        except (User.DoesNotExist, KeyError):
            raise AuthenticationFailed("User not found")

        # one live session per user: an older token stops working on re-login
        if user.current_token_user != token:
            raise AuthenticationFailed("Invalid session token")

        return (user, token)

    def authenticate_header(self, request):
        return self.keyword
