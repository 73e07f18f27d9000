import jwt
from datetime import datetime, timezone
from django.conf import settings


def create_jwt_token(payload: dict, lifetime=None) -> str:
    """Sign a JWT carrying ``payload`` with an expiry."""
    lifetime = lifetime or settings.JWT_ACCESS_TOKEN_LIFETIME
    now = datetime.now(timezone.utc)
    payload = dict(payload, exp=now + lifetime, iat=now)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm='HS256')


def decode_jwt_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=['HS256'])


def start_session(user) -> str:
    """Issue a token for ``user`` and make it the only valid session token."""
    token = create_jwt_token({'user_id': user.id})
    user.current_token_user = token
    user.save(update_fields=['current_token_user'])
    return token
