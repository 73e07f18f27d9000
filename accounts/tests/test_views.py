from datetime import timedelta

from django.test import TestCase
from rest_framework.test import APIClient

from accounts.models import Role, User
from accounts.utils import create_jwt_token, decode_jwt_token, start_session
from auctions.models import Bid, Item
from auctions.tests.factories import AdminFactory, BidFactory, ItemFactory, SellerFactory, UserFactory


class JWTAuthenticationTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = UserFactory()

    def get(self, token):
        return self.client.get('/api/notifications/unread-count/', HTTP_AUTHORIZATION=f'Bearer {token}')

    def test_current_session_token_is_accepted(self):
        token = start_session(self.user)

        response = self.get(token)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(decode_jwt_token(token)['user_id'], self.user.pk)

    def test_superseded_token_is_rejected(self):
        old = create_jwt_token({'user_id': self.user.pk}, lifetime=timedelta(minutes=5))
        User.objects.filter(pk=self.user.pk).update(current_token_user=old)
        start_session(self.user)

        response = self.get(old)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response['WWW-Authenticate'], 'Bearer')

    def test_expired_token(self):
        token = create_jwt_token({'user_id': self.user.pk}, lifetime=timedelta(seconds=-1))
        User.objects.filter(pk=self.user.pk).update(current_token_user=token)

        response = self.get(token)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(str(response.data['detail']), 'Token expired')

    def test_garbage_token(self):
        self.assertEqual(self.get('not-a-jwt').status_code, 401)

    def test_missing_header(self):
        self.assertEqual(self.client.get('/api/notifications/unread-count/').status_code, 401)


class AdminUserViewsTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.admin = AdminFactory(name='Root Admin')
        self.client.force_authenticate(user=self.admin)

    def test_only_admins(self):
        self.client.force_authenticate(user=UserFactory())
        self.assertEqual(self.client.get('/api/admin/users/').status_code, 403)

    def test_search_by_name_or_email(self):
        UserFactory(name='Grace Hopper', email='grace@navy.example')
        UserFactory(name='Alan Turing', email='alan@bletchley.example')

        by_name = self.client.get('/api/admin/users/', {'search': 'hopper'})
        by_email = self.client.get('/api/admin/users/', {'search': 'bletchley'})

        self.assertEqual([u['name'] for u in by_name.data['users']], ['Grace Hopper'])
        self.assertEqual([u['name'] for u in by_email.data['users']], ['Alan Turing'])

    def test_user_payload(self):
        response = self.client.get('/api/admin/users/')
        self.assertEqual(set(response.data['users'][0]),
                         {'id', 'name', 'email', 'role', 'is_banned', 'created_at', 'last_login'})

    def test_ban_runs_cleanup(self):
        seller = SellerFactory()
        item = ItemFactory(seller=seller)
        BidFactory(item=item)

        response = self.client.put(f'/api/admin/users/{seller.pk}/ban/')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['user']['is_banned'])
        self.assertEqual(response.data['cleanup']['items_deleted'], 1)
        self.assertFalse(Item.objects.exists())
        self.assertFalse(Bid.objects.exists())

    def test_toggle_back(self):
        user = UserFactory()
        self.client.put(f'/api/admin/users/{user.pk}/ban/')

        response = self.client.put(f'/api/admin/users/{user.pk}/ban/')

        self.assertEqual(response.data['message'], 'User unbanned successfully.')
        self.assertIsNone(response.data['cleanup'])

    def test_cannot_ban_admin(self):
        response = self.client.put(f'/api/admin/users/{AdminFactory().pk}/ban/')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error'], 'Cannot ban admin users.')

    def test_ban_unknown_user(self):
        self.assertEqual(self.client.put('/api/admin/users/9999/ban/').status_code, 404)

    def test_update_role(self):
        user = UserFactory()

        response = self.client.put(f'/api/admin/users/{user.pk}/role/', {'role': 'seller'}, format='json')

        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertEqual(user.role, Role.SELLER)

    def test_update_role_rejects_unknown_role(self):
        user = UserFactory()
        response = self.client.put(f'/api/admin/users/{user.pk}/role/', {'role': 'overlord'}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['code'], 'invalid_choice')
        self.assertIn('role', response.data['errors'])
