from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.core import mail
from django.test import TestCase
from rest_framework.test import APIClient

from auctions.lifecycle import refresh_status
from auctions.tests.base import FrozenClockMixin
from auctions.tests.factories import NOW, BidFactory, ItemFactory, UserFactory
from notifications.models import Notification
from notifications.tasks import dispatch_auction_result, send_auction_result_task
from notifications.utils import notify_auction_result


class AuctionResultTests(FrozenClockMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.item = ItemFactory(title='Pocket Watch')
        self.loser, self.winner = UserFactory(), UserFactory()
        BidFactory(item=self.item, bidder=self.loser, amount=Decimal('110'))
        BidFactory(item=self.item, bidder=self.winner, amount=Decimal('120'), created_at=NOW + timedelta(minutes=1))
        BidFactory(item=self.item, bidder=self.loser, amount=Decimal('130'), created_at=NOW + timedelta(minutes=2))
        self.top = BidFactory(item=self.item, bidder=self.winner, amount=Decimal('145.5'),
                              created_at=NOW + timedelta(minutes=3))

    def test_every_distinct_bidder_hears_once(self):
        sent = notify_auction_result(self.item, self.top)

        self.assertEqual(sent, 2)
        subjects = {m.to[0]: m.subject for m in mail.outbox}
        self.assertEqual(subjects, {
            self.winner.email: 'You Won! - Pocket Watch',
            self.loser.email: 'Auction Ended - Pocket Watch',
        })
        self.assertIn('Winning Bid: $145.50', mail.outbox[0].body)

        kinds = dict(Notification.objects.values_list('user_id', 'notification_type'))
        self.assertEqual(kinds, {
            self.winner.pk: 'auction_won',
            self.loser.pk: 'auction_lost',
            self.item.seller_id: 'auction_sold',
        })

    def test_one_failed_recipient_does_not_stop_the_rest(self):
        real_send_mail = mail.send_mail

        def flaky_send_mail(subject, body, from_email, recipients, **kwargs):
            if recipients == [self.loser.email]:
                raise ConnectionRefusedError('smtp down')
            return real_send_mail(subject, body, from_email, recipients, **kwargs)

        with mock.patch('notifications.utils.send_mail', side_effect=flaky_send_mail):
            with self.assertLogs('notifications.utils', level='ERROR'):
                sent = notify_auction_result(self.item, self.top)

        self.assertEqual(sent, 1)
        self.assertEqual([m.to for m in mail.outbox], [[self.winner.email]])
        kinds = set(Notification.objects.values_list('user_id', 'notification_type'))
        self.assertIn((self.winner.pk, 'auction_won'), kinds)
        self.assertIn((self.item.seller_id, 'auction_sold'), kinds)

    def test_settlement_sends_results_after_commit(self):
        self.advance(hours=1)

        with self.captureOnCommitCallbacks(execute=True):
            refresh_status(self.item)
            self.assertEqual(len(mail.outbox), 0)

        self.assertEqual(len(mail.outbox), 2)

    def test_task_skips_vanished_item(self):
        with self.assertLogs('notifications.tasks', level='WARNING'):
            self.assertEqual(send_auction_result_task(999999, self.top.pk), 0)
        self.assertEqual(len(mail.outbox), 0)

    def test_task_failure_is_logged_not_raised(self):
        with mock.patch('notifications.tasks.notify_auction_result', side_effect=ConnectionRefusedError):
            with self.assertLogs('notifications.tasks', level='ERROR'):
                self.assertEqual(send_auction_result_task(self.item.pk, self.top.pk), 0)

    def test_broker_failure_is_logged_not_raised(self):
        with mock.patch('notifications.tasks.send_auction_result_task') as task:
            task.delay.side_effect = OSError('broker down')
            with self.assertLogs('notifications.tasks', level='ERROR'):
                dispatch_auction_result(self.item.pk, self.top.pk)


class NotificationViewsTests(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.user = UserFactory()
        self.client.force_authenticate(user=self.user)
        item = ItemFactory(title='Lamp')
        self.first = self.user.send_notification('auction_won', 'You Won! - Lamp', content_object=item)
        self.second = self.user.send_notification('auction_lost', 'Auction Ended - Vase')
        UserFactory().send_notification('auction_won', 'not yours')

    def test_list_only_own(self):
        response = self.client.get('/api/notifications/')
        self.assertEqual(response.data['pagination']['count'], 2)

        won = self.client.get('/api/notifications/', {'type': 'auction_won'})
        self.assertEqual([n['message'] for n in won.data['notifications']], ['You Won! - Lamp'])
        self.assertEqual(won.data['notifications'][0]['item_id'], self.first.object_id)

    def test_mark_one_then_all(self):
        response = self.client.post(f'/api/notifications/{self.first.pk}/read/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['is_read'])
        self.assertEqual(self.client.get('/api/notifications/unread-count/').data,
                         {'unread_count': 1, 'by_type': {'auction_lost': 1}})

        unread = self.client.get('/api/notifications/', {'unread': 'true'})
        self.assertEqual([n['id'] for n in unread.data['notifications']], [self.second.pk])

        response = self.client.post('/api/notifications/mark-all-read/')
        self.assertEqual(response.data['read_count'], 1)
        self.assertEqual(self.client.get('/api/notifications/unread-count/').data['unread_count'], 0)

    def test_cannot_read_someone_elses(self):
        other = Notification.objects.exclude(user=self.user).get()
        response = self.client.post(f'/api/notifications/{other.pk}/read/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'Notification not found.')
