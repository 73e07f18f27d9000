from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.conf import settings
from django.core.management import call_command
from django.test import TestCase

from auctions.exceptions import NotFoundError
from auctions.lifecycle import refresh_status, sweep_due_items
from auctions.models import Item, ItemStatus
from auctions.tasks import sweep_due_items_task

from .base import FrozenClockMixin
from .factories import NOW, BidFactory, ItemFactory, UserFactory


class RefreshStatusTests(FrozenClockMixin, TestCase):

    def test_upcoming_item_is_left_alone_before_start(self):
        item = ItemFactory(status=ItemStatus.UPCOMING, start_time=NOW + timedelta(hours=1))

        with self.assertNumQueries(0):
            refreshed = refresh_status(item)

        self.assertEqual(refreshed.status, ItemStatus.UPCOMING)

    def test_upcoming_becomes_active_at_start_time(self):
        item = ItemFactory(status=ItemStatus.UPCOMING, start_time=NOW + timedelta(hours=1))
        self.advance(hours=1)

        refreshed = refresh_status(item)

        self.assertEqual(refreshed.status, ItemStatus.ACTIVE)
        item.refresh_from_db()
        self.assertEqual(item.status, ItemStatus.ACTIVE)

    def test_only_one_transition_per_call(self):
        item = ItemFactory(status=ItemStatus.UPCOMING, start_time=NOW + timedelta(hours=1))
        self.advance(hours=5)  # past both start and end

        first = refresh_status(item)
        self.assertEqual(first.status, ItemStatus.ACTIVE)

        second = refresh_status(first)
        self.assertEqual(second.status, ItemStatus.EXPIRED)

    def test_active_item_without_bids_expires(self):
        item = ItemFactory()
        self.advance(hours=1)

        refreshed = refresh_status(item)

        self.assertEqual(refreshed.status, ItemStatus.EXPIRED)
        self.assertIsNone(refreshed.winner)

    @mock.patch('auctions.lifecycle.dispatch_auction_result')
    def test_active_item_with_bids_is_sold_to_highest_bidder(self, dispatch):
        item = ItemFactory()
        a, b = UserFactory(), UserFactory()
        BidFactory(item=item, bidder=a, amount=Decimal('150'))
        top = BidFactory(item=item, bidder=b, amount=Decimal('200'), created_at=NOW + timedelta(minutes=5))
        self.advance(hours=2)

        with self.captureOnCommitCallbacks(execute=True):
            refreshed = refresh_status(item)

        self.assertEqual(refreshed.status, ItemStatus.SOLD)
        self.assertEqual(refreshed.winner, b)
        self.assertEqual(refreshed.current_bid, Decimal('200'))
        dispatch.assert_called_once_with(item.pk, top.pk)

    @mock.patch('auctions.lifecycle.dispatch_auction_result')
    def test_settlement_is_idempotent(self, dispatch):
        item = ItemFactory()
        BidFactory(item=item, amount=Decimal('180'))
        self.advance(hours=1)

        with self.captureOnCommitCallbacks(execute=True):
            first = refresh_status(item)
        snapshot = Item.objects.values().get(pk=item.pk)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            second = refresh_status(first)
            third = refresh_status(item)  # stale instance still reads active

        self.assertEqual(callbacks, [])
        self.assertEqual(dispatch.call_count, 1)
        self.assertEqual(second.status, ItemStatus.SOLD)
        self.assertEqual(third.status, ItemStatus.SOLD)
        self.assertEqual(Item.objects.values().get(pk=item.pk), snapshot)

    def test_terminal_statuses_are_final(self):
        for status in (ItemStatus.CLOSED, ItemStatus.EXPIRED):
            item = ItemFactory(status=status)
            self.advance(hours=3)
            self.assertEqual(refresh_status(item).status, status)

    def test_ties_go_to_the_earliest_bid(self):
        item = ItemFactory()
        early, late = UserFactory(), UserFactory()
        BidFactory(item=item, bidder=late, amount=Decimal('300'), created_at=NOW + timedelta(minutes=10))
        BidFactory(item=item, bidder=early, amount=Decimal('300'), created_at=NOW + timedelta(minutes=1))
        self.advance(hours=1)

        refreshed = refresh_status(item)

        self.assertEqual(refreshed.winner, early)

    def test_refreshing_a_deleted_item_raises_not_found(self):
        item = ItemFactory()
        Item.objects.filter(pk=item.pk).delete()
        self.advance(hours=1)

        with self.assertRaises(NotFoundError):
            refresh_status(item)

    @mock.patch('auctions.lifecycle.dispatch_auction_result')
    def test_notifications_disabled_by_setting(self, dispatch):
        item = ItemFactory()
        BidFactory(item=item)
        self.advance(hours=1)

        with self.settings(AUCTION_NOTIFICATIONS_ENABLED=False):
            with self.captureOnCommitCallbacks(execute=True):
                refreshed = refresh_status(item)

        self.assertEqual(refreshed.status, ItemStatus.SOLD)
        dispatch.assert_not_called()


class SweepTests(FrozenClockMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.upcoming = ItemFactory(status=ItemStatus.UPCOMING, start_time=NOW + timedelta(minutes=30))
        self.stale_upcoming = ItemFactory(status=ItemStatus.UPCOMING, start_time=NOW + timedelta(minutes=10),
                                          end_time=NOW + timedelta(minutes=20))
        self.with_bid = ItemFactory(end_time=NOW + timedelta(minutes=45))
        BidFactory(item=self.with_bid)
        self.still_running = ItemFactory(end_time=NOW + timedelta(days=1))

    @mock.patch('auctions.lifecycle.dispatch_auction_result')
    def test_sweep_applies_every_due_transition(self, dispatch):
        self.advance(hours=1)

        with self.captureOnCommitCallbacks(execute=True):
            transitions = sweep_due_items()

        # upcoming -> active -> expired twice, stale_upcoming twice, with_bid once
        self.assertEqual(transitions, 5)
        statuses = dict(Item.objects.values_list('pk', 'status'))
        self.assertEqual(statuses[self.upcoming.pk], ItemStatus.EXPIRED)
        self.assertEqual(statuses[self.stale_upcoming.pk], ItemStatus.EXPIRED)
        self.assertEqual(statuses[self.with_bid.pk], ItemStatus.SOLD)
        self.assertEqual(statuses[self.still_running.pk], ItemStatus.ACTIVE)
        dispatch.assert_called_once()

    @mock.patch('auctions.lifecycle.dispatch_auction_result')
    def test_second_sweep_is_a_no_op(self, dispatch):
        self.advance(hours=1)
        sweep_due_items()

        self.assertEqual(sweep_due_items(), 0)

    @mock.patch('auctions.lifecycle.dispatch_auction_result')
    def test_celery_task_and_command_run_the_sweep(self, dispatch):
        self.advance(minutes=15)
        self.assertEqual(sweep_due_items_task(), 1)  # stale_upcoming activated

        self.advance(minutes=10)
        out = StringIO()
        call_command('sweep_auctions', stdout=out)
        self.assertIn('Applied 1 auction transitions', out.getvalue())

    def test_beat_runs_the_sweep_at_the_configured_interval(self):
        from BidCycle.celery import app

        entry = app.conf.beat_schedule['sweep-due-auctions']
        self.assertEqual(entry['task'], 'auctions.tasks.sweep_due_items_task')
        self.assertEqual(entry['schedule'], settings.AUCTION_SWEEP_INTERVAL_SECONDS)
        self.assertIn(entry['task'], app.tasks)
