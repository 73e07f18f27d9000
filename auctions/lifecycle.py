# auctions/lifecycle.py
"""
Lazy auction state machine.

Status is re-evaluated whenever an item is read or bid on, and by the
periodic sweep in ``auctions.tasks``:

    upcoming --(start_time reached)--> active
    active   --(end_time reached, bids)--> sold
    active   --(end_time reached, no bids)--> expired

At most one transition is applied per call.
"""
import logging

from django.conf import settings
from django.db import transaction

from notifications.tasks import dispatch_auction_result

from . import clock
from .exceptions import NotFoundError, persistence_guard
from .models import Bid, Item, ItemStatus

logger = logging.getLogger(__name__)


def is_due(item, now):
    if item.status == ItemStatus.UPCOMING:
        return now >= item.start_time
    if item.status == ItemStatus.ACTIVE:
        return now >= item.end_time
    return False


def _queue_result_notification(item, winning_bid):
    if not getattr(settings, 'AUCTION_NOTIFICATIONS_ENABLED', True):
        return
    item_id, bid_id = item.pk, winning_bid.pk
    # only after the sold status is committed
    transaction.on_commit(lambda: dispatch_auction_result(item_id, bid_id))


def apply_transition(item, now):
    """
    Apply the single due transition to ``item``, which must be locked by
    the caller. Returns the new status, or None when nothing was due.
    """
    if item.status == ItemStatus.UPCOMING and now >= item.start_time:
        item.status = ItemStatus.ACTIVE
        item.save(update_fields=['status'])
        logger.info("Item %s is now active", item.pk)
        return item.status

    if item.status == ItemStatus.ACTIVE and now >= item.end_time:
        top = Bid.objects.highest_for(item.pk)
        if top is None:
            item.status = ItemStatus.EXPIRED
            item.winner = None
            item.save(update_fields=['status', 'winner'])
            logger.info("Item %s expired without bids", item.pk)
            return item.status

        item.status = ItemStatus.SOLD
        item.winner = top.bidder
        item.current_bid = top.amount
        item.save(update_fields=['status', 'winner', 'current_bid'])
        logger.info("Item %s sold to user %s for %s", item.pk, top.bidder_id, top.amount)
        _queue_result_notification(item, top)
        return item.status

    return None


def refresh_status(item):
    """
    Bring ``item`` up to date with the clock and return the current row.

    Only touches the database when a transition is due; the decision is
    re-made under the row lock so concurrent readers settle an item once.
    """
    now = clock.now()
    if not is_due(item, now):
        return item

    with persistence_guard('refresh_status'):
        with transaction.atomic():
            try:
                locked = Item.objects.select_for_update().get(pk=item.pk)
            except Item.DoesNotExist:
                raise NotFoundError("Item not found.")
            apply_transition(locked, now)
    return locked


def refresh_items(items):
    return [refresh_status(item) for item in items]


def sweep_due_items():
    """Refresh every item whose start or end time has passed.

    Returns the number of transitions applied.
    """
    transitions = 0
    for item in Item.objects.due_for_transition(clock.now()).order_by('pk'):
        try:
            # an upcoming item past its end time needs two steps
            while is_due(item, clock.now()):
                before = item.status
                item = refresh_status(item)
                if item.status == before:
                    break
                transitions += 1
        except NotFoundError:
            logger.info("Item %s disappeared during sweep", item.pk)
    return transitions
