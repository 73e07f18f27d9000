# notifications/tasks.py
import logging

from celery import shared_task

from .utils import notify_auction_result

logger = logging.getLogger(__name__)


@shared_task
def send_auction_result_task(item_id, winning_bid_id):
    from auctions.models import Bid, Item

    try:
        item = Item.objects.select_related('seller').get(pk=item_id)
        winning_bid = Bid.objects.select_related('bidder').get(pk=winning_bid_id, item_id=item_id)
    except (Item.DoesNotExist, Bid.DoesNotExist):
        logger.warning("Auction result for item %s skipped: item or bid %s no longer exists", item_id, winning_bid_id)
        return 0

    try:
        return notify_auction_result(item, winning_bid)
    except Exception:
        logger.exception("Sending auction result for item %s failed", item_id)
        return 0


def dispatch_auction_result(item_id, winning_bid_id):
    """Queue the result notification; a broker failure is logged, not raised."""
    try:
        send_auction_result_task.delay(item_id, winning_bid_id)
    except Exception:
        logger.exception("Could not queue auction result for item %s", item_id)
