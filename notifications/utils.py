import logging

from django.conf import settings
from django.core.mail import send_mail

from notifications.models import Notification

logger = logging.getLogger(__name__)


def _format_amount(amount):
    return f"${amount:.2f}"


def auction_result_email(item, winning_bid, is_winner):
    amount = _format_amount(winning_bid.amount)
    if is_winner:
        subject = f"You Won! - {item.title}"
        body = (
            f"Congratulations!\n\n"
            f"You have won the auction for {item.title}.\n"
            f"Winning Bid: {amount}\n\n"
            f"Please contact the seller to arrange payment and delivery."
        )
    else:
        subject = f"Auction Ended - {item.title}"
        body = (
            f"The auction for {item.title} has ended.\n"
            f"Unfortunately, you did not win this time.\n"
            f"Winning Bid: {amount}\n\n"
            f"Better luck next time!"
        )
    return subject, body


def _notify_bidder(item, winning_bid, bidder, extra):
    is_winner = bidder.pk == winning_bid.bidder_id
    subject, body = auction_result_email(item, winning_bid, is_winner)
    bidder.send_notification(
        'auction_won' if is_winner else 'auction_lost',
        subject,
        content_object=item,
        extra_data=extra,
    )
    send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [bidder.email], fail_silently=False)


def notify_auction_result(item, winning_bid):
    """
    Tell every distinct bidder on ``item`` whether they won, and the seller
    that the item sold. A failure for one recipient is logged and the rest
    are still notified. Returns the number of bidders notified.
    """
    from auctions.models import Bid

    bidders = {}
    for bid in Bid.objects.filter(item=item).select_related('bidder').order_by('created_at'):
        bidders.setdefault(bid.bidder_id, bid.bidder)

    extra = {"item_id": item.pk, "amount": str(winning_bid.amount)}
    notified = 0
    for bidder in bidders.values():
        try:
            _notify_bidder(item, winning_bid, bidder, extra)
        except Exception:
            logger.exception("Auction result for item %s not delivered to user %s", item.pk, bidder.pk)
            continue
        notified += 1

    try:
        item.seller.send_notification(
            'auction_sold',
            f"{item.title} sold for {_format_amount(winning_bid.amount)}.",
            content_object=item,
            extra_data=extra,
        )
    except Exception:
        logger.exception("Sale notice for item %s not delivered to seller %s", item.pk, item.seller_id)

    logger.info("Auction result sent for item %s to %s of %s bidders", item.pk, notified, len(bidders))
    return notified
