# auctions/services.py
import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from rest_framework.exceptions import PermissionDenied

from accounts.models import Role

from . import clock
from .exceptions import (
    AccountRestrictedError, ConflictError, NotFoundError, ValidationError,
    persistence_guard,
)
from .lifecycle import refresh_status
from .models import Bid, Item, ItemStatus

logger = logging.getLogger(__name__)

User = get_user_model()

CENT = Decimal('0.01')
MAX_AMOUNT = Decimal('9999999999.99')
EDITABLE_FIELDS = ('title', 'description', 'category', 'images')


def format_price(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value:.2f}"


def clean_amount(amount) -> Decimal:
    """Coerce a bid amount to a positive, finite, 2-place Decimal."""
    if isinstance(amount, bool) or amount is None:
        raise ValidationError("Invalid bid amount.")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid bid amount.")
    if not value.is_finite():
        raise ValidationError("Invalid bid amount.")
    value = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if value <= 0 or value > MAX_AMOUNT:
        raise ValidationError("Invalid bid amount.")
    return value


def _hours(delta: timedelta) -> Decimal:
    return (Decimal(delta.total_seconds()) / Decimal(3600)).quantize(CENT, rounding=ROUND_HALF_UP)


def _max_duration_hours():
    return Decimal(getattr(settings, 'AUCTION_MAX_DURATION_HOURS', 720))


def _lock_item(item_id):
    try:
        return Item.objects.select_for_update().get(pk=item_id)
    except Item.DoesNotExist:
        raise NotFoundError("Item not found.")


def _lock_user(user_id):
    try:
        return User.objects.select_for_update().get(pk=user_id)
    except User.DoesNotExist:
        raise NotFoundError("User not found.")


def _lock_items(item_ids):
    """Lock ``item_ids`` in primary key order; returns the pks still present."""
    return list(Item.objects.select_for_update().filter(pk__in=item_ids)
                .order_by('pk').values_list('pk', flat=True))


def _ensure_owner(item, seller):
    if item.seller_id != seller.pk:
        raise PermissionDenied("Forbidden.")


# ---------------------------------------------------------------------------
# Seller item management
# ---------------------------------------------------------------------------

def create_item(seller, data):
    """
    Create an auction listing. ``data`` comes from ItemCreateSerializer and
    carries either ``auction_duration`` (hours) or ``end_time``.
    """
    if seller.is_banned:
        raise AccountRestrictedError()

    now = clock.now()
    start_time = data.get('start_time') or now
    end_time = data.get('end_time')
    duration = data.get('auction_duration')

    if end_time is not None:
        if end_time <= start_time:
            raise ValidationError("End time must be after start time.")
        duration = _hours(end_time - start_time)
    elif duration is not None:
        end_time = start_time + timedelta(hours=float(duration))
    else:
        raise ValidationError("Either auction_duration or end_time is required.")

    if end_time <= now:
        raise ValidationError("End time must be in the future.")
    if duration <= 0 or duration > _max_duration_hours():
        raise ValidationError(f"Auction duration must be between 0 and {_max_duration_hours()} hours.")

    status = ItemStatus.ACTIVE if start_time <= now else ItemStatus.UPCOMING
    with persistence_guard('create_item'):
        item = Item.objects.create(
            seller=seller,
            title=data['title'],
            description=data['description'],
            category=data['category'],
            images=list(data.get('images') or []),
            base_price=data['base_price'],
            current_bid=data['base_price'],
            auction_duration=duration,
            start_time=start_time,
            end_time=end_time,
            status=status,
            created_at=now,
        )
    logger.info("Item %s created by seller %s (%s)", item.pk, seller.pk, status)
    return item


def update_item(item_id, seller, data):
    """Edit a listing. Only allowed while it has no bids and has not ended."""
    with persistence_guard('update_item'):
        with transaction.atomic():
            item = _lock_item(item_id)
            _ensure_owner(item, seller)

            if item.bids.exists():
                raise ConflictError("Cannot edit item with bids.", code='item_has_bids')
            now = clock.now()
            if item.is_terminal or item.end_time <= now:
                raise ConflictError("Cannot edit ended auction.", code='auction_ended')

            update_fields = []
            for field in EDITABLE_FIELDS:
                if field in data:
                    setattr(item, field, data[field])
                    update_fields.append(field)

            if data.get('base_price') is not None:
                item.base_price = data['base_price']
                item.current_bid = data['base_price']
                update_fields += ['base_price', 'current_bid']

            duration = data.get('auction_duration')
            if duration is not None:
                if duration <= 0 or duration > _max_duration_hours():
                    raise ValidationError(f"Auction duration must be between 0 and {_max_duration_hours()} hours.")
                item.auction_duration = duration
                item.end_time = max(item.start_time, now) + timedelta(hours=float(duration))
                update_fields += ['auction_duration', 'end_time']

            if update_fields:
                item.save(update_fields=update_fields)
    return item


def delete_item(item_id, seller):
    with persistence_guard('delete_item'):
        with transaction.atomic():
            item = _lock_item(item_id)
            _ensure_owner(item, seller)
            if item.bids.exists():
                raise ConflictError("Cannot delete item with bids.", code='item_has_bids')
            item.delete()
    logger.info("Item %s deleted by seller %s", item_id, seller.pk)


# ---------------------------------------------------------------------------
# Bid ledger
# ---------------------------------------------------------------------------

def accept_bid(item_id, bidder, amount):
    """
    Validate and record a bid. Checks run in a fixed order and the first
    failure is raised:

    amount, item exists, status refreshed, auction open, not the seller,
    bidder not banned, amount above current price, bidder not already on top.

    The check-and-write runs under row locks on the bidder and the item, so
    two concurrent bids cannot both be accepted against the same price.
    """
    try:
        return _accept_bid(item_id, bidder, amount)
    except ConflictError as e:
        logger.info("Bid on item %s by user %s rejected: %s", item_id, bidder.pk, e.code)
        raise


def _accept_bid(item_id, bidder, amount):
    amount = clean_amount(amount)

    with persistence_guard('accept_bid'):
        try:
            item = Item.objects.get(pk=item_id)
        except Item.DoesNotExist:
            raise NotFoundError("Item not found.")

        # committed separately: a rejected bid must not undo a settlement
        refresh_status(item)

        with transaction.atomic():
            bidder = _lock_user(bidder.pk)
            item = _lock_item(item_id)
            now = clock.now()

            if not item.is_open(now):
                raise ConflictError("Auction is not open for bidding.", code='auction_not_open')

            if bidder.pk == item.seller_id:
                raise ConflictError("You cannot bid on your own item.", code='self_bid')

            if bidder.is_banned:
                raise AccountRestrictedError()

            current_price = item.current_price
            if amount <= current_price:
                raise ConflictError(
                    f"Bid must be higher than ${format_price(current_price)}.",
                    code='bid_too_low',
                    current_price=current_price,
                )

            top = Bid.objects.highest_for(item.pk)
            if top is not None and top.bidder_id == bidder.pk:
                raise ConflictError("You already have the highest bid.", code='already_highest')

            bid = Bid.objects.create(item=item, bidder=bidder, amount=amount, created_at=now)
            item.current_bid = amount
            item.save(update_fields=['current_bid'])

    logger.info("Bid %s accepted on item %s: %s by user %s", bid.pk, item.pk, amount, bidder.pk)
    return bid


def recompute_after_removal(item_id, removed_bidder_ids=()):
    """
    Re-derive current price and winner after bids on ``item_id`` were deleted.

    ``removed_bidder_ids`` are the bidders whose bids went away; a winner
    among them is replaced by the new top bidder. When the ledger is empty
    a sold item goes back to active. This is the one transition allowed out
    of a terminal state.
    """
    removed = set(removed_bidder_ids)
    with persistence_guard('recompute_after_removal'):
        with transaction.atomic():
            item = _lock_item(item_id)
            top = Bid.objects.highest_for(item.pk)

            if top is not None:
                item.current_bid = top.amount
                if item.winner_id is not None and item.winner_id in removed:
                    item.winner = top.bidder
            else:
                item.current_bid = item.base_price
                item.winner = None
                if item.status == ItemStatus.SOLD:
                    item.status = ItemStatus.ACTIVE
                    logger.warning("Item %s reopened: every bid was removed", item.pk)

            item.save(update_fields=['current_bid', 'winner', 'status'])
    logger.info("Recomputed item %s: current_bid=%s winner=%s", item.pk, item.current_bid, item.winner_id)
    return item


def remove_bid(bid_id):
    """Administrator deletion of a single bid."""
    with persistence_guard('remove_bid'):
        with transaction.atomic():
            try:
                bid = Bid.objects.get(pk=bid_id)
            except Bid.DoesNotExist:
                raise NotFoundError("Bid not found.")
            _lock_item(bid.item_id)
            deleted, _ = Bid.objects.filter(pk=bid.pk).delete()
            if not deleted:
                raise NotFoundError("Bid not found.")
            item = recompute_after_removal(bid.item_id, {bid.bidder_id})
    return item


def remove_item(item_id):
    """Administrator deletion of an item together with its bids."""
    with persistence_guard('remove_item'):
        with transaction.atomic():
            item = _lock_item(item_id)
            bids_deleted, _ = Bid.objects.filter(item=item).delete()
            item.delete()
    logger.info("Item %s removed by admin with %s bids", item_id, bids_deleted)
    return bids_deleted


# ---------------------------------------------------------------------------
# Ban cascade
# ---------------------------------------------------------------------------

def _cascade(user):
    own_items = set(Item.objects.filter(seller=user).values_list('pk', flat=True))
    touched = set(Bid.objects.filter(bidder=user).values_list('item_id', flat=True)) - own_items

    # one ordered pass, so concurrent cascades take item locks in the same order
    locked = _lock_items(own_items | touched)
    own_items = [pk for pk in locked if pk in own_items]
    touched = [pk for pk in locked if pk in touched]

    # items sold by the user: their bids go first, then the items
    bids_on_own_items = 0
    if own_items:
        bids_on_own_items, _ = Bid.objects.filter(item_id__in=own_items).delete()
        Item.objects.filter(pk__in=own_items).delete()

    # the user's bids elsewhere, one recompute per touched item
    own_bids = 0
    if touched:
        own_bids, _ = Bid.objects.filter(bidder=user, item_id__in=touched).delete()
        for item_id in touched:
            recompute_after_removal(item_id, {user.pk})

    return {
        "items_deleted": len(own_items),
        "bids_on_items_deleted": bids_on_own_items,
        "bids_deleted": own_bids,
        "items_recomputed": len(touched),
    }


def cascade_remove_for_banned_user(user_id):
    """
    Remove everything a banned user left in the marketplace. Safe to run
    again: a user already cleaned up yields an all-zero summary.
    """
    with persistence_guard('cascade_remove_for_banned_user'):
        with transaction.atomic():
            user = _lock_user(user_id)
            summary = _cascade(user)
    logger.warning("Ban cleanup for user %s: %s", user_id, summary)
    return summary


def toggle_user_ban(user_id):
    """
    Flip the ban flag. Banning runs the cascade in the same transaction, so
    the flag is never stored without the cleanup having completed.
    """
    with persistence_guard('toggle_user_ban'):
        with transaction.atomic():
            user = _lock_user(user_id)
            if user.role == Role.ADMIN:
                raise PermissionDenied("Cannot ban admin users.")

            user.is_banned = not user.is_banned
            user.save(update_fields=['is_banned'])
            summary = _cascade(user) if user.is_banned else None

    if user.is_banned:
        logger.warning("User %s banned, cleanup: %s", user.pk, summary)
    else:
        logger.info("User %s unbanned", user.pk)
    return user, summary
