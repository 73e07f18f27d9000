# auctions/models.py
from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator
from django.utils import timezone
from decimal import Decimal


class ItemStatus(models.TextChoices):
    UPCOMING = 'upcoming', 'Upcoming'   # scheduled, waiting for start_time
    ACTIVE = 'active', 'Active'         # accepting bids
    SOLD = 'sold', 'Sold'
    CLOSED = 'closed', 'Closed'
    EXPIRED = 'expired', 'Expired'      # ended without bids


TERMINAL_STATUSES = (ItemStatus.SOLD, ItemStatus.CLOSED, ItemStatus.EXPIRED)


class ItemQuerySet(models.QuerySet):
    def due_for_transition(self, now):
        return self.filter(
            models.Q(status=ItemStatus.UPCOMING, start_time__lte=now)
            | models.Q(status=ItemStatus.ACTIVE, end_time__lte=now)
        )

    def open_at(self, now):
        return self.filter(status=ItemStatus.ACTIVE, end_time__gt=now)


class Item(models.Model):
    seller = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='items')

    title = models.CharField(max_length=200)
    description = models.TextField()
    category = models.CharField(max_length=100)
    images = models.JSONField(default=list, blank=True)

    base_price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    current_bid = models.DecimalField(max_digits=12, decimal_places=2)
    auction_duration = models.DecimalField(max_digits=8, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])  # hours

    start_time = models.DateTimeField()
    end_time = models.DateTimeField()

    status = models.CharField(max_length=20, choices=ItemStatus.choices, default=ItemStatus.ACTIVE)
    winner = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name='won_items')

    created_at = models.DateTimeField(default=timezone.now)

    objects = ItemQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'start_time'], name='item_status_start_idx'),
            models.Index(fields=['status', 'end_time'], name='item_status_end_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(end_time__gt=models.F('start_time')), name='item_end_after_start'),
            models.CheckConstraint(condition=models.Q(current_bid__gte=models.F('base_price')), name='item_current_bid_gte_base'),
        ]

    def __str__(self):
        return f"{self.title} (#{self.id})"

    @property
    def current_price(self):
        return self.current_bid or self.base_price

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def is_open(self, now):
        return self.status == ItemStatus.ACTIVE and now < self.end_time

    def time_remaining(self, now):
        diff = self.end_time - now
        total = int(diff.total_seconds())
        if total <= 0:
            return None
        return {"hours": total // 3600, "minutes": (total % 3600) // 60, "total_seconds": total}


class BidQuerySet(models.QuerySet):
    def by_rank(self):
        # highest amount first, earliest bid wins a tie
        return self.order_by('-amount', 'created_at', 'id')

    def highest_for(self, item_id):
        return self.filter(item_id=item_id).select_related('bidder').by_rank().first()


class Bid(models.Model):
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name='bids')
    bidder = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bids')
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    created_at = models.DateTimeField(default=timezone.now)

    objects = BidQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['item', '-amount', 'created_at'], name='bid_item_rank_idx'),
        ]

    def __str__(self):
        return f"Bid {self.amount} on {self.item_id} by {self.bidder_id}"
