from django.contrib import admin
from .models import Item, Bid


class BidInline(admin.TabularInline):
    model = Bid
    extra = 0
    readonly_fields = ('bidder', 'amount', 'created_at')
    can_delete = False


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    list_display = ('title', 'seller', 'status', 'base_price', 'current_bid', 'start_time', 'end_time', 'winner')
    list_filter = ('status', 'category')
    search_fields = ('title', 'seller__email')
    raw_id_fields = ('seller', 'winner')
    readonly_fields = ('created_at',)
    inlines = [BidInline]


@admin.register(Bid)
class BidAdmin(admin.ModelAdmin):
    list_display = ('item', 'bidder', 'amount', 'created_at')
    raw_id_fields = ('item', 'bidder')
    readonly_fields = ('created_at',)
