# auctions/views.py
from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissionsUsers import IsAdmin, IsSeller
from . import clock
from .exceptions import ConflictError, NotFoundError, ValidationError
from .lifecycle import refresh_items, refresh_status
from .models import Bid, Item, ItemStatus
from .pagination import PagePagination
from .serializers import (
    BidSerializer, BidWithItemSerializer, ItemCreateSerializer,
    ItemDetailSerializer, ItemUpdateSerializer, PlaceBidSerializer,
)
from .services import (
    accept_bid, create_item, delete_item, remove_bid, remove_item,
    update_item,
)


def _first_error(detail):
    while isinstance(detail, (list, dict)) and detail:
        detail = detail[0] if isinstance(detail, list) else next(iter(detail.values()))
    return detail


def rejection_response(exc: APIException):
    """
    Flatten a typed error into {"error", "code"[, "current_price"]}.
    Serializer failures also carry the per-field messages under "errors".
    """
    if isinstance(exc, ConflictError):
        return Response(exc.as_payload(), status=exc.status_code)
    first = _first_error(exc.detail)
    payload = {"error": str(first), "code": getattr(first, 'code', None) or exc.default_code}
    if isinstance(exc.detail, dict):
        payload["errors"] = exc.detail
    return Response(payload, status=exc.status_code)


def _get_fresh_item(pk):
    try:
        item = Item.objects.select_related('seller', 'winner').get(pk=pk)
    except Item.DoesNotExist:
        raise NotFoundError("Item not found.")
    return refresh_status(item)


def _filter_by_window(items, window, now):
    if window == 'active':
        return [i for i in items if i.is_open(now)]
    if window == 'ended':
        return [i for i in items if not i.is_open(now)]
    return items


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

class ItemListView(APIView):
    """
    GET /api/items/?category=&status=active|ended&search=&page=&limit=
    Statuses are refreshed before filtering.
    """
    permission_classes = []  # public

    def get(self, request):
        qs = Item.objects.select_related('seller', 'winner').order_by('-created_at')

        category = request.query_params.get('category')
        if category:
            qs = qs.filter(category=category)
        search = request.query_params.get('search')
        if search:
            qs = qs.filter(title__icontains=search)

        items = refresh_items(qs)
        items = _filter_by_window(items, request.query_params.get('status'), clock.now())

        paginator = PagePagination(results_key='items')
        page = paginator.paginate_queryset(items, request, view=self)
        return paginator.get_paginated_response(ItemDetailSerializer(page, many=True).data)


class ItemDetailView(APIView):
    permission_classes = []  # public

    def get(self, request, pk):
        try:
            item = _get_fresh_item(pk)
        except APIException as e:
            return rejection_response(e)
        return Response(ItemDetailSerializer(item).data)


class ItemBidsView(APIView):
    permission_classes = []  # public

    def get(self, request, pk):
        item = get_object_or_404(Item, pk=pk)
        bids = Bid.objects.filter(item=item).select_related('bidder').order_by('-created_at')
        return Response(BidSerializer(bids, many=True).data)


class MyItemsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        qs = Item.objects.filter(seller=request.user).select_related('seller', 'winner').order_by('-created_at')
        return Response(ItemDetailSerializer(refresh_items(qs), many=True).data)


class PlaceBidView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        ser = PlaceBidSerializer(data=request.data)
        if not ser.is_valid():
            return rejection_response(ValidationError(ser.errors))

        try:
            bid = accept_bid(pk, request.user, ser.validated_data['amount'])
        except APIException as e:
            return rejection_response(e)

        return Response({
            "bid": BidSerializer(bid).data,
            "message": "Bid placed successfully!",
            "current_price": str(bid.amount),
        }, status=status.HTTP_201_CREATED)


# ---------------------------------------------------------------------------
# Seller
# ---------------------------------------------------------------------------

class SellerItemsView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSeller]

    def get(self, request):
        qs = Item.objects.filter(seller=request.user).select_related('seller', 'winner').order_by('-created_at')
        return Response(ItemDetailSerializer(refresh_items(qs), many=True).data)

    def post(self, request):
        ser = ItemCreateSerializer(data=request.data)
        if not ser.is_valid():
            return rejection_response(ValidationError(ser.errors))
        try:
            item = create_item(request.user, ser.validated_data)
        except APIException as e:
            return rejection_response(e)
        return Response(ItemDetailSerializer(item).data, status=status.HTTP_201_CREATED)


class SellerItemDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSeller]

    def put(self, request, pk):
        ser = ItemUpdateSerializer(data=request.data, partial=True)
        if not ser.is_valid():
            return rejection_response(ValidationError(ser.errors))
        try:
            item = update_item(pk, request.user, ser.validated_data)
        except APIException as e:
            return rejection_response(e)
        return Response(ItemDetailSerializer(item).data)

    patch = put

    def delete(self, request, pk):
        try:
            delete_item(pk, request.user)
        except APIException as e:
            return rejection_response(e)
        return Response({"message": "Item deleted successfully."})


class SellerItemBidHistoryView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSeller]

    def get(self, request, pk):
        item = get_object_or_404(Item, pk=pk)
        if item.seller_id != request.user.id:
            return Response({"error": "Forbidden.", "code": "permission_denied"}, status=status.HTTP_403_FORBIDDEN)
        bids = Bid.objects.filter(item=item).select_related('bidder').order_by('-created_at')
        return Response(BidSerializer(bids, many=True).data)


# ---------------------------------------------------------------------------
# Bidder
# ---------------------------------------------------------------------------

def _refresh_items_bid_on(user):
    due = Item.objects.filter(bids__bidder=user).distinct().due_for_transition(clock.now())
    refresh_items(due)


def _refresh_bid_items(bids):
    """Settle the items behind ``bids`` and swap the fresh rows in."""
    due = Item.objects.filter(pk__in={b.item_id for b in bids}).due_for_transition(clock.now())
    fresh = {item.pk: item for item in refresh_items(due)}
    for bid in bids:
        if bid.item_id in fresh:
            bid.item = fresh[bid.item_id]


class MyBidsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        _refresh_items_bid_on(request.user)
        bids = (Bid.objects.filter(bidder=request.user)
                .select_related('item', 'bidder')
                .order_by('-created_at'))
        return Response(BidWithItemSerializer(bids, many=True).data)


class WonAuctionsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        _refresh_items_bid_on(request.user)
        items = (Item.objects.filter(winner=request.user, status=ItemStatus.SOLD)
                 .select_related('seller', 'winner')
                 .order_by('-end_time'))
        return Response(ItemDetailSerializer(items, many=True).data)


class ActiveBidsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        _refresh_items_bid_on(request.user)
        open_items = Item.objects.open_at(clock.now())
        bids = (Bid.objects.filter(bidder=request.user, item__in=open_items)
                .select_related('item', 'bidder')
                .order_by('-created_at'))
        return Response(BidWithItemSerializer(bids, many=True).data)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------

class AdminItemListView(APIView):
    """GET /api/admin/items/?search=&status=active|ended&page=&limit="""
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get(self, request):
        qs = Item.objects.select_related('seller', 'winner').order_by('-created_at')

        search = request.query_params.get('search')
        if search:
            qs = qs.filter(title__icontains=search)

        now = clock.now()
        window = request.query_params.get('status')
        if window == 'active':
            qs = qs.filter(end_time__gt=now)
        elif window == 'ended':
            qs = qs.filter(end_time__lte=now)

        paginator = PagePagination(results_key='items', page_size=settings.ADMIN_PAGE_SIZE)
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(ItemDetailSerializer(refresh_items(page), many=True).data)


class AdminItemDeleteView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def delete(self, request, pk):
        try:
            bids_deleted = remove_item(pk)
        except APIException as e:
            return rejection_response(e)
        return Response({
            "message": "Item and all associated bids deleted successfully.",
            "bids_deleted": bids_deleted,
        })


class AdminBidListView(APIView):
    """GET /api/admin/bids/?item=&page=&limit="""
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get(self, request):
        qs = Bid.objects.select_related('item', 'bidder').order_by('-created_at')
        item_id = request.query_params.get('item')
        if item_id and item_id.isdigit():
            qs = qs.filter(item_id=int(item_id))

        paginator = PagePagination(results_key='bids', page_size=settings.ADMIN_PAGE_SIZE)
        page = paginator.paginate_queryset(qs, request, view=self)
        _refresh_bid_items(page)
        return paginator.get_paginated_response(BidWithItemSerializer(page, many=True).data)


class AdminBidDeleteView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def delete(self, request, pk):
        try:
            item = remove_bid(pk)
        except APIException as e:
            return rejection_response(e)
        return Response({
            "message": "Bid deleted and item price updated successfully.",
            "item": ItemDetailSerializer(item).data,
        })
