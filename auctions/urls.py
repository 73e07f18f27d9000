# auctions/urls.py
from django.urls import path
from .views import (
    ItemListView, ItemDetailView, ItemBidsView, MyItemsView, PlaceBidView,
    SellerItemsView, SellerItemDetailView, SellerItemBidHistoryView,
    MyBidsView, WonAuctionsView, ActiveBidsView,
    AdminItemListView, AdminItemDeleteView, AdminBidListView, AdminBidDeleteView,
)

urlpatterns = [
    # public
    path('items/', ItemListView.as_view(), name='item-list'),
    path('items/my-items/', MyItemsView.as_view(), name='my-items'),
    path('items/<int:pk>/', ItemDetailView.as_view(), name='item-detail'),
    path('items/<int:pk>/bids/', ItemBidsView.as_view(), name='item-bids'),

    # bidding
    path('items/<int:pk>/bid/', PlaceBidView.as_view(), name='item-bid'),
    path('bids/my-bids/', MyBidsView.as_view(), name='my-bids'),
    path('bids/won-auctions/', WonAuctionsView.as_view(), name='won-auctions'),
    path('bids/active-bids/', ActiveBidsView.as_view(), name='active-bids'),

    # seller
    path('seller/items/', SellerItemsView.as_view(), name='seller-items'),
    path('seller/items/<int:pk>/', SellerItemDetailView.as_view(), name='seller-item-detail'),
    path('seller/items/<int:pk>/bids/', SellerItemBidHistoryView.as_view(), name='seller-item-bids'),

    # admin
    path('admin/items/', AdminItemListView.as_view(), name='admin-items'),
    path('admin/items/<int:pk>/', AdminItemDeleteView.as_view(), name='admin-item-delete'),
    path('admin/bids/', AdminBidListView.as_view(), name='admin-bids'),
    path('admin/bids/<int:pk>/', AdminBidDeleteView.as_view(), name='admin-bid-delete'),
]
