from rest_framework import serializers
from decimal import Decimal
from django.contrib.auth import get_user_model

from . import clock
from .models import Item, Bid

User = get_user_model()


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'email']


class ItemCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField()
    category = serializers.CharField(max_length=100)
    images = serializers.ListField(child=serializers.CharField(max_length=500), required=False, default=list)
    base_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    auction_duration = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=Decimal('0.01'), required=False)
    start_time = serializers.DateTimeField(required=False)
    end_time = serializers.DateTimeField(required=False)

    def validate(self, data):
        if data.get('auction_duration') is None and data.get('end_time') is None:
            raise serializers.ValidationError("All fields are required: provide auction_duration or end_time.")
        start_time = data.get('start_time')
        end_time = data.get('end_time')
        if start_time and end_time and end_time <= start_time:
            raise serializers.ValidationError("end_time must be after start_time.")
        return data


class ItemUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200, required=False)
    description = serializers.CharField(required=False)
    category = serializers.CharField(max_length=100, required=False)
    images = serializers.ListField(child=serializers.CharField(max_length=500), required=False)
    base_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False)
    auction_duration = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=Decimal('0.01'), required=False)


class ItemDetailSerializer(serializers.ModelSerializer):
    seller = UserSummarySerializer(read_only=True)
    winner = UserSummarySerializer(read_only=True)
    current_price = serializers.SerializerMethodField()
    is_active = serializers.SerializerMethodField()
    time_remaining = serializers.SerializerMethodField()

    class Meta:
        model = Item
        fields = [
            'id', 'title', 'description', 'category', 'images',
            'base_price', 'current_bid', 'current_price', 'auction_duration',
            'start_time', 'end_time', 'status', 'is_active', 'time_remaining',
            'seller', 'winner', 'created_at',
        ]

    def get_current_price(self, obj):
        return str(obj.current_price)

    def get_is_active(self, obj):
        return obj.is_open(clock.now())

    def get_time_remaining(self, obj):
        return obj.time_remaining(clock.now())


class ItemSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Item
        fields = ['id', 'title', 'category', 'current_bid', 'base_price', 'status', 'end_time', 'seller_id', 'winner_id']


class PlaceBidSerializer(serializers.Serializer):
    # range and finiteness are checked by services.clean_amount
    amount = serializers.DecimalField(max_digits=14, decimal_places=4)


class BidSerializer(serializers.ModelSerializer):
    bidder = UserSummarySerializer(read_only=True)

    class Meta:
        model = Bid
        fields = ['id', 'item', 'bidder', 'amount', 'created_at']


class BidWithItemSerializer(serializers.ModelSerializer):
    bidder = UserSummarySerializer(read_only=True)
    item = ItemSummarySerializer(read_only=True)

    class Meta:
        model = Bid
        fields = ['id', 'item', 'bidder', 'amount', 'created_at']
