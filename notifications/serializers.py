from rest_framework import serializers

from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    item_id = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = ['id', 'notification_type', 'message', 'item_id', 'extra_data', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields

    def get_item_id(self, obj):
        # auction results point at the settled item
        if obj.content_type_id and obj.content_type.model == 'item':
            return obj.object_id
        return None
