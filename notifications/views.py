# notifications/views.py
from django.db.models import Count
from django.utils import timezone
from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from auctions.exceptions import NotFoundError
from auctions.pagination import PagePagination
from auctions.views import rejection_response

from .serializers import NotificationSerializer


class NotificationListView(APIView):
    """GET /api/notifications/?unread=true&type=auction_won&page=&limit="""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        qs = request.user.user_notifications.select_related('content_type').order_by('-created_at', '-id')

        if request.query_params.get('unread') == 'true':
            qs = qs.filter(is_read=False)
        notification_type = request.query_params.get('type')
        if notification_type:
            qs = qs.filter(notification_type=notification_type)

        paginator = PagePagination(results_key='notifications')
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(NotificationSerializer(page, many=True).data)


class MarkAsReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, notification_id):
        try:
            notification = request.user.user_notifications.get(pk=notification_id)
        except request.user.user_notifications.model.DoesNotExist:
            return rejection_response(NotFoundError("Notification not found."))
        notification.mark_as_read()
        return Response(NotificationSerializer(notification).data)


class UnreadCountView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        rows = (request.user.user_notifications.filter(is_read=False)
                .values('notification_type').annotate(n=Count('id')))
        by_type = {row['notification_type']: row['n'] for row in rows}
        return Response({'unread_count': sum(by_type.values()), 'by_type': by_type})


class MarkAllAsReadView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        updated = request.user.user_notifications.filter(is_read=False).update(is_read=True, read_at=timezone.now())
        return Response({'message': f'{updated} notifications marked as read.', 'read_count': updated})
