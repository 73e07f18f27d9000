from django.urls import path

from .views import MarkAllAsReadView, MarkAsReadView, NotificationListView, UnreadCountView

urlpatterns = [
    path('', NotificationListView.as_view(), name='notification-list'),
    path('unread-count/', UnreadCountView.as_view(), name='notification-unread-count'),
    path('mark-all-read/', MarkAllAsReadView.as_view(), name='notification-mark-all-read'),
    path('<int:notification_id>/read/', MarkAsReadView.as_view(), name='notification-mark-read'),
]
