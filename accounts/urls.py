from django.urls import path
from .views import AdminUserListView, AdminToggleBanView, AdminUpdateRoleView

urlpatterns = [
    path('admin/users/', AdminUserListView.as_view(), name='admin-users'),
    path('admin/users/<int:user_id>/ban/', AdminToggleBanView.as_view(), name='admin-user-ban'),
    path('admin/users/<int:user_id>/role/', AdminUpdateRoleView.as_view(), name='admin-user-role'),
]
