# accounts/views.py
from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import permissions
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from auctions.pagination import PagePagination
from auctions.services import toggle_user_ban
from auctions.views import rejection_response
from django.conf import settings

from .models import User
from .permissionsUsers import IsAdmin
from .serializers import AdminUserSerializer, RoleUpdateSerializer


class AdminUserListView(APIView):
    """GET /api/admin/users/?search=&page=&limit="""
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get(self, request):
        qs = User.objects.order_by('-created_at')
        search = request.query_params.get('search')
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(email__icontains=search))

        paginator = PagePagination(results_key='users', page_size=settings.ADMIN_PAGE_SIZE)
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(AdminUserSerializer(page, many=True).data)


class AdminToggleBanView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def put(self, request, user_id):
        try:
            user, cleanup = toggle_user_ban(user_id)
        except APIException as e:
            return rejection_response(e)

        state = 'banned and associated data cleaned' if user.is_banned else 'unbanned'
        return Response({
            'message': f'User {state} successfully.',
            'user': AdminUserSerializer(user).data,
            'cleanup': cleanup,
        })


class AdminUpdateRoleView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def put(self, request, user_id):
        ser = RoleUpdateSerializer(data=request.data)
        if not ser.is_valid():
            return rejection_response(ValidationError(ser.errors))

        user = get_object_or_404(User, pk=user_id)
        user.role = ser.validated_data['role']
        user.save(update_fields=['role'])
        return Response({
            'message': 'User role updated successfully.',
            'user': AdminUserSerializer(user).data,
        })
