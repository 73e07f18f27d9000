# accounts/serializers.py
from rest_framework import serializers
from django.contrib.auth import get_user_model

from .models import Role

User = get_user_model()


class AdminUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'role', 'is_banned', 'created_at', 'last_login']
        read_only_fields = fields


class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=Role.choices)
