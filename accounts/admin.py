from django.contrib import admin
from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'name', 'role', 'is_banned', 'created_at')
    list_filter = ('role', 'is_banned')
    search_fields = ('email', 'name')
    readonly_fields = ('created_at', 'last_login')
    exclude = ('password', 'current_token_user')
