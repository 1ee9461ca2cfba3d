from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('email', 'full_name', 'county', 'is_staff', 'date_joined')
    list_filter = ('is_staff', 'is_active', 'county')
    search_fields = ('email', 'full_name', 'username', 'eircode')
    ordering = ('-date_joined',)
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Campaigner Details', {'fields': ('full_name', 'county', 'eircode')}),
    )
