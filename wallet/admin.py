"""
Django Admin configuration for wallet models.
"""
from django.contrib import admin
from .models import Member, WalletTransaction


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'mobile', 'email', 'wallet_balance', 'created_at']
    search_fields = ['name', 'mobile', 'email']
    ordering = ['name']
    readonly_fields = ['wallet_balance', 'created_at', 'updated_at']
    raw_id_fields = ['user']


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'member', 'type', 'amount', 'status', 'reference_number', 'created_at']
    list_filter = ['type', 'status', 'created_at']
    search_fields = ['member__name', 'reference_number']
    ordering = ['-created_at']
    raw_id_fields = ['member', 'processed_by']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
