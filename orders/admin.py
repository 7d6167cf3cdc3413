"""
Django Admin configuration for order models.
"""
from django.contrib import admin
from .models import Order, OrderAuditLog, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ['name', 'variant_name', 'price', 'quantity', 'line_total', 'is_cancelled']
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_no', 'name', 'mobile', 'depot', 'payment_status',
                    'total_amount', 'payable_amount', 'invoice_no', 'created_at']
    list_filter = ['payment_status', 'depot', 'created_at']
    search_fields = ['order_no', 'name', 'mobile', 'email', 'invoice_no']
    ordering = ['-created_at']
    readonly_fields = ['order_no', 'subtotal', 'total_amount', 'wallet_amount_applied',
                       'payable_amount', 'invoice_no', 'invoice_path', 'created_at', 'updated_at']
    raw_id_fields = ['member', 'depot']
    inlines = [OrderItemInline]


@admin.register(OrderAuditLog)
class OrderAuditLogAdmin(admin.ModelAdmin):
    list_display = ['id', 'order', 'action', 'user', 'created_at']
    list_filter = ['action', 'created_at']
    search_fields = ['order__order_no', 'description']
    ordering = ['-created_at']
    raw_id_fields = ['order', 'user']

    def has_change_permission(self, request, obj=None):
        return False
