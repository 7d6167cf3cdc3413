"""
Django Admin configuration for inventory models.
"""
from django.contrib import admin
from .models import Depot, DepotProductVariant, Product, StockLedgerEntry


@admin.register(Depot)
class DepotAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'city', 'is_online', 'is_active', 'variant_count', 'created_at']
    list_filter = ['is_online', 'is_active']
    search_fields = ['name', 'city']
    ordering = ['name']

    def variant_count(self, obj):
        return obj.variants.count()
    variant_count.short_description = 'Variants'


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'unit', 'price', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['name', 'description']
    ordering = ['name']


@admin.register(DepotProductVariant)
class DepotProductVariantAdmin(admin.ModelAdmin):
    list_display = ['id', 'depot', 'product', 'name', 'sale_price', 'closing_qty', 'is_low_stock']
    list_filter = ['depot']
    search_fields = ['product__name', 'name', 'depot__name']
    ordering = ['depot', 'product']
    raw_id_fields = ['depot', 'product']
    readonly_fields = ['closing_qty']

    def is_low_stock(self, obj):
        return obj.is_low_stock
    is_low_stock.boolean = True
    is_low_stock.short_description = 'Low Stock'


@admin.register(StockLedgerEntry)
class StockLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ['id', 'transaction_date', 'depot', 'variant', 'received_qty',
                    'issued_qty', 'module', 'foreign_key']
    list_filter = ['module', 'depot']
    search_fields = ['variant__name', 'product__name']
    ordering = ['-transaction_date']
    raw_id_fields = ['product', 'variant', 'depot']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
