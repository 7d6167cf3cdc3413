"""
Serializers for inventory models.
Provides data validation and JSON conversion for API endpoints.
"""
from rest_framework import serializers
from .models import Depot, DepotProductVariant, Product, StockLedgerEntry


class DepotSerializer(serializers.ModelSerializer):
    """Serializer for Depot model."""
    variant_count = serializers.SerializerMethodField()

    class Meta:
        model = Depot
        fields = [
            'id', 'name', 'address', 'city', 'contact_person', 'contact_number',
            'is_online', 'is_active', 'variant_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_variant_count(self, obj):
        """Get count of sellable variants stocked at this depot."""
        return obj.variants.count()


class DepotMinimalSerializer(serializers.ModelSerializer):
    """Minimal serializer for nested depot representation."""
    class Meta:
        model = Depot
        fields = ['id', 'name', 'city']


class ProductSerializer(serializers.ModelSerializer):
    """Serializer for catalog products."""

    class Meta:
        model = Product
        fields = ['id', 'name', 'description', 'unit', 'price', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['id', 'created_at', 'updated_at']


class ProductMinimalSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'name', 'unit', 'price']


class DepotProductVariantSerializer(serializers.ModelSerializer):
    """
    Serializer for depot variants with nested depot and product.
    ``closing_qty`` is read-only; it only moves through the stock ledger.
    """
    depot = DepotMinimalSerializer(read_only=True)
    product = ProductMinimalSerializer(read_only=True)
    depot_id = serializers.PrimaryKeyRelatedField(
        queryset=Depot.objects.all(),
        source='depot',
        write_only=True
    )
    product_id = serializers.PrimaryKeyRelatedField(
        queryset=Product.objects.all(),
        source='product',
        write_only=True
    )
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = DepotProductVariant
        fields = [
            'id', 'depot', 'depot_id', 'product', 'product_id', 'name',
            'sale_price', 'closing_qty', 'min_stock_qty', 'is_low_stock',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'closing_qty', 'created_at', 'updated_at']


class StockLedgerEntrySerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    variant_name = serializers.CharField(source='variant.name', read_only=True)
    depot_name = serializers.CharField(source='depot.name', read_only=True)
    net_qty = serializers.IntegerField(read_only=True)

    class Meta:
        model = StockLedgerEntry
        fields = [
            'id', 'product', 'product_name', 'variant', 'variant_name',
            'depot', 'depot_name', 'transaction_date', 'received_qty',
            'issued_qty', 'net_qty', 'module', 'foreign_key', 'created_at'
        ]
        read_only_fields = fields


class StockReceiptSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    module = serializers.ChoiceField(choices=['receipt', 'opening'], default='receipt')
    origin_id = serializers.IntegerField(required=False, allow_null=True)
