"""
Serializers for order models and order mutation requests.

Request serializers only check request shape. Money and quantity rules
live in orders.services so that API and service callers share them.
"""
from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for OrderItem snapshots."""
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'depot_product_variant', 'name', 'variant_name',
            'display_name', 'image_url', 'price', 'quantity', 'line_total',
            'is_cancelled', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """
    Serializer for Order model with nested items.
    Expects items to be prefetched by the view.
    """
    depot_name = serializers.CharField(source='depot.name', read_only=True, default=None)
    items = OrderItemSerializer(many=True, read_only=True)
    item_count = serializers.IntegerField(read_only=True)
    is_paid = serializers.BooleanField(read_only=True)
    has_invoice = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_no', 'member', 'depot', 'depot_name',
            'name', 'email', 'mobile', 'address_line1', 'address_line2',
            'city', 'state', 'pincode',
            'subtotal', 'delivery_fee', 'total_amount',
            'wallet_amount_applied', 'payable_amount',
            'payment_status', 'payment_mode', 'payment_ref_no', 'payment_date',
            'delivery_date', 'invoice_no', 'invoice_path',
            'items', 'item_count', 'is_paid', 'has_invoice',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """
    Optimized serializer for listing orders.
    Uses select_related for depot data.
    """
    depot_name = serializers.CharField(source='depot.name', read_only=True, default=None)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_no', 'name', 'mobile', 'depot_name',
            'payment_status', 'total_amount', 'payable_amount',
            'invoice_no', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        # Use prefetched items count if available
        if hasattr(obj, '_prefetched_objects_cache') and 'items' in obj._prefetched_objects_cache:
            return len([i for i in obj.items.all() if not i.is_cancelled])
        return obj.items.filter(is_cancelled=False).count()


class CustomerSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    email = serializers.EmailField(required=False, allow_blank=True, default='')
    mobile = serializers.CharField(max_length=20)
    address_line1 = serializers.CharField(max_length=300)
    address_line2 = serializers.CharField(max_length=300, required=False, allow_blank=True, default='')
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    pincode = serializers.CharField(max_length=12)


class CheckoutItemSerializer(serializers.Serializer):
    """Serializer for one line in a checkout request."""
    name = serializers.CharField(max_length=200)
    variant_name = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    image_url = serializers.CharField(max_length=500, required=False, allow_null=True, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    quantity = serializers.IntegerField(min_value=0)
    product_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    depot_product_variant_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class CheckoutSerializer(serializers.Serializer):
    """
    Serializer for POST /orders/checkout/

    Request format:
    {
        "customer": {"name": "...", "mobile": "...", "address_line1": "...",
                     "city": "...", "pincode": "..."},
        "items": [{"name": "Milk", "price": "100.00", "quantity": 2,
                   "depot_product_variant_id": 7}],
        "delivery_fee": "10.00",
        "member_id": 3,
        "wallet_amount": "50.00",
        "subtotal": "200.00",
        "total_amount": "210.00"
    }
    """
    customer = CustomerSerializer()
    items = CheckoutItemSerializer(many=True)
    delivery_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, default=0)
    depot_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    member_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    wallet_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, default=0)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    payment_mode = serializers.CharField(max_length=30, required=False, allow_null=True, allow_blank=True)
    payment_ref_no = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    delivery_date = serializers.DateField(required=False, allow_null=True)

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")
        return value


class AddItemSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    depot_product_variant_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    variant_name = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    image_url = serializers.CharField(max_length=500, required=False, allow_null=True, allow_blank=True)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)


class ItemQuantitySerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)


class ItemCancellationSerializer(serializers.Serializer):
    is_cancelled = serializers.BooleanField()


class MarkPaidSerializer(serializers.Serializer):
    payment_mode = serializers.CharField(max_length=30, required=False, allow_null=True, allow_blank=True)
    payment_ref_no = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    payment_date = serializers.DateTimeField(required=False, allow_null=True)


class OrderUpdateSerializer(serializers.Serializer):
    payment_status = serializers.ChoiceField(choices=Order.PaymentStatus.choices, required=False)
    payment_mode = serializers.CharField(max_length=30, required=False, allow_null=True, allow_blank=True)
    payment_ref_no = serializers.CharField(max_length=100, required=False, allow_null=True, allow_blank=True)
    payment_date = serializers.DateTimeField(required=False, allow_null=True)
    delivery_date = serializers.DateField(required=False, allow_null=True)

