"""
Order Models - Order, OrderItem and the order audit trail.

Payment Status Flow:
    PENDING -> PAID
    PENDING -> CANCELLED
    PAID -> CANCELLED (refunds are the caller's responsibility)

Totals invariants, restored by every mutation before commit:
    total_amount = round(subtotal + delivery_fee, 2)
    payable_amount = max(0, total_amount - wallet_amount_applied)
"""
from decimal import Decimal

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.core.validators import MinValueValidator
from django.db import models

from inventory.models import Depot, DepotProductVariant, Product
from wallet.models import Member


class Order(models.Model):
    """
    Checkout order with a snapshot of the customer's contact details.

    Payment Status:
        - PENDING: Awaiting payment
        - PAID: Payment received
        - CANCELLED: Terminal, no transitions out
    """

    class PaymentStatus(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PAID = 'PAID', 'Paid'
        CANCELLED = 'CANCELLED', 'Cancelled'

    order_no = models.CharField(
        max_length=20,
        unique=True,
        help_text="Fiscal-year order number, e.g. 2526-00001"
    )
    member = models.ForeignKey(
        Member,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders',
        help_text="Customer account; empty for guest orders"
    )
    depot = models.ForeignKey(
        Depot,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='orders',
        help_text="Fulfilling depot"
    )

    # Customer snapshot, copied at checkout
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True, default='')
    mobile = models.CharField(max_length=20, db_index=True)
    address_line1 = models.CharField(max_length=300)
    address_line2 = models.CharField(max_length=300, blank=True, default='')
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100, blank=True, default='')
    pincode = models.CharField(max_length=12)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    wallet_amount_applied = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    payable_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True
    )
    payment_mode = models.CharField(max_length=30, blank=True, null=True)
    payment_ref_no = models.CharField(max_length=100, blank=True, null=True)
    payment_date = models.DateTimeField(blank=True, null=True)
    delivery_date = models.DateField(blank=True, null=True)

    invoice_no = models.CharField(max_length=30, blank=True, null=True, db_index=True)
    invoice_path = models.CharField(max_length=255, blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order'
        verbose_name_plural = 'Orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['payment_status', 'created_at'], name='orders_orde_payment_3e8b14_idx'),
            models.Index(fields=['depot', 'payment_status'], name='orders_orde_depot_i_a91c07_idx'),
        ]

    def __str__(self):
        return f"Order {self.order_no} - {self.name} ({self.payment_status})"

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PaymentStatus.PAID

    @property
    def is_cancelled(self) -> bool:
        return self.payment_status == self.PaymentStatus.CANCELLED

    @property
    def has_invoice(self) -> bool:
        return bool(self.invoice_no and self.invoice_path)

    @property
    def item_count(self) -> int:
        return self.items.count()


class OrderItem(models.Model):
    """
    Line item. Price, name and variant label are copied at the time the
    item is added. Cancelled items stay on the order for audit but are
    left out of the subtotal.
    """
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='items',
        help_text="Parent order"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='order_items'
    )
    depot_product_variant = models.ForeignKey(
        DepotProductVariant,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='order_items'
    )
    name = models.CharField(max_length=200)
    variant_name = models.CharField(max_length=100, blank=True, null=True)
    image_url = models.CharField(max_length=500, blank=True, null=True)
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Unit price at time of order"
    )
    quantity = models.PositiveIntegerField(default=1)
    line_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    is_cancelled = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Order Item'
        verbose_name_plural = 'Order Items'
        ordering = ['id']

    def __str__(self):
        label = f"{self.name} ({self.variant_name})" if self.variant_name else self.name
        return f"{self.quantity}x {label} @ {self.price}"

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.variant_name})" if self.variant_name else self.name


class OrderAuditLog(models.Model):
    """
    Who changed what on an order. Written best effort after the change.
    """

    class Action(models.TextChoices):
        ITEM_ADDED = 'ITEM_ADDED', 'Item added'
        ITEM_QUANTITY_UPDATED = 'ITEM_QUANTITY_UPDATED', 'Item quantity updated'
        ITEM_CANCELLED = 'ITEM_CANCELLED', 'Item cancelled'
        ITEM_RESTORED = 'ITEM_RESTORED', 'Item restored'
        PAYMENT_STATUS_UPDATED = 'PAYMENT_STATUS_UPDATED', 'Payment status updated'
        ORDER_UPDATED = 'ORDER_UPDATED', 'Order updated'

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='audit_logs'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='order_audit_logs'
    )
    action = models.CharField(max_length=40, choices=Action.choices, db_index=True)
    description = models.TextField(blank=True, default='')
    old_value = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    new_value = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Order Audit Log'
        verbose_name_plural = 'Order Audit Logs'
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.action} on order {self.order_id}"
