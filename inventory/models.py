"""
Inventory Models - Depots, catalog and the stock ledger.

Models:
    - Depot: Fulfillment location holding its own stock
    - Product: Catalog item
    - DepotProductVariant: Per-depot sellable unit with cached closing stock
    - StockLedgerEntry: Append-only stock movement (source of truth)

The cached ``closing_qty`` on a variant always equals
``sum(received_qty) - sum(issued_qty)`` over that variant's ledger rows.
"""
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone


class Depot(models.Model):
    """
    Fulfillment location. Online depots serve web checkout by default.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Depot name"
    )
    address = models.CharField(max_length=300, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    contact_person = models.CharField(max_length=100, blank=True, default='')
    contact_number = models.CharField(max_length=20, blank=True, default='')
    is_online = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Serves online checkout orders"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether depot is operational"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Depot'
        verbose_name_plural = 'Depots'
        ordering = ['name']

    def __str__(self):
        return self.name


class Product(models.Model):
    """
    Catalog product. Depot-level pricing lives on DepotProductVariant.
    """
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Product name for display and search"
    )
    description = models.TextField(blank=True, default='')
    unit = models.CharField(
        max_length=30,
        blank=True,
        default='',
        help_text="Selling unit, e.g. '500 ml' or 'kg'"
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Catalog price"
    )
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['name']
        indexes = [
            models.Index(fields=['name', 'is_active'], name='inventory_p_name_4a5c1e_idx'),
        ]

    def __str__(self):
        return self.name


class DepotProductVariant(models.Model):
    """
    Sellable unit of a product at one depot.

    ``closing_qty`` is a denormalized view of the stock ledger and may go
    negative: orders are never blocked on stock (backorders).
    """
    depot = models.ForeignKey(
        Depot,
        on_delete=models.CASCADE,
        related_name='variants',
        help_text="Depot holding this stock"
    )
    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='depot_variants',
        help_text="Catalog product"
    )
    name = models.CharField(
        max_length=100,
        help_text="Variant label, e.g. '1 L bottle'"
    )
    sale_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    closing_qty = models.IntegerField(
        default=0,
        help_text="Cached on-hand quantity, mirrors the stock ledger"
    )
    min_stock_qty = models.PositiveIntegerField(
        default=0,
        help_text="Threshold for low stock alerts"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Depot Product Variant'
        verbose_name_plural = 'Depot Product Variants'
        ordering = ['depot', 'product', 'name']
        indexes = [
            models.Index(fields=['depot', 'product'], name='inventory_d_depot_i_7b2f90_idx'),
        ]

    def __str__(self):
        return f"{self.product.name} ({self.name}) @ {self.depot.name}: {self.closing_qty}"

    @property
    def is_low_stock(self) -> bool:
        return self.closing_qty <= self.min_stock_qty


class StockLedgerEntry(models.Model):
    """
    Immutable stock movement.

    Rows are only ever inserted; saving an existing row or deleting one
    raises. ``module`` names the originating workflow (``cart``,
    ``cart-edit``, ``opening``...) and ``foreign_key`` the originating record.
    """
    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='ledger_entries'
    )
    variant = models.ForeignKey(
        DepotProductVariant,
        on_delete=models.PROTECT,
        related_name='ledger_entries'
    )
    depot = models.ForeignKey(
        Depot,
        on_delete=models.PROTECT,
        related_name='ledger_entries'
    )
    transaction_date = models.DateTimeField(default=timezone.now, db_index=True)
    received_qty = models.PositiveIntegerField(default=0)
    issued_qty = models.PositiveIntegerField(default=0)
    module = models.CharField(
        max_length=30,
        db_index=True,
        help_text="Originating workflow tag"
    )
    foreign_key = models.BigIntegerField(
        null=True,
        blank=True,
        help_text="Id of the originating record, e.g. the order id"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Stock Ledger Entry'
        verbose_name_plural = 'Stock Ledger Entries'
        ordering = ['-transaction_date', '-id']
        indexes = [
            models.Index(fields=['product', 'variant', 'depot'], name='inventory_s_product_c31d8e_idx'),
            models.Index(fields=['module', 'foreign_key'], name='inventory_s_module_5e0a47_idx'),
        ]

    def __str__(self):
        return (
            f"{self.module}#{self.foreign_key}: +{self.received_qty} "
            f"-{self.issued_qty} ({self.variant_id})"
        )

    @property
    def net_qty(self) -> int:
        return self.received_qty - self.issued_qty

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Stock ledger entries are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Stock ledger entries cannot be deleted")
