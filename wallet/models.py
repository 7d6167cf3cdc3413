"""
Wallet Models - Member accounts and their prepaid wallet ledger.

Member.wallet_balance is a running total of the member's
WalletTransaction rows: credits minus debits.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class Member(models.Model):
    """
    Customer account holding a prepaid wallet.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='member',
        help_text="Login account, if the member has one"
    )
    name = models.CharField(max_length=200, db_index=True)
    email = models.EmailField(blank=True, default='')
    mobile = models.CharField(max_length=20, blank=True, default='', db_index=True)
    wallet_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        help_text="Denormalized running balance of wallet transactions"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Member'
        verbose_name_plural = 'Members'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} (balance {self.wallet_balance})"


class WalletTransaction(models.Model):
    """
    Append-only wallet movement. Each row is paired with exactly one
    balance change on the owning member.
    """

    class Type(models.TextChoices):
        CREDIT = 'CREDIT', 'Credit'
        DEBIT = 'DEBIT', 'Debit'

    class Status(models.TextChoices):
        PENDING = 'PENDING', 'Pending'
        PAID = 'PAID', 'Paid'
        FAILED = 'FAILED', 'Failed'

    member = models.ForeignKey(
        Member,
        on_delete=models.PROTECT,
        related_name='wallet_transactions'
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    type = models.CharField(max_length=10, choices=Type.choices, db_index=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.PAID
    )
    payment_method = models.CharField(max_length=30, blank=True, default='')
    reference_number = models.CharField(max_length=100, blank=True, default='', db_index=True)
    notes = models.TextField(blank=True, default='')
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='processed_wallet_transactions',
        help_text="Admin who processed the transaction"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        verbose_name = 'Wallet Transaction'
        verbose_name_plural = 'Wallet Transactions'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['member', 'type'], name='wallet_wall_member__9d41c2_idx'),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} for member {self.member_id}"

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type == self.Type.CREDIT else -self.amount

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Wallet transactions are immutable")
        super().save(*args, **kwargs)
