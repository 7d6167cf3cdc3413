"""
Serializers for wallet models.
"""
from rest_framework import serializers
from .models import Member, WalletTransaction


class MemberSerializer(serializers.ModelSerializer):
    """Serializer for Member with its cached wallet balance."""

    class Meta:
        model = Member
        fields = ['id', 'name', 'email', 'mobile', 'wallet_balance', 'created_at', 'updated_at']
        read_only_fields = ['id', 'wallet_balance', 'created_at', 'updated_at']


class WalletTransactionSerializer(serializers.ModelSerializer):
    signed_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = WalletTransaction
        fields = [
            'id', 'member', 'amount', 'signed_amount', 'type', 'status',
            'payment_method', 'reference_number', 'notes', 'processed_by',
            'created_at'
        ]
        read_only_fields = fields


class WalletAdjustmentSerializer(serializers.Serializer):
    """
    Request body for admin credit/debit.

    {
        "amount": "250.00",
        "reference": "UPI-88123",
        "notes": "Top-up at depot counter",
        "payment_method": "UPI"
    }
    """
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    payment_method = serializers.CharField(max_length=30, required=False, allow_blank=True)
