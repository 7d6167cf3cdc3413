"""
Wallet API Views.

Implements:
- GET /members/ - List members
- GET /members/{id}/wallet/ - Balance with ledger cross-check
- GET /members/{id}/wallet/transactions/ - Transaction history
- POST /members/{id}/wallet/credit/ - Admin top-up or refund
- POST /members/{id}/wallet/debit/ - Admin debit
- POST /members/{id}/wallet/rebuild/ - Replay transactions into the balance
"""
import logging

from django.db.models import Q
from rest_framework import generics, status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .models import Member, WalletTransaction
from .serializers import (
    MemberSerializer,
    WalletAdjustmentSerializer,
    WalletTransactionSerializer,
)

logger = logging.getLogger(__name__)


class MemberListView(generics.ListAPIView):
    """
    GET: List members.

    Query Parameters:
        - q: Matches name, mobile or email
    """
    serializer_class = MemberSerializer

    def get_queryset(self):
        queryset = Member.objects.all()
        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(mobile__icontains=keyword) |
                Q(email__icontains=keyword)
            )
        return queryset.order_by('name')


class WalletBalanceView(APIView):

    def get(self, request, pk):
        member = Member.objects.get(pk=pk)
        return Response({
            'member_id': member.id,
            'wallet_balance': str(member.wallet_balance),
            'ledger_balance': str(services.ledger_balance(member.id)),
        })


class WalletTransactionListView(generics.ListAPIView):
    """
    GET: Wallet history for a member, newest first.

    Query Parameters:
        - type: CREDIT or DEBIT
    """
    serializer_class = WalletTransactionSerializer

    def get_queryset(self):
        queryset = WalletTransaction.objects.filter(member_id=self.kwargs['pk'])
        tx_type = self.request.query_params.get('type', '').upper()
        if tx_type in WalletTransaction.Type.values:
            queryset = queryset.filter(type=tx_type)
        return queryset.order_by('-created_at', '-id')


class _WalletAdjustmentView(APIView):
    permission_classes = [IsAdminUser]
    operation = None
    default_payment_method = ''

    def post(self, request, pk):
        serializer = WalletAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        wallet_tx = self.operation(
            pk,
            data['amount'],
            reference=data['reference'],
            notes=data['notes'],
            payment_method=data.get('payment_method') or self.default_payment_method,
            processed_by_id=request.user.id,
        )
        member = Member.objects.get(pk=pk)
        return Response({
            'transaction': WalletTransactionSerializer(wallet_tx).data,
            'wallet_balance': str(member.wallet_balance),
        }, status=status.HTTP_201_CREATED)


class WalletCreditView(_WalletAdjustmentView):
    operation = staticmethod(services.credit)
    default_payment_method = 'ADMIN_CREDIT'


class WalletDebitView(_WalletAdjustmentView):
    operation = staticmethod(services.debit)
    default_payment_method = 'ADMIN_DEBIT'


class WalletRebuildView(APIView):
    permission_classes = [IsAdminUser]

    def post(self, request, pk):
        balance = services.rebuild_balance(pk)
        return Response({'member_id': pk, 'wallet_balance': str(balance)})
