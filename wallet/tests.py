"""
Tests for wallet transactions and the cached member balance.
"""
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from core.exceptions import InsufficientFundsError, InvalidAmountError
from wallet import services
from wallet.models import Member, WalletTransaction


class WalletServiceTestCase(TestCase):

    def setUp(self):
        self.member = Member.objects.create(name='Asha', mobile='9000000001')

    def assertBalanceMatchesLedger(self):
        self.member.refresh_from_db()
        self.assertEqual(self.member.wallet_balance, services.ledger_balance(self.member.id))

    def test_credit_then_debit(self):
        services.credit(self.member.id, '500.00', reference='TOPUP-1')
        tx = services.debit(self.member.id, Decimal('120.50'), reference='2526-00001',
                            notes='Wallet deduction for order 2526-00001')

        self.assertEqual(tx.type, WalletTransaction.Type.DEBIT)
        self.assertEqual(tx.status, WalletTransaction.Status.PAID)
        self.assertEqual(tx.signed_amount, Decimal('-120.50'))
        self.member.refresh_from_db()
        self.assertEqual(self.member.wallet_balance, Decimal('379.50'))
        self.assertBalanceMatchesLedger()

    def test_debit_exceeding_balance_changes_nothing(self):
        services.credit(self.member.id, 500)

        with self.assertRaises(InsufficientFundsError) as context:
            services.debit(self.member.id, 600)

        self.assertEqual(context.exception.available, Decimal('500.00'))
        self.assertEqual(context.exception.requested, Decimal('600.00'))
        self.assertEqual(WalletTransaction.objects.filter(type='DEBIT').count(), 0)
        self.assertBalanceMatchesLedger()

    def test_debit_of_exact_balance(self):
        services.credit(self.member.id, 75)
        services.debit(self.member.id, 75)
        self.member.refresh_from_db()
        self.assertEqual(self.member.wallet_balance, Decimal('0.00'))

    def test_invalid_amounts(self):
        for amount in (0, -5, 'abc', None):
            with self.assertRaises(InvalidAmountError):
                services.credit(self.member.id, amount)
        self.assertEqual(WalletTransaction.objects.count(), 0)

    def test_unlocked_precheck(self):
        services.credit(self.member.id, 100)
        services.ensure_sufficient_balance(self.member.id, 100)
        with self.assertRaises(InsufficientFundsError):
            services.ensure_sufficient_balance(self.member.id, '100.01')

    def test_transactions_are_immutable(self):
        tx = services.credit(self.member.id, 10)
        tx.amount = Decimal('1000.00')
        with self.assertRaises(ValueError):
            tx.save()

    def test_rebuild_balance(self):
        services.credit(self.member.id, 300)
        services.debit(self.member.id, 100)
        Member.objects.filter(pk=self.member.pk).update(wallet_balance=Decimal('5.00'))

        with self.assertLogs('wallet.services', level='WARNING'):
            balance = services.rebuild_balance(self.member.id)

        self.assertEqual(balance, Decimal('200.00'))
        self.assertBalanceMatchesLedger()


class WalletAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.member = Member.objects.create(name='Rohan', mobile='9000000002')
        self.admin = get_user_model().objects.create_user(
            username='admin', password='secret', is_staff=True
        )

    def test_admin_credit_and_history(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            reverse('wallet:wallet-credit', args=[self.member.id]),
            {'amount': '250.00', 'reference': 'UPI-1', 'payment_method': 'UPI'},
            format='json'
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['wallet_balance'], '250.00')
        self.assertEqual(response.data['transaction']['processed_by'], self.admin.id)

        response = self.client.get(reverse('wallet:wallet-transactions', args=[self.member.id]))
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['payment_method'], 'UPI')

    def test_admin_debit_insufficient_funds(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            reverse('wallet:wallet-debit', args=[self.member.id]),
            {'amount': '10.00'},
            format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Insufficient Funds')
        self.assertEqual(response.data['available'], '0.00')

    def test_credit_requires_staff(self):
        response = self.client.post(
            reverse('wallet:wallet-credit', args=[self.member.id]),
            {'amount': '10.00'},
            format='json'
        )
        self.assertIn(response.status_code, (401, 403))
        self.assertEqual(WalletTransaction.objects.count(), 0)

    def test_balance_endpoint(self):
        services.credit(self.member.id, 40)
        response = self.client.get(reverse('wallet:wallet-balance', args=[self.member.id]))
        self.assertEqual(response.data['wallet_balance'], '40.00')
        self.assertEqual(response.data['ledger_balance'], '40.00')
