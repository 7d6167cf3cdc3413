"""
Tests for order settlement.

Test Cases:
1. Checkout totals, wallet debit and stock issue in one transaction
2. Wallet failure rolls back the whole checkout
3. Item add / quantity change / cancellation keep totals and stock consistent
4. Payment status state machine
5. Invoice binding, regeneration and soft failure
6. Audit trail
7. Concurrent checkouts get distinct order numbers
"""
import os
import shutil
import tempfile
import threading
from decimal import Decimal
from unittest.mock import MagicMock, patch

from django.core.files.storage import default_storage
from django.db import OperationalError, connection
from django.template import TemplateDoesNotExist
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from core.exceptions import (
    AmountMismatchError,
    ImmutableCancelledItemError,
    InsufficientFundsError,
    InvalidDepotError,
    InvalidTransitionError,
    OrderValidationError,
    ResolutionError,
)
from core.sequences import fiscal_year_label
from inventory import services as stock
from inventory.models import Depot, DepotProductVariant, Product, StockLedgerEntry
from orders import services
from orders.audit import get_order_audit_logs
from orders.invoices import bind_invoice, generate_and_attach_invoice
from orders.models import Order, OrderAuditLog, OrderItem
from wallet import services as wallet
from wallet.models import Member, WalletTransaction

MEDIA_ROOT = tempfile.mkdtemp(prefix='order-invoices-')

CUSTOMER = {
    'name': 'Meera Patil',
    'email': 'meera@example.com',
    'mobile': '9876543210',
    'address_line1': '12 Shivaji Nagar',
    'city': 'Pune',
    'state': 'MH',
    'pincode': '411005',
}


def tearDownModule():
    shutil.rmtree(MEDIA_ROOT, ignore_errors=True)


class OrderFixtureMixin:
    """Depot with one stocked variant, plus a member with wallet funds."""

    def create_fixtures(self):
        self.depot = Depot.objects.create(name='Pune Depot', is_online=True)
        self.product = Product.objects.create(name='Ghee', unit='500 ml', price=Decimal('340.00'))
        self.variant = DepotProductVariant.objects.create(
            depot=self.depot, product=self.product, name='500 ml', sale_price=Decimal('100.00')
        )
        stock.receive_stock(self.variant.id, 22, module=stock.MODULE_OPENING)
        self.member = Member.objects.create(name='Meera Patil', mobile='9876543210')
        wallet.credit(self.member.id, 500)

    def ghee_item(self, quantity=2, **overrides):
        item = {
            'name': 'Ghee',
            'variant_name': '500 ml',
            'price': '100.00',
            'quantity': quantity,
            'product_id': self.product.id,
            'depot_product_variant_id': self.variant.id,
        }
        item.update(overrides)
        return item

    def checkout(self, **kwargs):
        kwargs.setdefault('customer', CUSTOMER)
        kwargs.setdefault('items', [self.ghee_item()])
        kwargs.setdefault('delivery_fee', '10.00')
        return services.create_order(**kwargs)

    def closing_qty(self):
        self.variant.refresh_from_db()
        return self.variant.closing_qty

    def assertTotalsConsistent(self, order):
        order.refresh_from_db()
        live = sum(
            (i.line_total for i in order.items.filter(is_cancelled=False)), Decimal('0.00')
        )
        self.assertEqual(order.subtotal, live)
        self.assertEqual(order.total_amount, order.subtotal + order.delivery_fee)
        self.assertEqual(
            order.payable_amount,
            max(Decimal('0.00'), order.total_amount - order.wallet_amount_applied)
        )


@override_settings(MEDIA_ROOT=MEDIA_ROOT, ORDER_INVOICE_PREFIX='SNF')
class CheckoutTestCase(OrderFixtureMixin, TestCase):
    """Test cases for create_order."""

    def setUp(self):
        self.create_fixtures()
        self.label = fiscal_year_label()

    def test_checkout_computes_totals_and_issues_stock(self):
        """
        Given: 2 x 100.00 with a 10.00 delivery fee
        Then: subtotal 200, total 210, payable 210 and 2 units issued
        """
        result = self.checkout()
        order = result.order

        self.assertEqual(order.order_no, f'{self.label}-00001')
        self.assertEqual(order.subtotal, Decimal('200.00'))
        self.assertEqual(order.total_amount, Decimal('210.00'))
        self.assertEqual(order.payable_amount, Decimal('210.00'))
        self.assertEqual(order.payment_status, Order.PaymentStatus.PENDING)
        self.assertEqual(order.depot_id, self.depot.id)
        self.assertEqual(order.items.count(), 1)

        self.assertEqual(self.closing_qty(), 20)
        entry = StockLedgerEntry.objects.get(module=stock.MODULE_CART)
        self.assertEqual(entry.issued_qty, 2)
        self.assertEqual(entry.foreign_key, order.id)
        self.assertTotalsConsistent(order)

    def test_order_numbers_are_sequential(self):
        first = self.checkout().order
        second = self.checkout().order
        self.assertEqual(first.order_no, f'{self.label}-00001')
        self.assertEqual(second.order_no, f'{self.label}-00002')

    def test_wallet_payment_reduces_payable(self):
        result = self.checkout(member_id=self.member.id, wallet_amount_requested='100.00')
        order = result.order

        self.assertEqual(order.wallet_amount_applied, Decimal('100.00'))
        self.assertEqual(order.payable_amount, Decimal('110.00'))
        self.member.refresh_from_db()
        self.assertEqual(self.member.wallet_balance, Decimal('400.00'))

        debit = WalletTransaction.objects.get(type=WalletTransaction.Type.DEBIT)
        self.assertEqual(debit.reference_number, order.order_no)
        self.assertEqual(debit.notes, f'Wallet deduction for order {order.order_no}')

    def test_insufficient_wallet_creates_nothing(self):
        """
        Given: wallet balance 500
        When: checkout requests 600 from the wallet on a 610 order
        Then: InsufficientFundsError, no order, no stock movement
        """
        items = [self.ghee_item(quantity=6)]
        with self.assertRaises(InsufficientFundsError):
            self.checkout(items=items, member_id=self.member.id, wallet_amount_requested='600.00')

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(StockLedgerEntry.objects.filter(module=stock.MODULE_CART).count(), 0)
        self.assertEqual(self.closing_qty(), 22)

    def test_wallet_failure_inside_transaction_rolls_back(self):
        """The locked debit is authoritative even when the pre-check passed."""
        items = [self.ghee_item(quantity=6)]
        with patch('wallet.services.ensure_sufficient_balance'):
            with self.assertRaises(InsufficientFundsError):
                self.checkout(items=items, member_id=self.member.id, wallet_amount_requested='600.00')

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)
        self.assertEqual(StockLedgerEntry.objects.filter(module=stock.MODULE_CART).count(), 0)
        self.member.refresh_from_db()
        self.assertEqual(self.member.wallet_balance, Decimal('500.00'))

        # The failed attempt did not consume an order number
        self.assertEqual(self.checkout().order.order_no, f'{self.label}-00001')

    def test_wallet_requires_member(self):
        with self.assertRaises(OrderValidationError):
            self.checkout(wallet_amount_requested='50.00')

    def test_wallet_above_total_clamps_payable(self):
        """
        Given: a 210.00 order and a wallet balance of 500
        When: checkout requests 300.00 from the wallet
        Then: the full 300.00 is debited and payable clamps to 0
        """
        order = self.checkout(member_id=self.member.id, wallet_amount_requested='300.00').order

        self.assertEqual(order.total_amount, Decimal('210.00'))
        self.assertEqual(order.wallet_amount_applied, Decimal('300.00'))
        self.assertEqual(order.payable_amount, Decimal('0.00'))
        self.member.refresh_from_db()
        self.assertEqual(self.member.wallet_balance, Decimal('200.00'))
        self.assertTotalsConsistent(order)

    def test_unknown_member(self):
        with self.assertRaises(ResolutionError):
            self.checkout(member_id=999999)

    def test_client_amount_mismatch(self):
        with self.assertRaises(AmountMismatchError) as context:
            self.checkout(subtotal='150.00')
        self.assertEqual(context.exception.field, 'subtotal')
        self.assertEqual(Order.objects.count(), 0)

    def test_client_amount_within_tolerance(self):
        order = self.checkout(subtotal='200.50', total_amount='209.25').order
        self.assertEqual(order.total_amount, Decimal('210.00'))

    def test_invalid_depot(self):
        with self.assertRaises(InvalidDepotError):
            self.checkout(depot_id=999999)

    def test_validation_errors(self):
        with self.assertRaises(OrderValidationError):
            self.checkout(items=[])
        with self.assertRaises(OrderValidationError):
            self.checkout(items=[self.ghee_item(quantity=-1)])
        with self.assertRaises(OrderValidationError):
            self.checkout(items=[self.ghee_item(price='abc')])
        with self.assertRaises(OrderValidationError):
            self.checkout(customer={'name': 'No Address'})
        self.assertEqual(Order.objects.count(), 0)

    def test_backorder_does_not_block_checkout(self):
        result = self.checkout(items=[self.ghee_item(quantity=30)])

        self.assertEqual(self.closing_qty(), -8)
        self.assertTrue(result.stock_adjustments[0].backordered)
        self.assertEqual(result.order.subtotal, Decimal('3000.00'))

    def test_unknown_variant_reference_is_dropped(self):
        result = self.checkout(items=[self.ghee_item(depot_product_variant_id=999999)])

        item = result.order.items.get()
        self.assertIsNone(item.depot_product_variant_id)
        self.assertEqual(StockLedgerEntry.objects.filter(module=stock.MODULE_CART).count(), 0)
        self.assertEqual(self.closing_qty(), 22)

    def test_zero_quantity_items_issue_no_stock(self):
        self.checkout(items=[self.ghee_item(quantity=0), {'name': 'Carry bag', 'price': 5, 'quantity': 1}])
        self.assertEqual(StockLedgerEntry.objects.filter(module=stock.MODULE_CART).count(), 0)

    def test_invoice_bound_after_checkout(self):
        result = self.checkout()

        self.assertTrue(result.invoice_generated)
        self.assertEqual(result.order.invoice_no, f'SNF-{self.label}-00001')
        self.assertTrue(default_storage.exists(result.order.invoice_path))

    def test_invoice_failure_is_soft(self):
        with patch('orders.invoices.render_invoice',
                   side_effect=TemplateDoesNotExist('orders/invoice.html')):
            result = self.checkout()

        self.assertFalse(result.invoice_generated)
        self.assertTrue(result.invoice.error)
        self.assertTrue(Order.objects.filter(pk=result.order.pk).exists())
        self.assertIsNone(result.order.invoice_no)

    def test_checkout_without_invoice(self):
        result = self.checkout(generate_invoice=False)
        self.assertIsNone(result.invoice)
        self.assertFalse(result.order.has_invoice)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class OrderMutationTestCase(OrderFixtureMixin, TestCase):
    """Test cases for item and payment mutations on an existing order."""

    def setUp(self):
        self.create_fixtures()
        self.order = self.checkout().order
        self.item = self.order.items.get()
        self.user = None

    def test_add_item_recomputes_totals(self):
        """
        Given: order at 200 / 210 / 210
        When: adding one 50.00 item
        Then: 250 / 260 / 260
        """
        result = services.add_item(self.order.id, {'name': 'Butter', 'price': '50.00', 'quantity': 1})

        self.assertEqual(result.order.subtotal, Decimal('250.00'))
        self.assertEqual(result.order.total_amount, Decimal('260.00'))
        self.assertEqual(result.order.payable_amount, Decimal('260.00'))
        self.assertIsNone(result.stock_adjustment)
        self.assertTotalsConsistent(result.order)

        log = OrderAuditLog.objects.get(order=self.order, action=OrderAuditLog.Action.ITEM_ADDED)
        self.assertEqual(log.new_value['name'], 'Butter')

    def test_add_item_from_catalog_issues_stock(self):
        result = services.add_item(
            self.order.id, {'depot_product_variant_id': self.variant.id, 'quantity': 2}
        )

        self.assertEqual(result.item.name, 'Ghee')
        self.assertEqual(result.item.price, Decimal('100.00'))
        self.assertTrue(result.stock_adjustment.ok)
        self.assertEqual(self.closing_qty(), 18)
        self.assertEqual(StockLedgerEntry.objects.filter(module=stock.MODULE_CART_EDIT).count(), 1)

    def test_add_item_with_unknown_reference(self):
        with self.assertRaises(ResolutionError):
            services.add_item(self.order.id, {'product_id': 999999, 'quantity': 1})

    def test_add_item_without_name(self):
        with self.assertRaises(ResolutionError):
            services.add_item(self.order.id, {'price': '10.00', 'quantity': 1})

    def test_quantity_increase_issues_delta(self):
        """
        Given: item quantity 2, closing stock 20
        When: quantity becomes 5
        Then: closing stock 17 and one cart-edit entry issuing 3
        """
        self.assertEqual(self.closing_qty(), 20)

        result = services.update_item_quantity(self.order.id, self.item.id, 5)

        self.assertEqual(self.closing_qty(), 17)
        entry = StockLedgerEntry.objects.get(module=stock.MODULE_CART_EDIT)
        self.assertEqual(entry.issued_qty, 3)
        self.assertEqual(result.order.subtotal, Decimal('500.00'))
        self.assertTotalsConsistent(result.order)

        log = OrderAuditLog.objects.get(action=OrderAuditLog.Action.ITEM_QUANTITY_UPDATED)
        self.assertEqual(log.old_value['quantity'], 2)
        self.assertEqual(log.new_value['quantity'], 5)

    def test_quantity_decrease_does_not_restock(self):
        services.update_item_quantity(self.order.id, self.item.id, 1)

        self.assertEqual(self.closing_qty(), 20)
        self.assertEqual(StockLedgerEntry.objects.filter(module=stock.MODULE_CART_EDIT).count(), 0)

    def test_quantity_change_on_cancelled_item(self):
        services.toggle_item_cancellation(self.order.id, self.item.id, True)
        with self.assertRaises(ImmutableCancelledItemError):
            services.update_item_quantity(self.order.id, self.item.id, 3)

    def test_negative_quantity(self):
        with self.assertRaises(OrderValidationError):
            services.update_item_quantity(self.order.id, self.item.id, -1)

    def test_cancel_and_restore_touch_totals_not_stock(self):
        ledger_count = StockLedgerEntry.objects.count()

        result = services.toggle_item_cancellation(self.order.id, self.item.id, True)
        self.assertEqual(result.order.subtotal, Decimal('0.00'))
        self.assertEqual(result.order.total_amount, Decimal('10.00'))
        self.assertTotalsConsistent(result.order)

        result = services.toggle_item_cancellation(self.order.id, self.item.id, False)
        self.assertEqual(result.order.subtotal, Decimal('200.00'))
        self.assertEqual(result.order.total_amount, Decimal('210.00'))

        self.assertEqual(StockLedgerEntry.objects.count(), ledger_count)
        self.assertEqual(self.closing_qty(), 20)
        actions = list(OrderAuditLog.objects.order_by('id').values_list('action', flat=True))
        self.assertEqual(actions, [OrderAuditLog.Action.ITEM_CANCELLED, OrderAuditLog.Action.ITEM_RESTORED])

    def test_toggle_requires_boolean(self):
        with self.assertRaises(OrderValidationError):
            services.toggle_item_cancellation(self.order.id, self.item.id, 'yes')

    def test_mark_paid_transition(self):
        order = services.mark_paid(self.order.id, payment_mode='UPI', payment_ref_no='UTR123')

        self.assertEqual(order.payment_status, Order.PaymentStatus.PAID)
        self.assertEqual(order.payment_mode, 'UPI')
        log = OrderAuditLog.objects.get(action=OrderAuditLog.Action.PAYMENT_STATUS_UPDATED)
        self.assertEqual(log.old_value, {'payment_status': 'PENDING'})

        with self.assertRaises(InvalidTransitionError):
            services.mark_paid(self.order.id)

    def test_update_order_state_machine(self):
        services.update_order(self.order.id, {'payment_status': 'PAID'})
        order = services.update_order(self.order.id, {'payment_status': 'CANCELLED'})
        self.assertTrue(order.is_cancelled)

        for target in ('PENDING', 'PAID'):
            with self.assertRaises(InvalidTransitionError):
                services.update_order(self.order.id, {'payment_status': target})

    def test_paid_cannot_return_to_pending(self):
        services.mark_paid(self.order.id)
        with self.assertRaises(InvalidTransitionError):
            services.update_order(self.order.id, {'payment_status': 'PENDING'})

    def test_update_order_fields(self):
        order = services.update_order(
            self.order.id,
            {'delivery_date': '2026-11-02', 'payment_mode': 'CASH', 'name': 'ignored'}
        )
        self.assertEqual(str(order.delivery_date), '2026-11-02')
        self.assertEqual(order.payment_mode, 'CASH')
        self.assertEqual(order.name, CUSTOMER['name'])
        self.assertTrue(
            OrderAuditLog.objects.filter(action=OrderAuditLog.Action.ORDER_UPDATED).exists()
        )

    def test_update_order_without_allowed_fields(self):
        with self.assertRaises(OrderValidationError):
            services.update_order(self.order.id, {'subtotal': '1.00'})

    def test_needs_invoice_regeneration_after_paid_edit(self):
        result = services.add_item(self.order.id, {'name': 'Butter', 'price': '50.00', 'quantity': 1})
        self.assertFalse(result.needs_invoice_regeneration)

        services.mark_paid(self.order.id)
        result = services.add_item(self.order.id, {'name': 'Curd', 'price': '45.00', 'quantity': 1})
        self.assertTrue(result.needs_invoice_regeneration)

    def test_regenerated_invoice_shows_cancelled_items(self):
        first_invoice = self.order.invoice_no
        services.add_item(self.order.id, {'name': 'Butter', 'price': '50.00', 'quantity': 1})
        services.toggle_item_cancellation(self.order.id, self.item.id, True)

        result = generate_and_attach_invoice(self.order.id)

        self.assertNotEqual(result.invoice_no, first_invoice)
        with default_storage.open(result.invoice_path) as fh:
            html = fh.read().decode('utf-8')
        self.assertIn('(CANCELLED)', html)
        self.assertIn(result.invoice_no, html)

    def test_failed_invoice_binding_leaves_no_document(self):
        """
        Given: the order update keeps failing after the document is written
        When: the binder exhausts its retries
        Then: the order keeps its old invoice and no new file remains
        """
        def stored_files():
            return {
                os.path.join(root, name)
                for root, _, names in os.walk(MEDIA_ROOT) for name in names
            }

        before = stored_files()
        old_invoice = self.order.invoice_no
        with patch.object(Order, 'save', side_effect=OperationalError('database is locked')), \
                patch('core.concurrency.time.sleep'):
            result = bind_invoice(self.order.id)

        self.assertFalse(result.ok)
        self.assertEqual(stored_files(), before)
        self.order.refresh_from_db()
        self.assertEqual(self.order.invoice_no, old_invoice)

    def test_audit_log_read_is_newest_first(self):
        services.add_item(self.order.id, {'name': 'Butter', 'price': '50.00', 'quantity': 1})
        services.mark_paid(self.order.id)

        logs = get_order_audit_logs(self.order.id)
        self.assertEqual(
            [log['action'] for log in logs],
            [OrderAuditLog.Action.PAYMENT_STATUS_UPDATED, OrderAuditLog.Action.ITEM_ADDED]
        )
        self.assertEqual(len(get_order_audit_logs(self.order.id, limit=1)), 1)

    def test_audit_failure_does_not_break_mutation(self):
        with patch('orders.audit.OrderAuditLog.objects.create', side_effect=ValueError('boom')):
            result = services.add_item(self.order.id, {'name': 'Butter', 'price': '50.00', 'quantity': 1})
        self.assertEqual(result.order.subtotal, Decimal('250.00'))
        self.assertEqual(OrderAuditLog.objects.count(), 0)


@override_settings(MEDIA_ROOT=MEDIA_ROOT, RATE_LIMIT_ENABLED=False)
class OrderAPITestCase(OrderFixtureMixin, TestCase):

    def setUp(self):
        self.client = APIClient()
        self.create_fixtures()

    def payload(self, **overrides):
        data = {
            'customer': CUSTOMER,
            'items': [self.ghee_item()],
            'delivery_fee': '10.00',
            'subtotal': '200.00',
            'total_amount': '210.00',
        }
        data.update(overrides)
        return data

    def test_checkout(self):
        response = self.client.post(reverse('orders:order-checkout'), self.payload(), format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['order']['total_amount'], '210.00')
        self.assertEqual(response.data['order']['payable_amount'], '210.00')
        self.assertTrue(response.data['invoice_generated'])
        self.assertEqual(len(response.data['order']['items']), 1)

    def test_checkout_amount_mismatch(self):
        response = self.client.post(
            reverse('orders:order-checkout'), self.payload(total_amount='300.00'), format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Amount Mismatch')

    def test_checkout_insufficient_funds(self):
        response = self.client.post(
            reverse('orders:order-checkout'),
            self.payload(items=[self.ghee_item(quantity=6)], subtotal=None, total_amount=None,
                         member_id=self.member.id, wallet_amount='600.00'),
            format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Insufficient Funds')
        self.assertEqual(Order.objects.count(), 0)

    def test_checkout_rejects_malformed_body(self):
        response = self.client.post(reverse('orders:order-checkout'), {'items': []}, format='json')
        self.assertEqual(response.status_code, 400)

    @override_settings(RATE_LIMIT_ENABLED=True)
    def test_checkout_rate_limited(self):
        client = MagicMock()
        client.incr.return_value = 11
        client.ttl.return_value = 42
        with patch('core.rate_limiting.get_redis_client', return_value=client):
            response = self.client.post(reverse('orders:order-checkout'), self.payload(), format='json')

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['Retry-After'], '42')
        self.assertEqual(Order.objects.count(), 0)

    def test_list_search_and_lookup(self):
        order = services.create_order(CUSTOMER, [self.ghee_item()], delivery_fee=10).order

        response = self.client.get(reverse('orders:order-list'), {'search': '98765'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get(reverse('orders:order-list'), {'search': 'nobody'})
        self.assertEqual(response.data['count'], 0)
        response = self.client.get(reverse('orders:order-list'), {'start_date': '2000-01-01'})
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(reverse('orders:order-lookup', args=[order.order_no]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['id'], order.id)

    def test_item_endpoints(self):
        order = services.create_order(CUSTOMER, [self.ghee_item()], delivery_fee=10).order
        item = order.items.get()

        response = self.client.post(
            reverse('orders:order-item-add', args=[order.id]),
            {'name': 'Butter', 'price': '50.00', 'quantity': 1},
            format='json'
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['order']['total_amount'], '260.00')
        self.assertFalse(response.data['needs_invoice_regeneration'])

        response = self.client.patch(
            reverse('orders:order-item-quantity', args=[order.id, item.id]),
            {'quantity': 5}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['stock_adjusted'])

        response = self.client.patch(
            reverse('orders:order-item-cancellation', args=[order.id, item.id]),
            {'is_cancelled': True}, format='json'
        )
        self.assertEqual(response.data['order']['subtotal'], '50.00')

        response = self.client.patch(
            reverse('orders:order-item-quantity', args=[order.id, item.id]),
            {'quantity': 1}, format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Cancelled Item')

        response = self.client.get(reverse('orders:order-audit-logs', args=[order.id]))
        self.assertEqual(len(response.data['logs']), 3)

    def test_mark_paid_and_patch(self):
        order = services.create_order(CUSTOMER, [self.ghee_item()], delivery_fee=10).order

        response = self.client.post(
            reverse('orders:order-mark-paid', args=[order.id]), {'payment_mode': 'UPI'}, format='json'
        )
        self.assertEqual(response.data['payment_status'], 'PAID')

        response = self.client.patch(
            reverse('orders:order-detail', args=[order.id]), {'payment_status': 'PENDING'}, format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Invalid Status Transition')

    def test_invoice_download_regenerates(self):
        order = services.create_order(CUSTOMER, [self.ghee_item()], delivery_fee=10).order

        response = self.client.get(reverse('orders:order-invoice-download', args=[order.id]))

        self.assertEqual(response.status_code, 200)
        self.assertIn('attachment', response['Content-Disposition'])
        body = b''.join(response.streaming_content).decode('utf-8')
        response.close()
        order.refresh_from_db()
        self.assertNotEqual(order.invoice_no, None)
        self.assertIn(order.invoice_no, body)
        self.assertTrue(order.invoice_no.endswith('-00002'))

    def test_audit_log_paging(self):
        order = services.create_order(CUSTOMER, [self.ghee_item()], delivery_fee=10).order
        services.mark_paid(order.id, payment_mode='UPI')
        services.toggle_item_cancellation(order.id, order.items.get().id, True)
        url = reverse('orders:order-audit-logs', args=[order.id])

        response = self.client.get(url, {'limit': '-5'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data['logs']), 1)

        response = self.client.get(url, {'limit': '1', 'offset': '1'})
        self.assertEqual(len(response.data['logs']), 1)
        self.assertEqual(response.data['order_no'], order.order_no)

        response = self.client.get(url, {'limit': 'all'})
        self.assertEqual(response.status_code, 400)

    def test_unknown_order_is_404(self):
        response = self.client.get(reverse('orders:order-detail', args=[999999]))
        self.assertEqual(response.status_code, 404)
        response = self.client.post(reverse('orders:order-mark-paid', args=[999999]), {}, format='json')
        self.assertEqual(response.status_code, 404)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class ConcurrentCheckoutTestCase(OrderFixtureMixin, TransactionTestCase):
    """
    Concurrent checkouts against real row locks (or SQLite write locks).
    Uses TransactionTestCase for proper multi-threading support.
    """

    def setUp(self):
        self.create_fixtures()

    def run_concurrently(self, target, count):
        results, errors = [], []
        lock = threading.Lock()

        def worker():
            try:
                value = target()
                with lock:
                    results.append(value)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results, errors

    def test_concurrent_checkouts_get_distinct_numbers(self):
        """
        Given: 22 units on hand
        When: eight checkouts of 3 units run at once
        Then: order numbers are distinct and contiguous, every order is placed
            and the depot is backordered by 2
        """
        label = fiscal_year_label()
        results, errors = self.run_concurrently(
            lambda: self.checkout(items=[self.ghee_item(quantity=3)]).order.order_no, 8
        )

        self.assertEqual(errors, [])
        self.assertEqual(sorted(results), [f'{label}-{i:05d}' for i in range(1, 9)])
        self.assertEqual(self.closing_qty(), 22 - 24)
        self.assertEqual(StockLedgerEntry.objects.filter(module=stock.MODULE_CART).count(), 8)
        invoices = set(Order.objects.values_list('invoice_no', flat=True))
        self.assertEqual(len(invoices), 8)
        self.assertNotIn(None, invoices)

    def test_concurrent_wallet_checkouts_never_overdraw(self):
        """
        Given: wallet balance 500
        When: two checkouts each pay 300 from the wallet
        Then: exactly one succeeds and the balance ends at 200
        """
        items = [self.ghee_item(quantity=3)]
        results, errors = self.run_concurrently(
            lambda: self.checkout(items=items, member_id=self.member.id,
                                  wallet_amount_requested='300.00').order.id,
            2
        )

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], InsufficientFundsError)
        self.member.refresh_from_db()
        self.assertEqual(self.member.wallet_balance, Decimal('200.00'))
        self.assertEqual(self.member.wallet_balance, wallet.ledger_balance(self.member.id))
        self.assertEqual(Order.objects.count(), 1)
