"""
Tests for the stock ledger and its cached closing quantity.

Test Cases:
1. Every movement writes one ledger row and moves closing_qty by the same delta
2. Issuing beyond on-hand is allowed (backorder) and flagged
3. Failed issues leave no ledger row and no cache change
4. Ledger rows are immutable
5. Cache rebuild from the ledger
6. Catalog lookup
"""
from decimal import Decimal

from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from core.exceptions import ResolutionError
from inventory import services
from inventory.models import Depot, DepotProductVariant, Product, StockLedgerEntry


class StockLedgerTestCase(TestCase):
    """Ledger writer and cache invariant."""

    def setUp(self):
        self.depot = Depot.objects.create(name='Pune Depot', is_online=True)
        self.other_depot = Depot.objects.create(name='Nashik Depot')
        self.product = Product.objects.create(name='Cow Milk', unit='1 L', price=Decimal('64.00'))
        self.variant = DepotProductVariant.objects.create(
            depot=self.depot, product=self.product, name='1 L', sale_price=Decimal('62.00')
        )

    def assertCacheMatchesLedger(self, variant):
        variant.refresh_from_db()
        self.assertEqual(
            variant.closing_qty,
            services.current_on_hand(variant.product_id, variant.id, variant.depot_id)
        )

    def test_receive_then_issue(self):
        self.assertEqual(services.receive_stock(self.variant.id, 20, module=services.MODULE_OPENING), 20)

        result = services.issue_stock(self.variant.id, 3, module=services.MODULE_CART, origin_id=11)

        self.assertTrue(result.ok)
        self.assertFalse(result.backordered)
        self.assertEqual(result.closing_qty, 17)
        self.assertCacheMatchesLedger(self.variant)

        entry = StockLedgerEntry.objects.get(module=services.MODULE_CART)
        self.assertEqual(entry.issued_qty, 3)
        self.assertEqual(entry.received_qty, 0)
        self.assertEqual(entry.foreign_key, 11)
        self.assertEqual(entry.depot_id, self.depot.id)
        self.assertEqual(entry.net_qty, -3)

    def test_issue_beyond_on_hand_is_backordered(self):
        services.receive_stock(self.variant.id, 2)

        with self.assertLogs('inventory.services', level='WARNING') as logs:
            result = services.issue_stock(self.variant.id, 5, module=services.MODULE_CART, origin_id=1)

        self.assertTrue(result.ok)
        self.assertTrue(result.backordered)
        self.assertEqual(result.closing_qty, -3)
        self.assertTrue(any('Insufficient stock' in line for line in logs.output))
        self.assertCacheMatchesLedger(self.variant)

    def test_issue_for_unknown_variant_is_soft_failure(self):
        result = services.issue_stock(999999, 2, module=services.MODULE_CART, origin_id=1)

        self.assertFalse(result.ok)
        self.assertTrue(result.error)
        self.assertEqual(StockLedgerEntry.objects.count(), 0)

    def test_issue_without_variant_or_quantity_does_nothing(self):
        self.assertFalse(services.issue_stock(None, 2, module='cart', origin_id=1).ok)
        self.assertFalse(services.issue_stock(self.variant.id, 0, module='cart', origin_id=1).ok)
        self.assertEqual(StockLedgerEntry.objects.count(), 0)

    def test_issue_uses_variant_depot_on_mismatch(self):
        with self.assertLogs('inventory.services', level='WARNING'):
            result = services.issue_stock(
                self.variant.id, 1, module='cart', origin_id=1, depot_id=self.other_depot.id
            )
        self.assertTrue(result.ok)
        self.assertEqual(StockLedgerEntry.objects.get().depot_id, self.depot.id)

    def test_receive_rejects_non_positive_quantity(self):
        with self.assertRaises(ValueError):
            services.receive_stock(self.variant.id, 0)

    def test_ledger_entries_are_immutable(self):
        services.receive_stock(self.variant.id, 5)
        entry = StockLedgerEntry.objects.get()

        entry.received_qty = 50
        with self.assertRaises(ValueError):
            entry.save()
        with self.assertRaises(ValueError):
            entry.delete()

    def test_rebuild_restores_drifted_cache(self):
        services.receive_stock(self.variant.id, 10)
        services.issue_stock(self.variant.id, 4, module='cart', origin_id=1)
        DepotProductVariant.objects.filter(pk=self.variant.pk).update(closing_qty=99)

        with self.assertLogs('inventory.services', level='WARNING'):
            rebuilt = services.rebuild_closing_qty(self.variant.id)

        self.assertEqual(rebuilt, 6)
        self.assertCacheMatchesLedger(self.variant)


class CatalogLookupTestCase(TestCase):

    def setUp(self):
        self.depot = Depot.objects.create(name='Pune Depot')
        self.product = Product.objects.create(name='Paneer', unit='200 g', price=Decimal('95.00'))
        self.variant = DepotProductVariant.objects.create(
            depot=self.depot, product=self.product, name='200 g pack', sale_price=Decimal('90.00')
        )

    def test_variant_lookup_uses_depot_price(self):
        item = services.resolve_catalog_item(variant_id=self.variant.id)
        self.assertEqual(item.name, 'Paneer')
        self.assertEqual(item.variant_name, '200 g pack')
        self.assertEqual(item.price, Decimal('90.00'))
        self.assertEqual(item.product_id, self.product.id)

    def test_product_lookup(self):
        item = services.resolve_catalog_item(product_id=self.product.id)
        self.assertEqual(item.price, Decimal('95.00'))
        self.assertIsNone(item.variant_id)

    def test_unknown_references_raise(self):
        with self.assertRaises(ResolutionError):
            services.resolve_catalog_item(variant_id=424242)
        with self.assertRaises(ResolutionError):
            services.resolve_catalog_item(product_id=424242)
        with self.assertRaises(ResolutionError):
            services.resolve_catalog_item()


class InventoryAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.depot = Depot.objects.create(name='Pune Depot')
        self.product = Product.objects.create(name='Curd', unit='500 g', price=Decimal('45.00'))
        self.variant = DepotProductVariant.objects.create(
            depot=self.depot, product=self.product, name='500 g', min_stock_qty=5
        )

    def test_receive_and_on_hand(self):
        response = self.client.post(
            reverse('inventory:variant-receive', args=[self.variant.id]),
            {'quantity': 12, 'module': 'opening'},
            format='json'
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['closing_qty'], 12)

        response = self.client.get(reverse('inventory:variant-on-hand', args=[self.variant.id]))
        self.assertEqual(response.data['ledger_on_hand'], 12)
        self.assertTrue(response.data['in_sync'])

    def test_ledger_listing_filters_by_module(self):
        services.receive_stock(self.variant.id, 10, module=services.MODULE_OPENING)
        services.issue_stock(self.variant.id, 2, module=services.MODULE_CART, origin_id=7)

        response = self.client.get(reverse('inventory:stock-ledger'), {'module': 'cart'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['issued_qty'], 2)
        self.assertEqual(response.data['results'][0]['foreign_key'], 7)

    def test_low_stock_filter(self):
        response = self.client.get(reverse('inventory:variant-list'), {'low_stock': 'true'})
        self.assertEqual(response.data['count'], 1)

        services.receive_stock(self.variant.id, 50)
        response = self.client.get(reverse('inventory:variant-list'), {'low_stock': 'true'})
        self.assertEqual(response.data['count'], 0)

    def test_closing_qty_is_read_only(self):
        response = self.client.patch(
            reverse('inventory:variant-detail', args=[self.variant.id]),
            {'closing_qty': 500},
            format='json'
        )
        self.assertEqual(response.status_code, 200)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.closing_qty, 0)

    def test_unknown_variant_is_404(self):
        response = self.client.get(reverse('inventory:variant-on-hand', args=[999999]))
        self.assertEqual(response.status_code, 404)
