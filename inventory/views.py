"""
Inventory API Views with optimized queries.

Implements:
- CRUD operations for Depot, Product and DepotProductVariant
- Stock ledger listing with depot/variant/module filters
- On-hand query, stock receipt and cache rebuild per variant
"""
from django.db.models import F, Q
from rest_framework import generics, status
from rest_framework.views import APIView
from rest_framework.response import Response

from . import services
from .models import Depot, DepotProductVariant, Product, StockLedgerEntry
from .serializers import (
    DepotSerializer,
    DepotProductVariantSerializer,
    ProductSerializer,
    StockLedgerEntrySerializer,
    StockReceiptSerializer,
)


# =============================================================================
# Depot Views
# =============================================================================

class DepotListCreateView(generics.ListCreateAPIView):
    """
    GET: List active depots
    POST: Create a new depot
    """
    queryset = Depot.objects.filter(is_active=True)
    serializer_class = DepotSerializer


class DepotDetailView(generics.RetrieveUpdateAPIView):
    queryset = Depot.objects.all()
    serializer_class = DepotSerializer


# =============================================================================
# Product Views
# =============================================================================

class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET: List active products
    POST: Create a new product

    Query Parameters:
        - q: Keyword to search in name and description
    """
    serializer_class = ProductSerializer

    def get_queryset(self):
        queryset = Product.objects.filter(is_active=True)
        keyword = self.request.query_params.get('q', '').strip()
        if keyword:
            queryset = queryset.filter(
                Q(name__icontains=keyword) |
                Q(description__icontains=keyword)
            )
        return queryset.order_by('name')


class ProductDetailView(generics.RetrieveUpdateAPIView):
    queryset = Product.objects.all()
    serializer_class = ProductSerializer


# =============================================================================
# Depot Variant Views
# =============================================================================

class VariantListCreateView(generics.ListCreateAPIView):
    """
    GET: List depot variants with depot and product info
    POST: Create a new depot variant (starts at zero stock)

    Query Parameters:
        - depot_id: Filter by depot
        - product_id: Filter by product
        - low_stock: Show only low stock variants (true/false)

    Uses select_related to eliminate N+1 queries.
    """
    serializer_class = DepotProductVariantSerializer

    def get_queryset(self):
        queryset = DepotProductVariant.objects.select_related('depot', 'product')

        depot_id = self.request.query_params.get('depot_id')
        if depot_id:
            queryset = queryset.filter(depot_id=depot_id)

        product_id = self.request.query_params.get('product_id')
        if product_id:
            queryset = queryset.filter(product_id=product_id)

        low_stock = self.request.query_params.get('low_stock', '').lower()
        if low_stock == 'true':
            queryset = queryset.filter(closing_qty__lte=F('min_stock_qty'))

        return queryset.order_by('depot__name', 'product__name', 'name')


class VariantDetailView(generics.RetrieveUpdateAPIView):
    serializer_class = DepotProductVariantSerializer

    def get_queryset(self):
        return DepotProductVariant.objects.select_related('depot', 'product')


class VariantOnHandView(APIView):
    """
    GET: Ledger-derived on-hand quantity next to the cached closing quantity.
    """

    def get(self, request, pk):
        variant = DepotProductVariant.objects.get(pk=pk)
        on_hand = services.current_on_hand(variant.product_id, variant.id, variant.depot_id)
        return Response({
            'variant_id': variant.id,
            'closing_qty': variant.closing_qty,
            'ledger_on_hand': on_hand,
            'in_sync': on_hand == variant.closing_qty,
        })


class VariantReceiveView(APIView):
    """POST: Receive stock (opening balance or inward receipt) into a variant."""

    def post(self, request, pk):
        serializer = StockReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        closing = services.receive_stock(
            pk, data['quantity'], module=data['module'], origin_id=data.get('origin_id')
        )
        return Response({'variant_id': pk, 'closing_qty': closing}, status=status.HTTP_201_CREATED)


class VariantRebuildView(APIView):
    """POST: Replay the ledger into the variant's cached closing quantity."""

    def post(self, request, pk):
        closing = services.rebuild_closing_qty(pk)
        return Response({'variant_id': pk, 'closing_qty': closing})


# =============================================================================
# Stock Ledger Views
# =============================================================================

class StockLedgerListView(generics.ListAPIView):
    """
    GET: Stock ledger entries, newest first.

    Query Parameters:
        - depot_id, variant_id, product_id: Filter by location or item
        - module: Workflow tag (cart, cart-edit, opening, receipt)
        - origin_id: Originating record id, e.g. an order id
    """
    serializer_class = StockLedgerEntrySerializer

    def get_queryset(self):
        queryset = StockLedgerEntry.objects.select_related('product', 'variant', 'depot')
        params = self.request.query_params

        for param, field in (('depot_id', 'depot_id'), ('variant_id', 'variant_id'),
                             ('product_id', 'product_id'), ('origin_id', 'foreign_key')):
            value = params.get(param)
            if value:
                queryset = queryset.filter(**{field: value})

        module = params.get('module')
        if module:
            queryset = queryset.filter(module=module)

        return queryset.order_by('-transaction_date', '-id')
