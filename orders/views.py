"""
Order API Views.

Implements:
- GET /orders/ - List orders with search and date filters
- POST /orders/checkout/ - Checkout (rate limited)
- GET/PATCH /orders/{id}/ - Order detail and payment/delivery field update
- GET /orders/lookup/{order_no}/ - Lookup by order number
- POST /orders/{id}/items/ - Add item
- PATCH /orders/{id}/items/{item_id}/quantity/ - Change item quantity
- PATCH /orders/{id}/items/{item_id}/cancellation/ - Cancel or restore item
- POST /orders/{id}/mark-paid/ - PENDING -> PAID
- POST /orders/{id}/invoice/ - Regenerate invoice
- GET /orders/{id}/invoice/download/ - Regenerate and download invoice
- GET /orders/{id}/audit-logs/ - Audit trail

Service errors are rendered by core.exceptions.api_exception_handler.
"""
import logging

from django.core.files.storage import default_storage
from django.db.models import Q
from django.http import FileResponse
from django.utils.dateparse import parse_date
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.rate_limiting import rate_limit
from . import services
from .audit import get_order_audit_logs
from .invoices import bind_invoice
from .models import Order
from .serializers import (
    AddItemSerializer,
    CheckoutSerializer,
    ItemCancellationSerializer,
    ItemQuantitySerializer,
    MarkPaidSerializer,
    OrderListSerializer,
    OrderSerializer,
    OrderUpdateSerializer,
)

logger = logging.getLogger(__name__)


def _user_id(request):
    return request.user.id if request.user and request.user.is_authenticated else None


def _order_queryset():
    return Order.objects.select_related('depot', 'member').prefetch_related('items')


def _mutation_response(result, status_code=status.HTTP_200_OK):
    adjustment = result.stock_adjustment
    return Response({
        'order': OrderSerializer(result.order).data,
        'item_id': result.item.id,
        'stock_adjusted': bool(adjustment and adjustment.ok),
        'needs_invoice_regeneration': result.needs_invoice_regeneration,
    }, status=status_code)


class OrderListView(generics.ListAPIView):
    """
    GET: List orders, newest first.

    Query Parameters:
        - search: Matches order number, customer name, mobile, email or city
        - payment_status: PENDING, PAID or CANCELLED
        - depot_id: Filter by depot
        - start_date / end_date: Inclusive creation date range (YYYY-MM-DD)
    """
    serializer_class = OrderListSerializer

    def get_queryset(self):
        queryset = _order_queryset()
        params = self.request.query_params

        search = params.get('search', '').strip()
        if search:
            queryset = queryset.filter(
                Q(order_no__icontains=search) |
                Q(name__icontains=search) |
                Q(mobile__icontains=search) |
                Q(email__icontains=search) |
                Q(city__icontains=search)
            )

        status_filter = params.get('payment_status', '').upper()
        if status_filter in Order.PaymentStatus.values:
            queryset = queryset.filter(payment_status=status_filter)

        depot_id = params.get('depot_id')
        if depot_id:
            queryset = queryset.filter(depot_id=depot_id)

        start_date = parse_date(params.get('start_date', '') or '')
        if start_date:
            queryset = queryset.filter(created_at__date__gte=start_date)
        end_date = parse_date(params.get('end_date', '') or '')
        if end_date:
            queryset = queryset.filter(created_at__date__lte=end_date)

        return queryset.order_by('-created_at', '-id')


class CheckoutView(APIView):
    """
    POST: Place an order.

    Returns:
        - 201: Order created; ``invoice_generated`` is False when the
          invoice could not be produced
        - 400: Validation, amount mismatch or insufficient wallet funds
        - 409: Order number allocation kept conflicting
    """

    @rate_limit(max_requests=10, window_seconds=60)
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = services.create_order(
            customer=dict(data['customer']),
            items=[dict(item) for item in data['items']],
            delivery_fee=data['delivery_fee'],
            depot_id=data.get('depot_id'),
            member_id=data.get('member_id'),
            wallet_amount_requested=data['wallet_amount'],
            subtotal=data.get('subtotal'),
            total_amount=data.get('total_amount'),
            payment_mode=data.get('payment_mode') or None,
            payment_ref_no=data.get('payment_ref_no') or None,
            delivery_date=data.get('delivery_date'),
        )

        invoice = result.invoice
        return Response({
            'order': OrderSerializer(result.order).data,
            'invoice_generated': result.invoice_generated,
            'invoice_error': invoice.error if invoice and not invoice.ok else None,
            'backordered_variants': [
                a.variant_id for a in result.stock_adjustments if a.backordered
            ],
        }, status=status.HTTP_201_CREATED)


class OrderDetailView(generics.RetrieveAPIView):
    """
    GET: Retrieve order details with all items.
    PATCH: Update payment_status, payment_mode, payment_ref_no,
           payment_date or delivery_date.
    """
    serializer_class = OrderSerializer

    def get_queryset(self):
        return _order_queryset()

    def patch(self, request, pk):
        serializer = OrderUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        order = services.update_order(pk, dict(serializer.validated_data), user_id=_user_id(request))
        return Response(OrderSerializer(order).data)


class OrderLookupView(generics.RetrieveAPIView):
    """GET: Retrieve an order by its order number."""
    serializer_class = OrderSerializer
    lookup_field = 'order_no'

    def get_queryset(self):
        return _order_queryset()


class OrderItemAddView(APIView):

    def post(self, request, pk):
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.add_item(pk, dict(serializer.validated_data), user_id=_user_id(request))
        return _mutation_response(result, status.HTTP_201_CREATED)


class OrderItemQuantityView(APIView):

    def patch(self, request, pk, item_id):
        serializer = ItemQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.update_item_quantity(
            pk, item_id, serializer.validated_data['quantity'], user_id=_user_id(request)
        )
        return _mutation_response(result)


class OrderItemCancellationView(APIView):

    def patch(self, request, pk, item_id):
        serializer = ItemCancellationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.toggle_item_cancellation(
            pk, item_id, serializer.validated_data['is_cancelled'], user_id=_user_id(request)
        )
        return _mutation_response(result)


class MarkPaidView(APIView):

    def post(self, request, pk):
        serializer = MarkPaidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        order = services.mark_paid(
            pk,
            payment_mode=data.get('payment_mode') or None,
            payment_ref_no=data.get('payment_ref_no') or None,
            payment_date=data.get('payment_date'),
            user_id=_user_id(request),
        )
        return Response(OrderSerializer(order).data)


class InvoiceGenerateView(APIView):
    """
    POST: Generate a fresh invoice for the order.

    Query Parameters:
        - async: 'true' queues the Celery task instead of rendering inline
    """

    def post(self, request, pk):
        order = Order.objects.get(pk=pk)

        if request.query_params.get('async', '').lower() == 'true':
            from .tasks import generate_order_invoice
            generate_order_invoice.delay(order.id)
            return Response({'order_id': order.id, 'queued': True}, status=status.HTTP_202_ACCEPTED)

        result = bind_invoice(order.id)
        if not result.ok:
            return Response(
                {'error': 'Invoice Error', 'detail': result.error},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return Response({
            'order_id': order.id,
            'invoice_no': result.invoice_no,
            'invoice_path': result.invoice_path,
        }, status=status.HTTP_201_CREATED)


class InvoiceDownloadView(APIView):
    """GET: Regenerate the invoice and stream it as an attachment."""

    def get(self, request, pk):
        order = Order.objects.get(pk=pk)
        result = bind_invoice(order.id)
        if not result.ok:
            return Response(
                {'error': 'Invoice Error', 'detail': result.error},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR
            )
        return FileResponse(
            default_storage.open(result.invoice_path, 'rb'),
            as_attachment=True,
            filename=f"{result.invoice_no}.html",
            content_type='text/html',
        )


class OrderAuditLogView(APIView):
    """
    GET: Audit entries for an order, newest first.

    Query Parameters:
        - limit: Max entries (default 50, capped at 200)
        - offset: Entries to skip
    """

    def get(self, request, pk):
        order = Order.objects.only('id', 'order_no').get(pk=pk)
        try:
            limit = min(max(int(request.query_params.get('limit', 50)), 1), 200)
            offset = max(int(request.query_params.get('offset', 0)), 0)
        except ValueError:
            return Response(
                {'error': 'Validation Error', 'detail': 'limit and offset must be integers'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response({
            'order_id': order.id,
            'order_no': order.order_no,
            'logs': get_order_audit_logs(order.id, limit=limit, offset=offset),
        })
