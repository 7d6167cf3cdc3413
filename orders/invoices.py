"""
Invoice Binder - renders an order invoice and binds it to the order.

Runs outside the order's own transaction. Every call allocates a fresh
invoice number and writes a fresh document, so edits such as cancelled
items are always reflected; nothing is reused from an earlier run.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import DatabaseError, transaction
from django.template import TemplateDoesNotExist, TemplateSyntaxError
from django.template.loader import render_to_string
from django.utils import timezone

from core.concurrency import run_with_retry
from core.exceptions import SequenceConflictError
from core.sequences import allocate_invoice_number, max_existing_identifier
from .models import Order

logger = logging.getLogger(__name__)


@dataclass
class InvoiceResult:
    """Outcome of an invoice run; ``ok`` is False on a soft failure."""
    order_id: int
    ok: bool
    invoice_no: Optional[str] = None
    invoice_path: Optional[str] = None
    error: str = ''


def build_invoice_context(order: Order, invoice_no: str) -> dict:
    """Snapshot of the order used to render the invoice."""
    items = list(order.items.all())
    paid = order.is_paid
    return {
        'invoice_no': invoice_no,
        'invoice_date': timezone.localdate(),
        'order': order,
        'depot': order.depot,
        'items': [
            {
                'name': item.display_name,
                'price': item.price,
                'quantity': item.quantity,
                'line_total': item.line_total,
                'is_cancelled': item.is_cancelled,
            }
            for item in items
        ],
        'totals': {
            'subtotal': order.subtotal,
            'delivery_fee': order.delivery_fee,
            'total_amount': order.total_amount,
            'wallet_amount': order.wallet_amount_applied,
            'payable_amount': order.payable_amount,
        },
        'payment': {
            'status': order.payment_status,
            'mode': order.payment_mode,
            'reference': order.payment_ref_no,
            'date': order.payment_date,
            'paid_amount': order.payable_amount if paid else 0,
            'due_amount': 0 if paid else order.payable_amount,
        },
    }


def render_invoice(order: Order, invoice_no: str) -> str:
    return render_to_string('orders/invoice.html', build_invoice_context(order, invoice_no))


def _invoice_storage_name(invoice_no: str) -> str:
    sub_ledger = settings.ORDER_INVOICE_PREFIX or 'general'
    return f"{settings.INVOICE_STORAGE_DIR}/{sub_ledger.lower()}/{invoice_no}.html"


def _discard(path: str) -> None:
    try:
        default_storage.delete(path)
        logger.info(f"Removed orphaned invoice document {path}")
    except OSError as e:
        logger.error(f"Could not remove orphaned invoice document {path}: {e}")


def generate_and_attach_invoice(order_id: int) -> InvoiceResult:
    """
    Render a new invoice for an order and record it on the order.

    Raises on failure; see bind_invoice for the best-effort variant. A
    document written by an attempt whose transaction rolls back is removed.
    """
    def _bind():
        path = None
        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().select_related('depot').get(pk=order_id)
                invoice_no = allocate_invoice_number(
                    settings.ORDER_INVOICE_PREFIX,
                    seed=max_existing_identifier(Order.objects, 'invoice_no'),
                )
                html = render_invoice(order, invoice_no)
                path = default_storage.save(
                    _invoice_storage_name(invoice_no),
                    ContentFile(html.encode('utf-8'))
                )
                order.invoice_no = invoice_no
                order.invoice_path = path
                order.save(update_fields=['invoice_no', 'invoice_path', 'updated_at'])
        except DatabaseError:
            if path:
                _discard(path)
            raise
        return InvoiceResult(order_id, ok=True, invoice_no=invoice_no, invoice_path=path)

    result = run_with_retry(_bind)
    logger.info(f"Invoice {result.invoice_no} bound to order #{order_id} at {result.invoice_path}")
    return result


def bind_invoice(order_id: int) -> InvoiceResult:
    """
    Best-effort invoice generation.

    Never raises for rendering, storage or numbering failures; the caller
    decides whether a failed InvoiceResult matters.
    """
    try:
        return generate_and_attach_invoice(order_id)
    except (DatabaseError, OSError, SequenceConflictError,
            TemplateDoesNotExist, TemplateSyntaxError, Order.DoesNotExist) as e:
        logger.error(f"Invoice generation failed for order #{order_id}: {e}")
        return InvoiceResult(order_id, ok=False, error=str(e))
