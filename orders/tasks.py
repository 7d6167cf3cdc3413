"""
Celery tasks for order processing.

Tasks:
    - generate_order_invoice: Async invoice regeneration with retry
    - send_order_confirmation: Notification after checkout commits
"""
import logging
from celery import shared_task
from django.db import DatabaseError

from core.exceptions import SequenceConflictError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(DatabaseError, OSError, SequenceConflictError),
    retry_backoff=True
)
def generate_order_invoice(self, order_id: int):
    """
    Render a fresh invoice for the order and bind it.

    Database, storage and numbering failures are retried with backoff.

    Args:
        order_id: ID of the order to invoice

    Returns:
        Dict with the bound invoice number and path
    """
    from orders.invoices import generate_and_attach_invoice
    from orders.models import Order

    try:
        result = generate_and_attach_invoice(order_id)
    except Order.DoesNotExist:
        logger.error(f"Order #{order_id} not found for invoice generation")
        return {'status': 'error', 'message': f'Order {order_id} not found'}

    logger.info(f"[CELERY] Invoice {result.invoice_no} generated for order #{order_id}")
    return {
        'status': 'success',
        'order_id': order_id,
        'invoice_no': result.invoice_no,
        'invoice_path': result.invoice_path,
    }


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(DatabaseError,),
    retry_backoff=True
)
def send_order_confirmation(self, order_id: int):
    """
    Async task triggered after the checkout transaction commits.

    Args:
        order_id: ID of the placed order

    Returns:
        Dict with confirmation details
    """
    from orders.models import Order

    try:
        order = Order.objects.select_related('depot').prefetch_related('items').get(id=order_id)
    except Order.DoesNotExist:
        logger.error(f"Order #{order_id} not found for confirmation")
        return {'status': 'error', 'message': f'Order {order_id} not found'}

    if order.is_cancelled:
        logger.warning(f"Order {order.order_no} is cancelled, skipping confirmation")
        return {
            'status': 'skipped',
            'message': f'Order {order.order_no} is cancelled'
        }

    items_summary = [
        f"  - {item.quantity}x {item.display_name} @ {item.price}"
        for item in order.items.all() if not item.is_cancelled
    ]

    confirmation_message = f"""
    ===============================================
    ORDER CONFIRMATION - {order.order_no}
    ===============================================
    Customer: {order.name} ({order.mobile})
    Depot: {order.depot.name if order.depot else 'N/A'}
    Total: {order.total_amount}
    Paid from wallet: {order.wallet_amount_applied}
    Payable: {order.payable_amount}
    Invoice: {order.invoice_no or 'pending'}

    Items:
    {chr(10).join(items_summary)}

    Created: {order.created_at.strftime('%Y-%m-%d %H:%M:%S')}
    ===============================================
    """

    logger.info(confirmation_message)

    return {
        'status': 'success',
        'order_id': order.id,
        'order_no': order.order_no,
        'message': f'Confirmation sent for order {order.order_no}'
    }
