"""
Order Service Layer - checkout and admin order mutations.

Every operation here is one atomic unit of work:
1. Lock the order (or allocate a new order number)
2. Write the order and its items
3. Recompute subtotal / total / payable from non-cancelled items
4. Debit the wallet when requested (fatal on failure)
5. Issue stock through the ledger (best effort, logged on failure)

Totals invariants hold before every commit:
    total_amount = round(subtotal + delivery_fee, 2)
    payable_amount = max(0, total_amount - wallet_amount_applied)

Stock is issued on checkout, item addition and quantity increase only.
Quantity decreases and item cancellation do not return stock.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils.dateparse import parse_date, parse_datetime

from core.concurrency import run_with_retry
from core.exceptions import (
    AmountMismatchError,
    ImmutableCancelledItemError,
    InvalidDepotError,
    InvalidTransitionError,
    OrderValidationError,
    ResolutionError,
)
from core.sequences import allocate_order_number, max_existing_identifier
from inventory import services as stock
from inventory.models import Depot, DepotProductVariant, Product
from wallet import services as wallet
from wallet.models import Member
from .audit import log_order_change
from .invoices import InvoiceResult, bind_invoice
from .models import Order, OrderAuditLog, OrderItem

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

REQUIRED_CUSTOMER_FIELDS = ('name', 'mobile', 'address_line1', 'city', 'pincode')
OPTIONAL_CUSTOMER_FIELDS = ('email', 'address_line2', 'state')

PAYMENT_TRANSITIONS = {
    Order.PaymentStatus.PENDING: {Order.PaymentStatus.PAID, Order.PaymentStatus.CANCELLED},
    Order.PaymentStatus.PAID: {Order.PaymentStatus.CANCELLED},
    Order.PaymentStatus.CANCELLED: set(),
}

UPDATABLE_ORDER_FIELDS = (
    'payment_status', 'payment_mode', 'payment_ref_no', 'payment_date', 'delivery_date',
)


@dataclass
class CheckoutResult:
    """Committed order plus the outcome of its best-effort side effects."""
    order: Order
    stock_adjustments: List[stock.StockAdjustment] = field(default_factory=list)
    invoice: Optional[InvoiceResult] = None

    @property
    def invoice_generated(self) -> bool:
        return bool(self.invoice and self.invoice.ok)


@dataclass
class ItemMutationResult:
    order: Order
    item: OrderItem
    stock_adjustment: Optional[stock.StockAdjustment] = None

    @property
    def needs_invoice_regeneration(self) -> bool:
        return self.order.is_paid and self.order.has_invoice


# =============================================================================
# Validation helpers
# =============================================================================

def to_money(value, label: str) -> Decimal:
    """Parse a non-negative amount rounded to 2 decimals."""
    if isinstance(value, bool) or value is None:
        raise OrderValidationError(f"{label} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise OrderValidationError(f"{label} must be a number")
    if not amount.is_finite() or amount < 0:
        raise OrderValidationError(f"{label} must be a non-negative number")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(value, label: str) -> int:
    """Parse a non-negative whole quantity."""
    if isinstance(value, bool) or value is None:
        raise OrderValidationError(f"{label} must be a non-negative integer")
    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise OrderValidationError(f"{label} must be a non-negative integer")
    if not quantity.is_finite() or quantity < 0 or quantity != quantity.to_integral_value():
        raise OrderValidationError(f"{label} must be a non-negative integer")
    return int(quantity)


def compute_totals(subtotal: Decimal, delivery_fee: Decimal,
                   wallet_applied: Decimal) -> Tuple[Decimal, Decimal]:
    """Return (total_amount, payable_amount) for the given components."""
    total = (subtotal + delivery_fee).quantize(CENT, rounding=ROUND_HALF_UP)
    payable = max(ZERO, total - wallet_applied).quantize(CENT, rounding=ROUND_HALF_UP)
    return total, payable


def validate_customer(customer) -> Dict[str, str]:
    """
    Validate the customer snapshot.

    Raises:
        OrderValidationError: If the payload is missing or incomplete
    """
    if not isinstance(customer, dict):
        raise OrderValidationError("Customer info is required")
    missing = [f for f in REQUIRED_CUSTOMER_FIELDS if not str(customer.get(f) or '').strip()]
    if missing:
        raise OrderValidationError(f"Missing required customer fields: {', '.join(missing)}")
    snapshot = {f: str(customer[f]).strip() for f in REQUIRED_CUSTOMER_FIELDS}
    for f in OPTIONAL_CUSTOMER_FIELDS:
        snapshot[f] = str(customer.get(f) or '').strip()
    return snapshot


def validate_order_items(items: List[Dict]) -> List[Dict]:
    """
    Validate checkout items and return normalized copies with line totals.

    Args:
        items: List of dicts with 'name', 'price', 'quantity' and optional
            'variant_name', 'image_url', 'product_id', 'depot_product_variant_id'

    Raises:
        OrderValidationError: If validation fails
    """
    if not isinstance(items, (list, tuple)) or not items:
        raise OrderValidationError("Order must contain at least one item")

    prepared = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise OrderValidationError(f"Item {idx}: invalid item")
        name = str(item.get('name') or '').strip()
        if not name:
            raise OrderValidationError(f"Item {idx}: missing 'name'")
        price = to_money(item.get('price'), f"Item {idx}: price")
        quantity = to_quantity(item.get('quantity'), f"Item {idx}: quantity")
        prepared.append({
            'name': name,
            'variant_name': item.get('variant_name') or None,
            'image_url': item.get('image_url') or None,
            'price': price,
            'quantity': quantity,
            'line_total': (price * quantity).quantize(CENT),
            'product_id': item.get('product_id') or None,
            'depot_product_variant_id': item.get('depot_product_variant_id') or None,
        })
    return prepared


def check_client_amount(label: str, submitted, computed: Decimal) -> None:
    """Reject client totals further than the configured tolerance from ours."""
    if submitted is None:
        return
    submitted_amount = to_money(submitted, label)
    if abs(submitted_amount - computed) > settings.ORDER_AMOUNT_TOLERANCE:
        raise AmountMismatchError(label, submitted_amount, computed)


def resolve_depot(depot_id=None) -> Optional[Depot]:
    """
    Pick the fulfilling depot.

    Without an explicit id the configured default is used, then the first
    active online depot. Guest checkout without any depot is allowed.
    """
    if depot_id in (None, ''):
        default_id = settings.ORDER_DEFAULT_DEPOT_ID
        if default_id:
            depot = Depot.objects.filter(pk=default_id, is_active=True).first()
            if depot is None:
                raise InvalidDepotError(f"Configured default depot {default_id} not found")
            return depot
        depot = Depot.objects.filter(is_online=True, is_active=True).order_by('id').first()
        if depot:
            logger.info(f"Using default online depot {depot.id}")
        return depot

    try:
        return Depot.objects.get(pk=int(depot_id), is_active=True)
    except (Depot.DoesNotExist, TypeError, ValueError):
        raise InvalidDepotError(f"Depot {depot_id} not found or inactive")


def _existing_ids(model, ids) -> set:
    wanted = {i for i in ids if i}
    if not wanted:
        return set()
    try:
        return set(model.objects.filter(pk__in=wanted).values_list('pk', flat=True))
    except (TypeError, ValueError):
        return set()


def _drop_dangling_references(prepared: List[Dict]) -> None:
    """Null out product/variant references that do not exist."""
    products = _existing_ids(Product, [i['product_id'] for i in prepared])
    variants = _existing_ids(DepotProductVariant, [i['depot_product_variant_id'] for i in prepared])
    for item in prepared:
        if item['product_id'] and item['product_id'] not in products:
            logger.warning(f"Unknown product {item['product_id']} on item {item['name']}, dropping reference")
            item['product_id'] = None
        if item['depot_product_variant_id'] and item['depot_product_variant_id'] not in variants:
            logger.warning(
                f"Unknown depot variant {item['depot_product_variant_id']} on item "
                f"{item['name']}, dropping reference"
            )
            item['depot_product_variant_id'] = None


def _parse_datetime(value, label: str) -> Optional[datetime]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value
    parsed = parse_datetime(str(value))
    if parsed is None:
        day = parse_date(str(value))
        if day is None:
            raise OrderValidationError(f"Invalid {label}: {value}")
        parsed = datetime(day.year, day.month, day.day)
    return parsed


def _parse_date(value, label: str) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = _parse_datetime(value, label)
    return parsed.date()


# =============================================================================
# Totals
# =============================================================================

def recompute_order_totals(order: Order) -> Order:
    """
    Recompute subtotal from non-cancelled items and persist the totals.

    Must run inside the transaction that changed the items.
    """
    subtotal = order.items.filter(is_cancelled=False).aggregate(
        total=Sum('line_total')
    )['total'] or ZERO
    order.subtotal = Decimal(subtotal).quantize(CENT)
    order.total_amount, order.payable_amount = compute_totals(
        order.subtotal, order.delivery_fee, order.wallet_amount_applied
    )
    order.save(update_fields=['subtotal', 'total_amount', 'payable_amount', 'updated_at'])
    return order


def _locked_order(order_id: int) -> Order:
    return Order.objects.select_for_update().get(pk=order_id)


def _fresh_order(order_id: int) -> Order:
    return Order.objects.select_related('depot', 'member').prefetch_related('items').get(pk=order_id)


# =============================================================================
# Checkout
# =============================================================================

def create_order(customer: Dict, items: List[Dict], delivery_fee=0,
                 depot_id=None, member_id: Optional[int] = None,
                 wallet_amount_requested=0, subtotal=None, total_amount=None,
                 payment_mode: Optional[str] = None,
                 payment_ref_no: Optional[str] = None,
                 delivery_date=None,
                 generate_invoice: bool = True) -> CheckoutResult:
    """
    Create an order from checkout.

    Server-side totals are authoritative; client ``subtotal`` and
    ``total_amount`` are only checked against them within tolerance.

    Args:
        customer: Snapshot with name, mobile, address_line1, city, pincode
            and optional email, address_line2, state
        items: Line items, see validate_order_items
        delivery_fee: Delivery charge added to the subtotal
        depot_id: Fulfilling depot; defaults per resolve_depot
        member_id: Customer account, None for guest checkout
        wallet_amount_requested: Amount to pay from the member's wallet
        subtotal: Client-computed subtotal, optional
        total_amount: Client-computed total, optional
        generate_invoice: Run the invoice binder after commit

    Returns:
        CheckoutResult with the committed order

    Raises:
        OrderValidationError: Malformed input (and its subclasses)
        InsufficientFundsError: Wallet balance below the requested amount
        SequenceConflictError: Order number allocation kept conflicting
    """
    snapshot = validate_customer(customer)
    prepared = validate_order_items(items)
    fee = to_money(delivery_fee or 0, 'delivery_fee')
    wallet_amount = to_money(wallet_amount_requested or 0, 'wallet_amount_requested')

    computed_subtotal = sum((i['line_total'] for i in prepared), ZERO)
    computed_total, payable = compute_totals(computed_subtotal, fee, wallet_amount)
    check_client_amount('subtotal', subtotal, computed_subtotal)
    check_client_amount('total_amount', total_amount, computed_total)

    depot = resolve_depot(depot_id)

    if member_id:
        if not Member.objects.filter(pk=member_id).exists():
            raise ResolutionError(f"Member {member_id} not found")
    if wallet_amount > 0:
        if not member_id:
            raise OrderValidationError("Wallet payment requires a member account")
        wallet.ensure_sufficient_balance(member_id, wallet_amount)

    _drop_dangling_references(prepared)
    parsed_delivery_date = _parse_date(delivery_date, 'delivery_date')

    def _place() -> Tuple[Order, List[stock.StockAdjustment]]:
        with transaction.atomic():
            order_no = allocate_order_number(
                seed=max_existing_identifier(Order.objects, 'order_no')
            )
            order = Order.objects.create(
                order_no=order_no,
                member_id=member_id or None,
                depot=depot,
                subtotal=computed_subtotal,
                delivery_fee=fee,
                total_amount=computed_total,
                wallet_amount_applied=wallet_amount,
                payable_amount=payable,
                payment_mode=payment_mode,
                payment_ref_no=payment_ref_no,
                delivery_date=parsed_delivery_date,
                **snapshot
            )
            OrderItem.objects.bulk_create([OrderItem(order=order, **item) for item in prepared])

            if wallet_amount > 0:
                wallet.debit(
                    member_id,
                    wallet_amount,
                    reference=order.order_no,
                    notes=f"Wallet deduction for order {order.order_no}",
                )

            adjustments = []
            for item in prepared:
                if item['depot_product_variant_id'] and item['quantity'] > 0:
                    adjustments.append(stock.issue_stock(
                        item['depot_product_variant_id'],
                        item['quantity'],
                        module=stock.MODULE_CART,
                        origin_id=order.id,
                        depot_id=depot.id if depot else None,
                    ))
            return order, adjustments

    order, adjustments = run_with_retry(_place)
    failed = [a for a in adjustments if not a.ok]
    if failed:
        logger.warning(f"Order {order.order_no}: {len(failed)} stock adjustment(s) failed")

    logger.info(
        f"Order {order.order_no} created: {len(prepared)} items, total {computed_total}, "
        f"wallet {wallet_amount}, payable {payable}"
    )

    _queue_confirmation(order.id)

    invoice = bind_invoice(order.id) if generate_invoice else None
    return CheckoutResult(order=_fresh_order(order.id), stock_adjustments=adjustments, invoice=invoice)


def _queue_confirmation(order_id: int) -> None:
    def _send():
        try:
            from .tasks import send_order_confirmation
            send_order_confirmation.delay(order_id)
        except Exception as e:
            # Don't fail the order if task queuing fails
            logger.error(f"Failed to queue confirmation task: {e}")

    transaction.on_commit(_send)


# =============================================================================
# Item mutations
# =============================================================================

def add_item(order_id: int, item_data: Dict, user_id: Optional[int] = None) -> ItemMutationResult:
    """
    Append an item to an existing order.

    Name and price come from the request when given, otherwise from the
    referenced depot variant or catalog product.

    Raises:
        OrderValidationError: Bad price or quantity
        ResolutionError: Unknown reference, or no name could be resolved
        Order.DoesNotExist: Unknown order
    """
    if not isinstance(item_data, dict):
        raise OrderValidationError("Item details are required")
    quantity = to_quantity(item_data.get('quantity'), 'quantity')
    if quantity <= 0:
        raise OrderValidationError("Quantity must be positive")

    variant_id = item_data.get('depot_product_variant_id') or None
    product_id = item_data.get('product_id') or None
    name = str(item_data.get('name') or '').strip() or None
    variant_name = item_data.get('variant_name') or None
    price = item_data.get('price')

    if variant_id or product_id:
        catalog = stock.resolve_catalog_item(product_id=product_id, variant_id=variant_id)
        name = name or catalog.name
        variant_name = variant_name or catalog.variant_name
        product_id = product_id or catalog.product_id
        variant_id = catalog.variant_id
        if price is None:
            price = catalog.price
    if not name:
        raise ResolutionError("Item name could not be resolved")
    price = to_money(price, 'price')
    line_total = (price * quantity).quantize(CENT)

    with transaction.atomic():
        order = _locked_order(order_id)
        item = OrderItem.objects.create(
            order=order,
            product_id=product_id,
            depot_product_variant_id=variant_id,
            name=name,
            variant_name=variant_name,
            image_url=item_data.get('image_url') or None,
            price=price,
            quantity=quantity,
            line_total=line_total,
        )
        recompute_order_totals(order)

        adjustment = None
        if variant_id:
            adjustment = stock.issue_stock(
                variant_id, quantity,
                module=stock.MODULE_CART_EDIT,
                origin_id=order.id,
                depot_id=order.depot_id,
            )

    label = f"{name} ({variant_name})" if variant_name else name
    log_order_change(
        order_id, user_id, OrderAuditLog.Action.ITEM_ADDED,
        f"Added item: {label} - Qty: {quantity} - Price: {price}",
        old_value=None,
        new_value={
            'item_id': item.id,
            'product_id': product_id,
            'depot_product_variant_id': variant_id,
            'name': name,
            'variant_name': variant_name,
            'price': price,
            'quantity': quantity,
            'line_total': line_total,
        },
    )
    logger.info(f"Order #{order_id}: added {quantity}x {label}, new total {order.total_amount}")
    return ItemMutationResult(order=_fresh_order(order_id), item=item, stock_adjustment=adjustment)


def update_item_quantity(order_id: int, item_id: int, new_quantity,
                         user_id: Optional[int] = None) -> ItemMutationResult:
    """
    Change an item's quantity and recompute the order totals.

    Increases issue the extra units from stock; decreases return nothing
    to stock.

    Raises:
        OrderValidationError: Negative or non-integer quantity
        ImmutableCancelledItemError: The item is cancelled
        OrderItem.DoesNotExist / Order.DoesNotExist: Unknown ids
    """
    quantity = to_quantity(new_quantity, 'quantity')

    with transaction.atomic():
        order = _locked_order(order_id)
        item = OrderItem.objects.select_for_update().get(pk=item_id, order=order)
        if item.is_cancelled:
            raise ImmutableCancelledItemError("Cannot edit a cancelled item")

        old_quantity = item.quantity
        old_line_total = item.line_total
        delta = quantity - old_quantity

        item.quantity = quantity
        item.line_total = (item.price * quantity).quantize(CENT)
        item.save(update_fields=['quantity', 'line_total', 'updated_at'])
        recompute_order_totals(order)

        adjustment = None
        if delta > 0 and item.depot_product_variant_id:
            adjustment = stock.issue_stock(
                item.depot_product_variant_id, delta,
                module=stock.MODULE_CART_EDIT,
                origin_id=order.id,
                depot_id=order.depot_id,
            )

    log_order_change(
        order_id, user_id, OrderAuditLog.Action.ITEM_QUANTITY_UPDATED,
        f"Updated quantity for {item.display_name}: {old_quantity} -> {quantity}",
        old_value={'item_id': item.id, 'quantity': old_quantity, 'line_total': old_line_total},
        new_value={'item_id': item.id, 'quantity': quantity, 'line_total': item.line_total},
    )
    logger.info(f"Order #{order_id}: item {item_id} quantity {old_quantity} -> {quantity}")
    return ItemMutationResult(order=_fresh_order(order_id), item=item, stock_adjustment=adjustment)


def toggle_item_cancellation(order_id: int, item_id: int, is_cancelled,
                             user_id: Optional[int] = None) -> ItemMutationResult:
    """
    Cancel or restore an item. Cancelled items drop out of the subtotal;
    stock is not touched either way.
    """
    if not isinstance(is_cancelled, bool):
        raise OrderValidationError("is_cancelled (boolean) is required")

    with transaction.atomic():
        order = _locked_order(order_id)
        item = OrderItem.objects.select_for_update().get(pk=item_id, order=order)
        was_cancelled = item.is_cancelled
        item.is_cancelled = is_cancelled
        item.save(update_fields=['is_cancelled', 'updated_at'])
        recompute_order_totals(order)

    action = OrderAuditLog.Action.ITEM_CANCELLED if is_cancelled else OrderAuditLog.Action.ITEM_RESTORED
    log_order_change(
        order_id, user_id, action,
        f"{'Cancelled' if is_cancelled else 'Restored'} item: {item.display_name}",
        old_value={'item_id': item.id, 'is_cancelled': was_cancelled},
        new_value={'item_id': item.id, 'is_cancelled': is_cancelled},
    )
    return ItemMutationResult(order=_fresh_order(order_id), item=item)


# =============================================================================
# Payment status and field updates
# =============================================================================

def ensure_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if target not in Order.PaymentStatus.values:
        raise OrderValidationError(f"Unknown payment status {target}")
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


def mark_paid(order_id: int, payment_mode: Optional[str] = None,
              payment_ref_no: Optional[str] = None, payment_date=None,
              user_id: Optional[int] = None) -> Order:
    """
    Move a PENDING order to PAID and record payment details.

    Raises:
        InvalidTransitionError: The order is not PENDING
    """
    paid_at = _parse_datetime(payment_date, 'payment_date')

    with transaction.atomic():
        order = _locked_order(order_id)
        previous = order.payment_status
        ensure_transition(previous, Order.PaymentStatus.PAID)
        order.payment_status = Order.PaymentStatus.PAID
        order.payment_mode = payment_mode
        order.payment_ref_no = payment_ref_no
        order.payment_date = paid_at
        order.save(update_fields=[
            'payment_status', 'payment_mode', 'payment_ref_no', 'payment_date', 'updated_at'
        ])

    log_order_change(
        order_id, user_id, OrderAuditLog.Action.PAYMENT_STATUS_UPDATED,
        f"Order marked as PAID with mode: {payment_mode or 'N/A'}",
        old_value={'payment_status': previous},
        new_value={
            'payment_status': Order.PaymentStatus.PAID,
            'payment_mode': payment_mode,
            'payment_ref_no': payment_ref_no,
            'payment_date': paid_at,
        },
    )
    logger.info(f"Order #{order_id} marked PAID (was {previous})")
    return _fresh_order(order_id)


def update_order(order_id: int, changes: Dict, user_id: Optional[int] = None) -> Order:
    """
    Update payment and delivery fields of an order.

    Allowed fields: payment_status, payment_mode, payment_ref_no,
    payment_date, delivery_date. Payment status changes must follow the
    payment state machine.
    """
    data = {k: changes[k] for k in UPDATABLE_ORDER_FIELDS if k in (changes or {})}
    if not data:
        raise OrderValidationError("No valid fields to update")
    if 'payment_date' in data:
        data['payment_date'] = _parse_datetime(data['payment_date'], 'payment_date')
    if 'delivery_date' in data:
        data['delivery_date'] = _parse_date(data['delivery_date'], 'delivery_date')

    with transaction.atomic():
        order = _locked_order(order_id)
        old_value = {f: getattr(order, f) for f in UPDATABLE_ORDER_FIELDS}
        target = data.get('payment_status')
        if target is not None and target != order.payment_status:
            ensure_transition(order.payment_status, target)
        for key, value in data.items():
            setattr(order, key, value)
        order.save(update_fields=list(data.keys()) + ['updated_at'])

    log_order_change(
        order_id, user_id, OrderAuditLog.Action.ORDER_UPDATED,
        f"Order updated: {', '.join(data.keys())}",
        old_value=old_value,
        new_value=data,
    )
    return _fresh_order(order_id)

