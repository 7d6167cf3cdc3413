"""
Inventory Service Layer - stock ledger writer and catalog lookup.

Every stock movement is written twice in the same transaction:
1. An immutable StockLedgerEntry row
2. A matching F() adjustment of DepotProductVariant.closing_qty

Issuing stock never blocks on availability. Shortfalls are logged as
warnings and the caller proceeds (backorder policy).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.core.exceptions import ObjectDoesNotExist
from django.db import DatabaseError, transaction
from django.db.models import F, Sum

from core.exceptions import ResolutionError
from .models import DepotProductVariant, Product, StockLedgerEntry

logger = logging.getLogger(__name__)

MODULE_CART = 'cart'
MODULE_CART_EDIT = 'cart-edit'
MODULE_OPENING = 'opening'
MODULE_RECEIPT = 'receipt'


@dataclass
class StockAdjustment:
    """Outcome of a best-effort stock movement."""
    variant_id: Optional[int]
    quantity: int
    ok: bool
    error: str = ''
    closing_qty: Optional[int] = None
    backordered: bool = False


@dataclass
class CatalogItem:
    """Display data resolved from the catalog."""
    name: str
    variant_name: Optional[str]
    price: Decimal
    unit: str
    product_id: Optional[int]
    variant_id: Optional[int]


def record(product_id: int, variant_id: int, depot_id: int,
           received_qty: int, issued_qty: int, module: str,
           origin_id: Optional[int]) -> None:
    """
    Append one stock ledger entry.

    Callers must pair this with an equal closing_qty adjustment inside the
    same transaction (see issue_stock / receive_stock).
    """
    StockLedgerEntry.objects.create(
        product_id=product_id,
        variant_id=variant_id,
        depot_id=depot_id,
        received_qty=received_qty,
        issued_qty=issued_qty,
        module=module,
        foreign_key=origin_id,
    )


def current_on_hand(product_id: int, variant_id: int, depot_id: int) -> int:
    """Return sum(received) - sum(issued) for a (product, variant, depot)."""
    totals = StockLedgerEntry.objects.filter(
        product_id=product_id,
        variant_id=variant_id,
        depot_id=depot_id
    ).aggregate(received=Sum('received_qty'), issued=Sum('issued_qty'))
    return (totals['received'] or 0) - (totals['issued'] or 0)


def _apply_movement(variant: DepotProductVariant, received: int, issued: int,
                    module: str, origin_id: Optional[int]) -> int:
    record(
        product_id=variant.product_id,
        variant_id=variant.id,
        depot_id=variant.depot_id,
        received_qty=received,
        issued_qty=issued,
        module=module,
        origin_id=origin_id,
    )
    DepotProductVariant.objects.filter(pk=variant.pk).update(
        closing_qty=F('closing_qty') + received - issued
    )
    variant.refresh_from_db(fields=['closing_qty'])
    return variant.closing_qty


def issue_stock(variant_id: Optional[int], quantity: int, module: str,
                origin_id: Optional[int],
                depot_id: Optional[int] = None) -> StockAdjustment:
    """
    Issue ``quantity`` units of a depot variant, best effort.

    Runs inside a savepoint so a failure here leaves the caller's
    transaction usable. Never raises for data problems; the returned
    StockAdjustment tells the caller what happened.

    Args:
        variant_id: DepotProductVariant id
        quantity: Units to issue (must be positive)
        module: Workflow tag written on the ledger entry
        origin_id: Originating record id (order id)
        depot_id: Fulfilling depot, compared against the variant's depot
    """
    if not variant_id or quantity <= 0:
        return StockAdjustment(variant_id, quantity, ok=False,
                               error='No variant reference or non-positive quantity')

    try:
        with transaction.atomic():
            variant = DepotProductVariant.objects.select_for_update().get(pk=variant_id)
            if depot_id and variant.depot_id != depot_id:
                logger.warning(
                    f"Variant {variant_id} belongs to depot {variant.depot_id}, "
                    f"not order depot {depot_id}; issuing from the variant's depot"
                )
            backordered = variant.closing_qty < quantity
            if backordered:
                logger.warning(
                    f"Insufficient stock for variant {variant_id} ({variant.name}): "
                    f"available {variant.closing_qty}, issuing {quantity}"
                )
            closing = _apply_movement(variant, 0, quantity, module, origin_id)
    except (ObjectDoesNotExist, DatabaseError, ValueError) as e:
        logger.warning(f"Stock issue failed for variant {variant_id}: {e}")
        return StockAdjustment(variant_id, quantity, ok=False, error=str(e))

    logger.debug(f"Issued {quantity} of variant {variant_id} ({module}#{origin_id}), closing {closing}")
    return StockAdjustment(variant_id, quantity, ok=True,
                           closing_qty=closing, backordered=backordered)


def receive_stock(variant_id: int, quantity: int, module: str = MODULE_RECEIPT,
                  origin_id: Optional[int] = None) -> int:
    """
    Receive stock into a depot variant and return the new closing quantity.

    Unlike issue_stock, failures propagate to the caller.
    """
    if quantity <= 0:
        raise ValueError("Received quantity must be positive")
    with transaction.atomic():
        variant = DepotProductVariant.objects.select_for_update().get(pk=variant_id)
        closing = _apply_movement(variant, quantity, 0, module, origin_id)
    logger.info(f"Received {quantity} of variant {variant_id} ({module}), closing {closing}")
    return closing


def rebuild_closing_qty(variant_id: int) -> int:
    """
    Replay the ledger into the cached closing quantity of one variant.

    Returns the rebuilt quantity; logs when the cache had drifted.
    """
    with transaction.atomic():
        variant = DepotProductVariant.objects.select_for_update().get(pk=variant_id)
        on_hand = current_on_hand(variant.product_id, variant.id, variant.depot_id)
        if on_hand != variant.closing_qty:
            logger.warning(
                f"Variant {variant_id} closing_qty drifted: cached "
                f"{variant.closing_qty}, ledger {on_hand}"
            )
            variant.closing_qty = on_hand
            variant.save(update_fields=['closing_qty', 'updated_at'])
    return on_hand


def resolve_catalog_item(product_id: Optional[int] = None,
                         variant_id: Optional[int] = None) -> CatalogItem:
    """
    Look up ``{name, price, unit}`` for a depot variant or catalog product.

    Raises:
        ResolutionError: If a given id does not exist
    """
    if variant_id:
        try:
            variant = DepotProductVariant.objects.select_related('product').get(pk=variant_id)
        except DepotProductVariant.DoesNotExist:
            raise ResolutionError(f"Invalid depot product variant {variant_id}")
        return CatalogItem(
            name=variant.product.name,
            variant_name=variant.name,
            price=variant.sale_price,
            unit=variant.product.unit,
            product_id=variant.product_id,
            variant_id=variant.id,
        )
    if product_id:
        try:
            product = Product.objects.get(pk=product_id)
        except Product.DoesNotExist:
            raise ResolutionError(f"Invalid product {product_id}")
        return CatalogItem(
            name=product.name,
            variant_name=None,
            price=product.price,
            unit=product.unit,
            product_id=product.id,
            variant_id=None,
        )
    raise ResolutionError("Neither a product nor a depot variant was referenced")
