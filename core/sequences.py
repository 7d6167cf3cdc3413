"""
Sequence Allocator - fiscal-year scoped, human-readable identifiers.

Identifiers look like ``2526-00001`` (orders) or ``SNF-2526-00001``
(invoices). The fiscal year runs April to March and is labelled by the
last two digits of its start and end years.

Each bucket is backed by a SequenceCounter row that is incremented and
then read inside the caller's transaction. A new counter row is seeded
from the highest identifier already stored for that prefix.
"""
import logging
import re
from datetime import date
from typing import Callable, Optional

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .models import SequenceCounter

logger = logging.getLogger(__name__)

SEQUENCE_WIDTH = 5

_SUFFIX_RE = re.compile(r'-(\d+)$')


def fiscal_year_label(on_date: Optional[date] = None) -> str:
    """
    Return the ``YYNN`` label of the fiscal year containing ``on_date``.

    April 2025 through March 2026 is ``2526``.
    """
    if on_date is None:
        on_date = timezone.localdate()
    start_year = on_date.year if on_date.month >= 4 else on_date.year - 1
    return f"{str(start_year)[-2:]}{str(start_year + 1)[-2:]}"


def format_identifier(prefix: str, value: int) -> str:
    return f"{prefix}-{value:0{SEQUENCE_WIDTH}d}"


def parse_sequence(identifier: Optional[str]) -> int:
    """Numeric suffix of an identifier, 0 when absent or malformed."""
    if not identifier:
        return 0
    match = _SUFFIX_RE.search(identifier)
    return int(match.group(1)) if match else 0


def max_existing_identifier(queryset, field: str) -> Callable[[str], Optional[str]]:
    """
    Build a seed function returning the largest stored identifier for a prefix.

    Lexicographic descending order is enough because suffixes are
    zero-padded to a fixed width.
    """
    def seed(prefix: str) -> Optional[str]:
        return (
            queryset.filter(**{f'{field}__startswith': f'{prefix}-'})
            .order_by(f'-{field}')
            .values_list(field, flat=True)
            .first()
        )
    return seed


def _open_bucket(bucket_key: str, prefix: str, seed) -> None:
    initial = parse_sequence(seed(prefix)) if seed else 0
    try:
        with transaction.atomic():
            SequenceCounter.objects.create(key=bucket_key, last_value=initial + 1)
        logger.info(f"Opened sequence bucket {bucket_key} at {initial}")
    except IntegrityError:
        # Another writer opened the bucket first
        _bump(bucket_key)


def _bump(bucket_key: str) -> int:
    return SequenceCounter.objects.filter(key=bucket_key).update(
        last_value=F('last_value') + 1
    )


def allocate(bucket_key: str, prefix: str, seed=None) -> str:
    """
    Allocate the next identifier in ``bucket_key`` formatted with ``prefix``.

    Must be called inside the transaction that inserts the owning record so
    the counter row lock is held until that insert commits. The counter is
    written before it is read, so the first statement takes the write lock
    on every backend, SQLite included.

    Args:
        bucket_key: Counter key, independent per bucket
        prefix: Identifier prefix, e.g. ``2526`` or ``SNF-2526``
        seed: Optional callable ``seed(prefix) -> identifier | None`` used
            once, when the bucket's counter row does not exist yet

    Returns:
        Formatted identifier such as ``2526-00001``
    """
    with transaction.atomic():
        if not _bump(bucket_key):
            _open_bucket(bucket_key, prefix, seed)
        value = SequenceCounter.objects.filter(key=bucket_key).values_list(
            'last_value', flat=True
        ).get()

    identifier = format_identifier(prefix, value)
    logger.debug(f"Allocated {identifier} from bucket {bucket_key}")
    return identifier


def allocate_order_number(seed=None, on_date: Optional[date] = None) -> str:
    label = fiscal_year_label(on_date)
    return allocate(f'order:{label}', label, seed=seed)


def allocate_invoice_number(sub_ledger: str = '', seed=None,
                            on_date: Optional[date] = None) -> str:
    """Invoice numbers, optionally under a sub-ledger prefix such as ``SNF``."""
    label = fiscal_year_label(on_date)
    prefix = f"{sub_ledger}-{label}" if sub_ledger else label
    return allocate(f'invoice:{prefix}', prefix, seed=seed)
