"""
Retry helper for units of work that race on shared counters or rows.
"""
import logging
import time

from django.conf import settings
from django.db import IntegrityError, OperationalError

from .exceptions import SequenceConflictError

logger = logging.getLogger(__name__)

# Unique columns whose collisions mean two writers raced for one identifier
IDENTIFIER_COLUMNS = ('order_no', 'invoice_no', 'core_sequencecounter')


def is_identifier_collision(exc: IntegrityError) -> bool:
    """True for a unique violation on an allocated identifier or counter row."""
    message = str(exc).lower()
    if 'unique' not in message and 'duplicate' not in message:
        return False
    return any(column in message for column in IDENTIFIER_COLUMNS)


def run_with_retry(func, *, attempts: int = None, backoff_base: float = 0.05):
    """
    Execute ``func`` and retry on write conflicts.

    ``func`` must open its own ``transaction.atomic()`` block so that every
    attempt starts from a clean transaction. Retries on OperationalError
    (deadlocks, lock timeouts) and on unique violations of identifier
    columns. Any other IntegrityError propagates untouched. Raises
    SequenceConflictError once the attempt budget is spent.
    """
    if attempts is None:
        attempts = settings.SEQUENCE_MAX_ATTEMPTS

    for attempt in range(attempts):
        try:
            return func()
        except IntegrityError as exc:
            if not is_identifier_collision(exc):
                raise
            last_error = exc
        except OperationalError as exc:
            last_error = exc

        logger.warning(
            f"Write conflict on attempt {attempt + 1}/{attempts}: {last_error}"
        )
        if attempt >= attempts - 1:
            raise SequenceConflictError(
                f"Gave up after {attempts} attempts: {last_error}"
            ) from last_error
        time.sleep(backoff_base * (2 ** attempt))
