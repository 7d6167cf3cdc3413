"""
Tests for the sequence allocator, retry helper and API error rendering.
"""
import threading
from datetime import date
from unittest.mock import patch

from django.db import IntegrityError, OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings

from core.concurrency import run_with_retry
from core.exceptions import (
    AmountMismatchError,
    InsufficientFundsError,
    SequenceConflictError,
    api_exception_handler,
)
from core.models import SequenceCounter
from core.sequences import (
    allocate,
    allocate_invoice_number,
    allocate_order_number,
    fiscal_year_label,
    format_identifier,
    parse_sequence,
)


class FiscalYearTestCase(TestCase):

    def test_label_from_april(self):
        self.assertEqual(fiscal_year_label(date(2025, 4, 1)), '2526')
        self.assertEqual(fiscal_year_label(date(2025, 12, 31)), '2526')

    def test_label_before_april_belongs_to_previous_year(self):
        self.assertEqual(fiscal_year_label(date(2026, 3, 31)), '2526')
        self.assertEqual(fiscal_year_label(date(2026, 1, 15)), '2526')

    def test_label_across_century(self):
        self.assertEqual(fiscal_year_label(date(2099, 6, 1)), '9900')


class IdentifierFormatTestCase(TestCase):

    def test_format_pads_to_five_digits(self):
        self.assertEqual(format_identifier('2526', 1), '2526-00001')
        self.assertEqual(format_identifier('SNF-2526', 123), 'SNF-2526-00123')

    def test_parse_sequence(self):
        self.assertEqual(parse_sequence('2526-00042'), 42)
        self.assertEqual(parse_sequence('SNF-2526-00007'), 7)
        self.assertEqual(parse_sequence(None), 0)
        self.assertEqual(parse_sequence('garbage'), 0)


class AllocateTestCase(TestCase):
    """Sequential allocation inside one process."""

    def test_first_allocation_starts_at_one(self):
        self.assertEqual(allocate_order_number(on_date=date(2025, 5, 1)), '2526-00001')

    def test_allocations_are_contiguous(self):
        numbers = [allocate_order_number(on_date=date(2025, 5, 1)) for _ in range(5)]
        self.assertEqual(numbers, [f'2526-{i:05d}' for i in range(1, 6)])
        self.assertEqual(len(set(numbers)), 5)

    def test_fiscal_years_are_separate_buckets(self):
        self.assertEqual(allocate_order_number(on_date=date(2025, 5, 1)), '2526-00001')
        self.assertEqual(allocate_order_number(on_date=date(2026, 5, 1)), '2627-00001')
        self.assertEqual(allocate_order_number(on_date=date(2025, 6, 1)), '2526-00002')

    def test_invoice_bucket_is_independent_of_orders(self):
        allocate_order_number(on_date=date(2025, 5, 1))
        allocate_order_number(on_date=date(2025, 5, 1))
        self.assertEqual(
            allocate_invoice_number('SNF', on_date=date(2025, 5, 1)),
            'SNF-2526-00001'
        )
        self.assertEqual(
            allocate_invoice_number('', on_date=date(2025, 5, 1)),
            '2526-00001'
        )
        self.assertEqual(SequenceCounter.objects.get(key='order:2526').last_value, 2)
        self.assertEqual(SequenceCounter.objects.get(key='invoice:SNF-2526').last_value, 1)

    def test_new_bucket_is_seeded_from_existing_identifiers(self):
        calls = []

        def seed(prefix):
            calls.append(prefix)
            return f'{prefix}-00041'

        self.assertEqual(allocate('order:2526', '2526', seed=seed), '2526-00042')
        # Seed is only consulted when the counter row is created
        self.assertEqual(allocate('order:2526', '2526', seed=seed), '2526-00043')
        self.assertEqual(calls, ['2526'])

    def test_seed_returning_none_starts_at_one(self):
        self.assertEqual(allocate('invoice:X-2526', 'X-2526', seed=lambda p: None), 'X-2526-00001')


class RetryTestCase(TestCase):

    @override_settings(SEQUENCE_MAX_ATTEMPTS=3)
    def test_retries_then_succeeds(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise IntegrityError('UNIQUE constraint failed: orders_order.order_no')
            return 'ok'

        with patch('core.concurrency.time.sleep') as sleep:
            self.assertEqual(run_with_retry(flaky), 'ok')
        self.assertEqual(len(attempts), 3)
        self.assertEqual(sleep.call_count, 2)

    @override_settings(SEQUENCE_MAX_ATTEMPTS=2)
    def test_raises_conflict_when_budget_spent(self):
        def always_conflicts():
            raise IntegrityError('duplicate key value violates unique constraint "orders_order_invoice_no_key"')

        with patch('core.concurrency.time.sleep'):
            with self.assertRaises(SequenceConflictError):
                run_with_retry(always_conflicts)

    def test_foreign_key_failure_is_not_a_sequence_conflict(self):
        attempts = []

        def dangling():
            attempts.append(1)
            raise IntegrityError('FOREIGN KEY constraint failed')

        with self.assertRaises(IntegrityError) as ctx:
            run_with_retry(dangling, attempts=5)
        self.assertNotIsInstance(ctx.exception, SequenceConflictError)
        self.assertEqual(len(attempts), 1)

    def test_operational_errors_are_retried(self):
        attempts = []

        def locked():
            attempts.append(1)
            if len(attempts) < 2:
                raise OperationalError('database is locked')
            return 'ok'

        with patch('core.concurrency.time.sleep'):
            self.assertEqual(run_with_retry(locked, attempts=3), 'ok')
        self.assertEqual(len(attempts), 2)

    def test_other_errors_are_not_retried(self):
        attempts = []

        def broken():
            attempts.append(1)
            raise ValueError('bad input')

        with self.assertRaises(ValueError):
            run_with_retry(broken, attempts=5)
        self.assertEqual(len(attempts), 1)


class ExceptionHandlerTestCase(TestCase):

    def test_service_error_rendering(self):
        response = api_exception_handler(AmountMismatchError('subtotal', 10, 20), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Amount Mismatch')

    def test_insufficient_funds_carries_balances(self):
        response = api_exception_handler(InsufficientFundsError(1, 500, 600), {})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['available'], '500')
        self.assertEqual(response.data['requested'], '600')

    def test_sequence_conflict_is_409(self):
        response = api_exception_handler(SequenceConflictError('busy'), {})
        self.assertEqual(response.status_code, 409)

    def test_missing_row_is_404(self):
        response = api_exception_handler(SequenceCounter.DoesNotExist('gone'), {})
        self.assertEqual(response.status_code, 404)


class ConcurrentAllocateTestCase(TransactionTestCase):
    """
    Concurrent allocators must never hand out the same identifier.
    Runs on every backend; SQLite writers queue on BEGIN IMMEDIATE.
    """

    def test_concurrent_allocations_are_unique(self):
        results = []
        errors = []
        lock = threading.Lock()

        def worker():
            try:
                number = run_with_retry(
                    lambda: allocate_order_number(on_date=date(2025, 5, 1)),
                    attempts=5
                )
                with lock:
                    results.append(number)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                connection.close()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(sorted(results), [f'2526-{i:05d}' for i in range(1, 9)])
