"""
Service-layer error taxonomy shared by the inventory, wallet and order apps.

Validation-family errors are caller-recoverable and never retried.
Wallet and sequence errors abort the enclosing transaction.
"""
from decimal import Decimal

from django.core.exceptions import ObjectDoesNotExist
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


class OrderServiceError(Exception):
    """Base class for all settlement errors."""
    status_code = status.HTTP_400_BAD_REQUEST
    error = 'Service Error'

    def as_response_data(self):
        return {'error': self.error, 'detail': str(self)}


class OrderValidationError(OrderServiceError):
    """Raised when request input is malformed or incomplete."""
    error = 'Validation Error'


class AmountMismatchError(OrderValidationError):
    """Raised when client totals diverge from server totals beyond tolerance."""
    error = 'Amount Mismatch'

    def __init__(self, field: str, submitted, computed):
        self.field = field
        self.submitted = submitted
        self.computed = computed
        super().__init__(
            f"{field} mismatch: submitted {submitted}, computed {computed}"
        )


class InvalidDepotError(OrderValidationError):
    error = 'Invalid Depot'


class ResolutionError(OrderValidationError):
    """Raised when a referenced catalog entity cannot be resolved."""
    error = 'Resolution Error'


class ImmutableCancelledItemError(OrderValidationError):
    error = 'Cancelled Item'


class InvalidTransitionError(OrderValidationError):
    error = 'Invalid Status Transition'

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move payment status from {current} to {target}")


class InvalidAmountError(OrderValidationError):
    error = 'Invalid Amount'


class InsufficientFundsError(OrderServiceError):
    """Raised when a wallet debit exceeds the member's balance."""
    error = 'Insufficient Funds'

    def __init__(self, member_id: int, available: Decimal, requested: Decimal):
        self.member_id = member_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient wallet balance for member {member_id}: "
            f"available {available}, requested {requested}"
        )

    def as_response_data(self):
        data = super().as_response_data()
        data['available'] = str(self.available)
        data['requested'] = str(self.requested)
        return data


class SequenceConflictError(OrderServiceError):
    """Raised when sequence allocation keeps conflicting after all retries."""
    status_code = status.HTTP_409_CONFLICT
    error = 'Sequence Conflict'


def api_exception_handler(exc, context):
    """
    DRF exception handler that renders service errors and missing rows.

    Falls back to DRF's default handling for everything else.
    """
    if isinstance(exc, OrderServiceError):
        return Response(exc.as_response_data(), status=exc.status_code)
    if isinstance(exc, ObjectDoesNotExist):
        return Response(
            {'error': 'Not Found', 'detail': str(exc) or 'Resource not found'},
            status=status.HTTP_404_NOT_FOUND
        )
    return exception_handler(exc, context)
