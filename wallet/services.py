"""
Wallet Service Layer - prepaid balance movements.

Each operation writes exactly one WalletTransaction and exactly one
balance change on the member, or neither. Debits lock the member row
before checking the balance so the check and the write cannot race.
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from django.db import transaction
from django.db.models import F, Q, Sum

from core.exceptions import InsufficientFundsError, InvalidAmountError
from .models import Member, WalletTransaction

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')


def _normalize_amount(amount) -> Decimal:
    try:
        value = Decimal(str(amount)).quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Invalid wallet amount: {amount!r}")
    if value <= 0:
        raise InvalidAmountError(f"Wallet amount must be positive, got {value}")
    return value


def _apply(member: Member, amount: Decimal, tx_type: str, reference: str,
           notes: str, payment_method: str,
           processed_by_id: Optional[int]) -> WalletTransaction:
    wallet_tx = WalletTransaction.objects.create(
        member=member,
        amount=amount,
        type=tx_type,
        status=WalletTransaction.Status.PAID,
        payment_method=payment_method,
        reference_number=reference or '',
        notes=notes or '',
        processed_by_id=processed_by_id,
    )
    delta = amount if tx_type == WalletTransaction.Type.CREDIT else -amount
    Member.objects.filter(pk=member.pk).update(wallet_balance=F('wallet_balance') + delta)
    return wallet_tx


def debit(member_id: int, amount, reference: str = '', notes: str = '',
          payment_method: str = 'WALLET',
          processed_by_id: Optional[int] = None) -> WalletTransaction:
    """
    Debit a member's wallet.

    Raises:
        InvalidAmountError: If amount is not a positive number
        InsufficientFundsError: If amount exceeds the locked balance
        Member.DoesNotExist: If the member does not exist
    """
    amount = _normalize_amount(amount)

    with transaction.atomic():
        member = Member.objects.select_for_update().get(pk=member_id)
        if amount > member.wallet_balance:
            logger.warning(
                f"Wallet debit refused for member {member_id}: "
                f"balance {member.wallet_balance}, requested {amount}"
            )
            raise InsufficientFundsError(member_id, member.wallet_balance, amount)
        wallet_tx = _apply(member, amount, WalletTransaction.Type.DEBIT,
                           reference, notes, payment_method, processed_by_id)

    logger.info(f"Debited {amount} from member {member_id} wallet ({reference})")
    return wallet_tx


def credit(member_id: int, amount, reference: str = '', notes: str = '',
           payment_method: str = 'SYSTEM_CREDIT',
           processed_by_id: Optional[int] = None) -> WalletTransaction:
    """
    Credit a member's wallet. There is no balance precondition.

    Raises:
        InvalidAmountError: If amount is not a positive number
        Member.DoesNotExist: If the member does not exist
    """
    amount = _normalize_amount(amount)

    with transaction.atomic():
        member = Member.objects.select_for_update().get(pk=member_id)
        wallet_tx = _apply(member, amount, WalletTransaction.Type.CREDIT,
                           reference, notes, payment_method, processed_by_id)

    logger.info(f"Credited {amount} to member {member_id} wallet ({reference})")
    return wallet_tx


def ensure_sufficient_balance(member_id: int, amount) -> Member:
    """
    Unlocked pre-check used before opening a checkout transaction.

    The authoritative check happens again inside debit().
    """
    amount = _normalize_amount(amount)
    member = Member.objects.get(pk=member_id)
    if member.wallet_balance < amount:
        raise InsufficientFundsError(member_id, member.wallet_balance, amount)
    return member


def ledger_balance(member_id: int) -> Decimal:
    """Sum of credits minus debits over the member's transactions."""
    totals = WalletTransaction.objects.filter(member_id=member_id).aggregate(
        credits=Sum('amount', filter=Q(type=WalletTransaction.Type.CREDIT)),
        debits=Sum('amount', filter=Q(type=WalletTransaction.Type.DEBIT)),
    )
    return ((totals['credits'] or Decimal('0')) - (totals['debits'] or Decimal('0'))).quantize(CENT)


def rebuild_balance(member_id: int) -> Decimal:
    """
    Replay the member's transactions into wallet_balance.

    Returns the rebuilt balance; logs when the cached value had drifted.
    """
    with transaction.atomic():
        member = Member.objects.select_for_update().get(pk=member_id)
        balance = ledger_balance(member_id)
        if balance != member.wallet_balance:
            logger.warning(
                f"Member {member_id} wallet drifted: cached "
                f"{member.wallet_balance}, ledger {balance}"
            )
            member.wallet_balance = balance
            member.save(update_fields=['wallet_balance', 'updated_at'])
    return balance
