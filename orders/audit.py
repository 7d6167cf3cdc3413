"""
Order audit trail.

Audit writes are fire-and-forget: a failure is logged and never reaches
the caller.
"""
import logging
from typing import Dict, List, Optional

from django.db import DatabaseError, transaction

from .models import OrderAuditLog

logger = logging.getLogger(__name__)


def log_order_change(order_id: int, user_id: Optional[int], action: str,
                     description: str, old_value=None,
                     new_value=None) -> Optional[OrderAuditLog]:
    """Record one audit entry; returns None when the write failed."""
    try:
        with transaction.atomic():
            return OrderAuditLog.objects.create(
                order_id=order_id,
                user_id=user_id,
                action=action,
                description=description,
                old_value=old_value,
                new_value=new_value,
            )
    except (DatabaseError, TypeError, ValueError) as e:
        logger.error(f"Failed to write audit entry {action} for order {order_id}: {e}")
        return None


def get_order_audit_logs(order_id: int, limit: int = 50, offset: int = 0) -> List[Dict]:
    """Audit entries for an order, newest first."""
    logs = OrderAuditLog.objects.select_related('user').filter(
        order_id=order_id
    ).order_by('-created_at', '-id')[offset:offset + limit]

    return [
        {
            'id': log.id,
            'action': log.action,
            'description': log.description,
            'old_value': log.old_value,
            'new_value': log.new_value,
            'created_at': log.created_at.isoformat(),
            'user': {
                'id': log.user.id,
                'username': log.user.get_username(),
                'email': log.user.email,
            } if log.user else None,
        }
        for log in logs
    ]
