"""Pending-order discovery: the reconciliation work list."""

from datetime import datetime
from typing import Iterable

from paysync.models.account import UserAccount
from paysync.models.reconciliation import PendingOrder


def _is_excluded(user: UserAccount, markers: Iterable[str]) -> bool:
    if not user.name:
        return True
    return any(marker in user.name for marker in markers)


def locate_pending_orders(
    users: Iterable[UserAccount],
    excluded_name_markers: Iterable[str] = (),
    now: datetime | None = None,
) -> list[PendingOrder]:
    """
    Pending orders of named users who have never paid: no completed order and no active entitlement.
    Order ids are stripped so they match what the gateway echoes back.
    Pure over the given snapshot; output follows input order (users, then their orders).
    """
    markers = tuple(excluded_name_markers)
    out: list[PendingOrder] = []
    for user in users:
        if _is_excluded(user, markers):
            continue
        if user.has_active_entitlement(now) or user.has_completed_order():
            continue
        for order in user.orders.values():
            if not order.is_pending or not order.order_id.strip():
                continue
            out.append(
                PendingOrder(
                    order_id=order.order_id.strip(),
                    phone=user.phone,
                    user_id=user.id,
                    name=user.name,
                    amount=order.amount,
                    currency=order.currency or "INR",
                    customer_plan=order.notes.customer_plan or "N/A",
                    created_at=order.created_at,
                )
            )
    return out
