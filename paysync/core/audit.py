"""Audit trail for order writes made by reconciliation."""

from paysync.core.logging import current_sync_run_id
from paysync.models.account import OrderUpdate
from paysync.models.audit_log import OrderAuditLog


async def log_order_update(update: OrderUpdate) -> OrderAuditLog:
    """order_activated when a plan was granted, order_status_updated otherwise."""
    plan = update.premium_plan
    details = {}
    if plan is not None:
        details = {
            "plan": plan.plan,
            "plan_title": plan.plan_title,
            "expiry_date": plan.expiry_date.isoformat(),
        }
    entry = OrderAuditLog(
        user_id=update.user_id,
        event_type="order_activated" if plan is not None else "order_status_updated",
        order_id=update.order.order_id,
        payment_status=update.order.payment_status,
        gateway_status=update.order.gateway_status,
        sync_run_id=current_sync_run_id(),
        details=details,
    )
    await entry.insert()
    return entry
