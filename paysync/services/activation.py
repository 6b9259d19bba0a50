"""
Entitlement activation: apply a terminal gateway status to the owning user exactly once.

Only ``paid`` and ``cancelled`` orders reach the store. A paid order grants the premium
plan, marks the local record completed and points current_order_id at it, all in one
document write. A cancelled order only updates the local record. A record that is already
completed is never written again.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

from paysync.core.exceptions import ActivationError, AppError, UserNotResolvedError
from paysync.core.logging import get_logger
from paysync.models.account import OrderUpdate, UserAccount
from paysync.models.gateway import GatewayOrder
from paysync.models.order import (
    PAID,
    TERMINAL_GATEWAY_STATUSES,
    LocalOrderRecord,
    OrderNotes,
    local_status_for,
)
from paysync.models.premium_plan import PremiumPlan
from paysync.models.reconciliation import (
    ACTIVATED,
    ALREADY_APPLIED,
    FAILED,
    SKIPPED,
    STATUS_UPDATED,
    USER_NOT_FOUND,
    ActivationOutcome,
)
from paysync.services import cache as cache_service
from paysync.services.notifications import PushNotifier
from paysync.storage.base import UserStore

log = get_logger(__name__)

DEFAULT_PLAN_VALIDITY_DAYS = 180
DEFAULT_PLAN_TERM = 60


def _parse_plan_details(order: GatewayOrder) -> dict[str, Any]:
    raw = order.notes.get("planDetails")
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        details = json.loads(raw)
    except (TypeError, ValueError):
        log.warning("plan_details_unparseable", order_id=order.id)
        return {}
    return details if isinstance(details, dict) else {}


def _plan_expiry(details: dict[str, Any], now: datetime, default_days: int) -> datetime:
    explicit = details.get("expiryDate")
    if explicit:
        try:
            parsed = datetime.fromisoformat(str(explicit).replace("Z", "+00:00"))
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        except ValueError:
            log.warning("plan_expiry_unparseable", expiry_date=explicit)
    return now + timedelta(days=default_days)


def _plan_term(details: dict[str, Any]) -> int:
    term = details.get("expiry")
    if isinstance(term, int) and not isinstance(term, bool) and term > 0:
        return term
    return DEFAULT_PLAN_TERM


def derive_plan(
    order: GatewayOrder,
    now: datetime,
    default_validity_days: int = DEFAULT_PLAN_VALIDITY_DAYS,
) -> PremiumPlan:
    """Plan from notes.planDetails, falling back to notes.customerPlan with safe defaults."""
    details = _parse_plan_details(order)
    plan_name = details.get("plan") or order.customer_plan or "Unknown"
    return PremiumPlan(
        plan=plan_name,
        plan_title=order.notes.get("planTitle") or order.customer_plan or plan_name,
        price=str(details.get("price") or "0"),
        form=details.get("form") or "Unknown",
        expiry=_plan_term(details),
        order_id=order.id,
        purchased_date=now,
        expiry_date=_plan_expiry(details, now, default_validity_days),
        is_payment_pending=False,
    )


def build_order_record(
    order: GatewayOrder,
    existing: LocalOrderRecord | None,
    payment_status: str,
    now: datetime,
) -> LocalOrderRecord:
    if existing is not None:
        record = existing.model_copy(deep=True)
    else:
        # Not tracked locally yet: start from what the gateway knows
        record = LocalOrderRecord(
            order_id=order.id,
            amount=order.amount,
            currency=order.currency,
            receipt=order.receipt,
            notes=OrderNotes(customer_plan=order.customer_plan),
            created_at=datetime.utcfromtimestamp(order.created_at) if order.created_at else now,
        )
    record.payment_status = payment_status
    record.gateway_status = order.status
    record.attempts = order.attempts
    record.updated_at = now
    return record


class EntitlementActivator:
    def __init__(
        self,
        store: UserStore,
        redis=None,
        notifier: PushNotifier | None = None,
        cache_prefixes: Iterable[str] = (),
        default_validity_days: int = DEFAULT_PLAN_VALIDITY_DAYS,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.redis = redis
        self.notifier = notifier
        self.cache_prefixes = tuple(cache_prefixes)
        self.default_validity_days = default_validity_days
        self.clock = clock

    async def apply(self, order: GatewayOrder, user: UserAccount | None = None) -> ActivationOutcome:
        """Never raises: failures come back as a FAILED outcome carrying the error."""
        if order.status not in TERMINAL_GATEWAY_STATUSES:
            return ActivationOutcome(order_id=order.id, result=SKIPPED, gateway_status=order.status)
        try:
            return await self._apply(order, user)
        except Exception as e:
            code = e.code if isinstance(e, AppError) else "ACTIVATION_ERROR"
            log.exception("activation_failed", order_id=order.id, error=str(e))
            return ActivationOutcome(
                order_id=order.id,
                result=FAILED,
                gateway_status=order.status,
                user_phone=order.user_phone,
                error=str(e),
                error_code=code,
            )

    async def _apply(self, order: GatewayOrder, user: UserAccount | None) -> ActivationOutcome:
        if user is None:
            user = await self.store.find_by_order_id(order.id)
        if user is None:
            log.warning("activation_user_not_found", order_id=order.id, user_phone=order.user_phone)
            return ActivationOutcome(
                order_id=order.id,
                result=USER_NOT_FOUND,
                gateway_status=order.status,
                user_phone=order.user_phone,
                error=UserNotResolvedError(order.id).message,
                error_code="USER_NOT_RESOLVED",
            )

        new_status = local_status_for(order.status)
        existing = user.orders.get(order.id)
        if existing is not None and (existing.is_completed or existing.payment_status == new_status):
            log.info("activation_already_applied", order_id=order.id, user_id=user.id, payment_status=existing.payment_status)
            return self._outcome(order, user, ALREADY_APPLIED, existing.payment_status)

        now = self.clock()
        record = build_order_record(order, existing, new_status, now)
        plan = derive_plan(order, now, self.default_validity_days) if order.status == PAID else None
        update = OrderUpdate(
            user_id=user.id,
            order=record,
            premium_plan=plan,
            current_order_id=order.id if plan is not None else None,
        )
        try:
            written = await self.store.apply_order_update(update)
        except Exception as e:
            raise ActivationError(f"User store write failed: {e}", order_id=order.id) from e
        if not written:
            # Another run completed this order between our read and write
            log.info("activation_write_skipped", order_id=order.id, user_id=user.id)
            return self._outcome(order, user, ALREADY_APPLIED, record.payment_status)

        if plan is not None:
            log.info("order_activated", order_id=order.id, user_id=user.id, plan_title=plan.plan_title, expiry_date=plan.expiry_date.isoformat())
        else:
            log.info("order_status_updated", order_id=order.id, user_id=user.id, payment_status=record.payment_status)
        await self._after_write(user, order, plan)
        outcome = self._outcome(order, user, ACTIVATED if plan is not None else STATUS_UPDATED, record.payment_status)
        outcome.plan_title = plan.plan_title if plan else None
        return outcome

    async def _after_write(self, user: UserAccount, order: GatewayOrder, plan: PremiumPlan | None) -> None:
        await cache_service.invalidate_user(self.redis, user, self.cache_prefixes)
        if plan is None or self.notifier is None or not self.notifier.enabled or not user.push_player_id:
            return
        try:
            await self.notifier.send(
                user.push_player_id,
                "Premium activated",
                f"Your {plan.plan_title} plan is now active.",
                {"order_id": order.id},
            )
        except Exception as e:
            log.warning("push_notification_failed", order_id=order.id, user_id=user.id, error=str(e))

    @staticmethod
    def _outcome(order: GatewayOrder, user: UserAccount, result: str, payment_status: str) -> ActivationOutcome:
        return ActivationOutcome(
            order_id=order.id,
            result=result,
            gateway_status=order.status,
            user_id=user.id,
            user_phone=user.phone or order.user_phone,
            payment_status=payment_status,
        )
