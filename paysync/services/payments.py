"""Operator-facing payment operations: pending discovery, sync, status checks, refresh, listings."""

from typing import Any

from fastapi import status as http_status

from paysync.core.config import Settings, get_settings
from paysync.core.exceptions import AppError, ConfigurationError
from paysync.core.logging import bind_sync_run, get_logger, unbind_sync_run
from paysync.core.pagination import GatewayPagination, paginate, to_epoch_seconds
from paysync.models.order import PENDING
from paysync.models.reconciliation import PendingOrder
from paysync.services.activation import EntitlementActivator
from paysync.services.gateway import RazorpayGateway
from paysync.services.locator import locate_pending_orders
from paysync.services.notifications import get_notifier
from paysync.services.reconciler import BatchReconciler
from paysync.services.reporting import pending_summary, status_tally
from paysync.storage.base import UserStore

log = get_logger(__name__)

_STATUS_BY_ERROR_CODE = {
    "GATEWAY_NOT_FOUND": http_status.HTTP_404_NOT_FOUND,
    "GATEWAY_BAD_REQUEST": http_status.HTTP_400_BAD_REQUEST,
    "GATEWAY_UNAVAILABLE": http_status.HTTP_502_BAD_GATEWAY,
    "DEADLINE_EXCEEDED": http_status.HTTP_504_GATEWAY_TIMEOUT,
}


class PaymentsService:
    def __init__(
        self,
        store: UserStore,
        gateway: RazorpayGateway | None,
        reconciler: BatchReconciler | None,
        settings: Settings,
    ):
        self.store = store
        self._gateway = gateway
        self._reconciler = reconciler
        self.settings = settings

    @property
    def gateway(self) -> RazorpayGateway:
        if self._gateway is None:
            raise ConfigurationError("Razorpay credentials not configured")
        return self._gateway

    @property
    def reconciler(self) -> BatchReconciler:
        if self._reconciler is None:
            raise ConfigurationError("Razorpay credentials not configured")
        return self._reconciler

    async def find_pending(self) -> list[PendingOrder]:
        users = await self.store.list_with_pending_orders()
        return locate_pending_orders(users, self.settings.locator_excluded_name_markers)

    async def pending_orders(self) -> dict[str, Any]:
        pending = await self.find_pending()
        return {
            "orders": [p.model_dump(mode="json") for p in pending],
            "summary": pending_summary(pending).model_dump(),
        }

    async def sync_pending_orders(self) -> dict[str, Any]:
        """Discover locally pending orders, reconcile them against the gateway, apply paid/cancelled."""
        reconciler = self.reconciler
        run_id = bind_sync_run("sync_pending_orders")
        try:
            pending = await self.find_pending()
            if not pending:
                log.info("sync_nothing_pending")
                return {
                    "sync_run_id": run_id,
                    "message": "No pending orders found",
                    "orders": [],
                    "errors": [],
                    "activations": [],
                    "deferred_order_ids": [],
                    "summary": {"total_local_pending": 0},
                }
            limit = self.settings.sync_max_orders
            selected, deferred = pending[:limit], pending[limit:]
            if deferred:
                log.info("sync_orders_deferred", deferred=len(deferred), limit=limit)
            local_by_id = {p.order_id.strip(): p for p in selected}
            result = await reconciler.reconcile(
                [p.order_id for p in selected],
                local_statuses={oid: PENDING for oid in local_by_id},
                enforce_cap=False,
            )
            orders = []
            for o in result.orders:
                row = o.model_dump(mode="json")
                local = local_by_id.get(o.id)
                if local is not None:
                    row.update(user_id=local.user_id, phone=local.phone, name=local.name, customer_plan=local.customer_plan)
                orders.append(row)
            summary = result.summary.model_dump()
            summary["total_local_pending"] = len(pending)
            summary["deferred"] = len(deferred)
            return {
                "sync_run_id": run_id,
                "orders": orders,
                "errors": [e.model_dump() for e in result.errors],
                "activations": [a.model_dump(mode="json") for a in result.activations],
                "deferred_order_ids": [p.order_id for p in deferred],
                "summary": summary,
            }
        finally:
            unbind_sync_run()

    async def order_status(self, order_id: str) -> dict[str, Any]:
        """Batch of one; a gateway failure becomes the error of the whole call."""
        result = await self.reconciler.reconcile([order_id], enforce_cap=False)
        if not result.orders:
            err = result.errors[0]
            raise AppError(
                err.error,
                code=err.code,
                status_code=_STATUS_BY_ERROR_CODE.get(err.code, http_status.HTTP_502_BAD_GATEWAY),
                details={"order_id": order_id},
            )
        activation = result.activations[0] if result.activations else None
        return {
            "order": result.orders[0].model_dump(mode="json"),
            "activation": activation.model_dump(mode="json") if activation else None,
            "errors": [e.model_dump() for e in result.errors],
        }

    async def refresh_orders(self, order_ids: list[str]) -> dict[str, Any]:
        reconciler = self.reconciler
        run_id = bind_sync_run("refresh_orders")
        try:
            result = await reconciler.reconcile(order_ids)
            out = result.model_dump(mode="json")
            out["sync_run_id"] = run_id
            return out
        finally:
            unbind_sync_run()

    async def list_orders(
        self,
        count: int = 10,
        skip: int = 0,
        from_: str | None = None,
        to: str | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        count, skip = paginate(count, skip, max_count=self.settings.gateway_list_max_count)
        page = await self.gateway.list_orders(
            count=count,
            skip=skip,
            from_ts=to_epoch_seconds(from_, "from"),
            to_ts=to_epoch_seconds(to, "to"),
        )
        items = [o for o in page.items if o.status == status] if status else page.items
        return {
            "orders": [
                {
                    "id": o.id,
                    "status": o.status,
                    "amount": o.amount,
                    "currency": o.currency,
                    "created_at": o.created_at,
                    "receipt": o.receipt,
                    "attempts": o.attempts,
                }
                for o in items
            ],
            "pagination": GatewayPagination(
                count=len(items),
                total_available=len(page.items),
                skip=skip,
                has_more=len(page.items) >= count,
            ).model_dump(),
            "status_summary": status_tally(o.status for o in page.items),
        }

    async def order_payments(self, order_id: str) -> dict[str, Any]:
        payments = await self.gateway.fetch_order_payments(order_id)
        return {"order_id": order_id, "payments": [p.model_dump() for p in payments]}


def build_payments_service(
    store: UserStore,
    gateway: RazorpayGateway | None,
    redis=None,
    settings: Settings | None = None,
) -> PaymentsService:
    settings = settings or get_settings()
    reconciler = None
    if gateway is not None:
        activator = EntitlementActivator(
            store,
            redis=redis,
            notifier=get_notifier(),
            cache_prefixes=settings.cache_key_prefixes,
            default_validity_days=settings.default_plan_validity_days,
        )
        reconciler = BatchReconciler(
            gateway,
            activator,
            batch_size=settings.reconcile_batch_size,
            batch_delay_ms=settings.reconcile_batch_delay_ms,
            max_orders=settings.reconcile_max_orders,
            timeout=settings.reconcile_timeout_seconds,
        )
    return PaymentsService(store, gateway, reconciler, settings)
