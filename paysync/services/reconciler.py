"""
Batch reconciliation against the gateway.

Order ids are fetched in fixed-size chunks: chunks run one after another with a short
pause in between, the fetches inside a chunk run concurrently. Every order id ends up
exactly once in either ``orders`` or ``errors``; one failing id never affects its siblings.
Paid and cancelled orders are handed to the activator as they arrive.
"""

import asyncio
import time
from typing import Any, Callable, Iterable, Mapping

from paysync.core.exceptions import AppError, BadRequestError
from paysync.core.logging import get_logger
from paysync.models.gateway import GatewayOrder
from paysync.models.order import PAID, PENDING, TERMINAL_GATEWAY_STATUSES, local_status_for
from paysync.models.reconciliation import (
    ACTIVATED,
    FAILED,
    STATUS_UPDATED,
    ActivationOutcome,
    BatchResult,
    BatchSummary,
    OrderError,
    ReconciledOrder,
)
from paysync.services.activation import EntitlementActivator
from paysync.services.reporting import status_breakdown

log = get_logger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY_MS = 100
DEFAULT_MAX_ORDERS = 50

_OPEN_GATEWAY_STATUSES = ("created", "attempted")


def expected_local_status(gateway_status: str) -> str:
    """What the local record should read for a gateway status; open orders are still pending."""
    if gateway_status in _OPEN_GATEWAY_STATUSES:
        return PENDING
    return local_status_for(gateway_status)


def _reconciled(order: GatewayOrder, local_status: str | None) -> ReconciledOrder:
    return ReconciledOrder(
        id=order.id,
        status=order.status,
        amount=order.amount,
        currency=order.currency,
        created_at=order.created_at,
        receipt=order.receipt,
        attempts=order.attempts,
        amount_paid=order.amount_paid,
        amount_due=order.amount_due,
        notes=order.notes,
        was_paid=order.status == PAID,
        local_status=local_status,
        status_changed=local_status is not None and local_status != expected_local_status(order.status),
    )


class BatchReconciler:
    def __init__(
        self,
        gateway: Any,
        activator: EntitlementActivator,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS,
        max_orders: int = DEFAULT_MAX_ORDERS,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.activator = activator
        self.batch_size = max(1, batch_size)
        self.batch_delay = max(0, batch_delay_ms) / 1000
        self.max_orders = max_orders
        self.timeout = timeout
        self.clock = clock
        self.sleep = sleep

    def validate(self, order_ids: Iterable[str] | None, enforce_cap: bool = True) -> list[str]:
        """Whole-call preconditions; returns unique ids in first-seen order."""
        raw = list(order_ids or [])
        if not raw:
            raise BadRequestError("Array of order IDs is required")
        if enforce_cap and len(raw) > self.max_orders:
            raise BadRequestError(
                f"Maximum {self.max_orders} orders can be checked at once",
                details={"max_orders": self.max_orders, "requested": len(raw)},
            )
        ids = list(dict.fromkeys(str(o).strip() for o in raw if o is not None and str(o).strip()))
        if not ids:
            raise BadRequestError("Array of order IDs is required")
        return ids

    async def reconcile(
        self,
        order_ids: Iterable[str],
        local_statuses: Mapping[str, str] | None = None,
        enforce_cap: bool = True,
        timeout: float | None = None,
    ) -> BatchResult:
        ids = self.validate(order_ids, enforce_cap=enforce_cap)
        local_statuses = local_statuses or {}
        timeout = timeout if timeout is not None else self.timeout
        deadline = self.clock() + timeout if timeout else None

        fetched: dict[str, ReconciledOrder] = {}
        errors: list[OrderError] = []
        activations: list[ActivationOutcome] = []

        for start in range(0, len(ids), self.batch_size):
            if deadline is not None and self.clock() >= deadline:
                remaining = ids[start:]
                log.warning("batch_deadline_exceeded", not_started=len(remaining))
                errors.extend(
                    OrderError(
                        order_id=oid,
                        code="DEADLINE_EXCEEDED",
                        error="Not processed before the request deadline",
                    )
                    for oid in remaining
                )
                break
            chunk = ids[start:start + self.batch_size]
            results = await asyncio.gather(*(self._process(oid, local_statuses.get(oid)) for oid in chunk))
            for order_id, reconciled, error, activation in results:
                if reconciled is not None:
                    fetched[order_id] = reconciled
                if error is not None:
                    errors.append(error)
                if activation is not None:
                    activations.append(activation)
                    if activation.result == FAILED:
                        errors.append(
                            OrderError(
                                order_id=order_id,
                                code=activation.error_code or "ACTIVATION_ERROR",
                                error=activation.error or "Activation failed",
                            )
                        )
            log.info("batch_chunk_done", offset=start, size=len(chunk), fetched=len(fetched), errors=len(errors))
            if start + self.batch_size < len(ids) and self.batch_delay:
                await self.sleep(self.batch_delay)

        orders = [fetched[oid] for oid in ids if oid in fetched]
        summary = BatchSummary(
            total_requested=len(ids),
            successful_fetches=len(orders),
            errors=len(errors),
            status_breakdown=status_breakdown(o.status for o in orders),
            status_mismatches=sum(1 for o in orders if o.status_changed),
            activations_applied=sum(1 for a in activations if a.result in (ACTIVATED, STATUS_UPDATED)),
        )
        log.info(
            "batch_reconciled",
            requested=summary.total_requested,
            fetched=summary.successful_fetches,
            errors=summary.errors,
            activations_applied=summary.activations_applied,
        )
        return BatchResult(orders=orders, errors=errors, activations=activations, summary=summary)

    async def _process(
        self, order_id: str, local_status: str | None
    ) -> tuple[str, ReconciledOrder | None, OrderError | None, ActivationOutcome | None]:
        try:
            order = await self.gateway.fetch_order(order_id)
        except AppError as e:
            log.warning("gateway_fetch_failed", order_id=order_id, code=e.code, error=e.message)
            return order_id, None, OrderError(order_id=order_id, code=e.code, error=e.message), None
        except Exception as e:
            log.exception("gateway_fetch_failed", order_id=order_id, error=str(e))
            return order_id, None, OrderError(order_id=order_id, code="GATEWAY_ERROR", error=str(e)), None

        activation = None
        if order.status in TERMINAL_GATEWAY_STATUSES:
            activation = await self.activator.apply(order)
        return order_id, _reconciled(order, local_status), None, activation
