from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from paysync.core.config import get_settings
from paysync.deps import get_payments_service, get_readonly_payments_service, require_operator
from paysync.services.payments import PaymentsService

router = APIRouter(dependencies=[Depends(require_operator)])


class RefreshOrdersRequest(BaseModel):
    order_ids: list[str] = Field(default_factory=list, alias="orderIds")

    model_config = {"populate_by_name": True}


@router.get("/health")
async def payments_health():
    """Whether gateway credentials are configured (values are never returned)."""
    settings = get_settings()
    return {
        "message": "Razorpay order API is running",
        "timestamp": datetime.utcnow().isoformat(),
        "config": {
            "key_id_configured": bool(settings.razorpay_key_id),
            "key_secret_configured": bool(settings.razorpay_key_secret),
        },
    }


@router.get("/pending-orders")
async def pending_orders(service: PaymentsService = Depends(get_readonly_payments_service)):
    """Locally pending orders of users who have never paid, with count and total amount."""
    return await service.pending_orders()


@router.post("/sync-pending-orders")
async def sync_pending_orders(service: PaymentsService = Depends(get_payments_service)):
    """Reconcile every discovered pending order with Razorpay and apply paid/cancelled results."""
    return await service.sync_pending_orders()


@router.get("/order/{order_id}/status")
async def order_status(order_id: str, service: PaymentsService = Depends(get_payments_service)):
    return await service.order_status(order_id)


@router.get("/order/{order_id}/payments")
async def order_payments(order_id: str, service: PaymentsService = Depends(get_payments_service)):
    return await service.order_payments(order_id)


@router.post("/orders/refresh")
async def refresh_orders(
    body: RefreshOrdersRequest,
    service: PaymentsService = Depends(get_payments_service),
):
    """Bulk refresh of up to RECONCILE_MAX_ORDERS caller-supplied order ids."""
    return await service.refresh_orders(body.order_ids)


@router.get("/orders")
async def list_orders(
    count: int = Query(10, ge=1),
    skip: int = Query(0, ge=0),
    from_: str | None = Query(None, alias="from"),
    to: str | None = None,
    status: str | None = None,
    service: PaymentsService = Depends(get_payments_service),
):
    """Razorpay order listing with an in-page status tally."""
    return await service.list_orders(count=count, skip=skip, from_=from_, to=to, status=status)
