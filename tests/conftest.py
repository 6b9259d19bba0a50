import asyncio
import os
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory store and no external services for tests
os.environ.setdefault("USER_STORE_BACKEND", "memory")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("RAZORPAY_KEY_ID", "")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "")
os.environ.setdefault("OPERATOR_API_KEY", "")
os.environ.setdefault("ONESIGNAL_APP_ID", "")

from paysync.core.exceptions import GatewayNotFoundError  # noqa: E402
from paysync.models.account import UserAccount  # noqa: E402
from paysync.models.gateway import GatewayOrder, GatewayOrderPage, GatewayPayment  # noqa: E402
from paysync.models.order import LocalOrderRecord, OrderNotes  # noqa: E402
from paysync.models.premium_plan import PremiumPlan  # noqa: E402
from paysync.storage.memory import InMemoryUserStore  # noqa: E402


class FakeGateway:
    """Gateway double: serves orders from a dict, raises configured errors, records calls."""

    def __init__(self, orders: dict[str, GatewayOrder] | None = None, latency: float = 0.0):
        self.orders = dict(orders or {})
        self.failures: dict[str, Exception] = {}
        self.payments: dict[str, list[GatewayPayment]] = {}
        self.page: GatewayOrderPage | None = None
        self.latency = latency
        self.calls: list[str] = []
        self.list_calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(self, order: GatewayOrder) -> None:
        self.orders[order.id] = order

    async def fetch_order(self, order_id: str) -> GatewayOrder:
        self.calls.append(order_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            if order_id in self.failures:
                raise self.failures[order_id]
            if order_id not in self.orders:
                raise GatewayNotFoundError("The id provided does not exist", order_id=order_id)
            return self.orders[order_id]
        finally:
            self.in_flight -= 1

    async def fetch_order_payments(self, order_id: str) -> list[GatewayPayment]:
        if order_id not in self.orders:
            raise GatewayNotFoundError("The id provided does not exist", order_id=order_id)
        return self.payments.get(order_id, [])

    async def list_orders(self, count=10, skip=0, from_ts=None, to_ts=None) -> GatewayOrderPage:
        self.list_calls.append({"count": count, "skip": skip, "from_ts": from_ts, "to_ts": to_ts})
        return self.page or GatewayOrderPage(items=list(self.orders.values()), count=len(self.orders))


def make_gateway_order(order_id: str, status: str = "created", **overrides: Any) -> GatewayOrder:
    data = {
        "id": order_id,
        "status": status,
        "amount": 49900,
        "amount_paid": 49900 if status == "paid" else 0,
        "amount_due": 0 if status == "paid" else 49900,
        "currency": "INR",
        "receipt": f"rcpt_{order_id}",
        "created_at": 1735689600,
        "attempts": 1 if status != "created" else 0,
        "notes": {"userPhone": "9990001111", "customerPlan": "Gold"},
    }
    data.update(overrides)
    return GatewayOrder.from_api(data)


def make_user(
    user_id: str,
    orders: dict[str, str] | None = None,
    name: str = "Asha",
    phone: str = "9990001111",
    is_premium: bool = False,
    premium_plan: PremiumPlan | None = None,
    current_order_id: str | None = None,
    track_ids: bool = True,
) -> UserAccount:
    """orders: order_id -> local payment_status."""
    records = {
        oid: LocalOrderRecord(
            order_id=oid,
            amount=49900,
            payment_status=status,
            notes=OrderNotes(customer_plan="Gold"),
            created_at=datetime(2025, 1, 1),
        )
        for oid, status in (orders or {}).items()
    }
    return UserAccount(
        id=user_id,
        name=name,
        phone=phone,
        current_order_id=current_order_id,
        order_ids=list(records) if track_ids else [],
        pending_order_ids=[oid for oid, r in records.items() if r.is_pending],
        orders=records if track_ids else {},
        is_premium=is_premium,
        premium_plan=premium_plan,
    )


def active_plan(days: int = 30) -> PremiumPlan:
    now = datetime.utcnow()
    return PremiumPlan(
        plan="Gold",
        plan_title="Gold",
        purchased_date=now - timedelta(days=1),
        expiry_date=now + timedelta(days=days),
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest_asyncio.fixture
async def client(store, gateway) -> AsyncGenerator[AsyncClient, None]:
    from paysync.core.config import get_settings
    from paysync.deps import get_payments_service, get_readonly_payments_service, get_store
    from paysync.main import app
    from paysync.services.payments import build_payments_service

    settings = get_settings()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_readonly_payments_service] = lambda: build_payments_service(store, None, settings=settings)
    app.dependency_overrides[get_payments_service] = lambda: build_payments_service(store, gateway, settings=settings)
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
