"""Entitlement activation: paid grants once, cancelled never grants."""

import json
from datetime import datetime, timedelta

import pytest

from conftest import active_plan, make_gateway_order, make_user
from paysync.models.reconciliation import (
    ACTIVATED,
    ALREADY_APPLIED,
    FAILED,
    SKIPPED,
    STATUS_UPDATED,
    USER_NOT_FOUND,
)
from paysync.services.activation import EntitlementActivator, derive_plan
from paysync.storage.memory import InMemoryUserStore

NOW = datetime(2025, 3, 1, 12, 0, 0)


def _activator(store, **kwargs) -> EntitlementActivator:
    return EntitlementActivator(store, clock=lambda: NOW, **kwargs)


@pytest.mark.asyncio
async def test_paid_order_grants_entitlement_in_one_write():
    store = InMemoryUserStore([make_user("u1", {"ord_1": "pending"})])
    outcome = await _activator(store).apply(make_gateway_order("ord_1", "paid"))

    assert outcome.result == ACTIVATED
    assert outcome.user_id == "u1"
    assert outcome.payment_status == "completed"
    assert len(store.writes) == 1
    user = await store.get("u1")
    assert user.is_premium is True
    assert user.current_order_id == "ord_1"
    assert user.orders["ord_1"].payment_status == "completed"
    assert user.orders["ord_1"].gateway_status == "paid"
    assert user.pending_order_ids == []
    plan = user.premium_plan
    assert plan.is_payment_pending is False
    assert plan.purchased_date == NOW
    assert plan.plan_title == "Gold"
    assert plan.order_id == "ord_1"


@pytest.mark.asyncio
async def test_reapplying_paid_order_is_a_no_op():
    store = InMemoryUserStore([make_user("u1", {"ord_1": "pending"})])
    activator = _activator(store)
    order = make_gateway_order("ord_1", "paid")

    await activator.apply(order)
    first = (await store.get("u1")).model_dump()
    second_outcome = await activator.apply(order)
    second = (await store.get("u1")).model_dump()

    assert second_outcome.result == ALREADY_APPLIED
    assert second == first
    assert len(store.writes) == 1
    assert list(second["orders"]) == ["ord_1"]
    assert second["order_ids"] == ["ord_1"]


@pytest.mark.asyncio
async def test_cancelled_order_never_grants_premium():
    store = InMemoryUserStore([make_user("u1", {"ord_1": "pending"})])
    outcome = await _activator(store).apply(make_gateway_order("ord_1", "cancelled"))

    assert outcome.result == STATUS_UPDATED
    user = await store.get("u1")
    assert user.is_premium is False
    assert user.premium_plan is None
    assert user.orders["ord_1"].payment_status == "cancelled"
    assert user.current_order_id is None


@pytest.mark.asyncio
async def test_cancelled_order_leaves_existing_entitlement_untouched():
    plan = active_plan()
    store = InMemoryUserStore([
        make_user("u1", {"ord_old": "completed", "ord_2": "pending"}, is_premium=True, premium_plan=plan, current_order_id="ord_old")
    ])
    await _activator(store).apply(make_gateway_order("ord_2", "cancelled"))

    user = await store.get("u1")
    assert user.premium_plan == plan
    assert user.current_order_id == "ord_old"
    assert user.orders["ord_2"].payment_status == "cancelled"


@pytest.mark.asyncio
async def test_completed_order_is_never_rewritten():
    store = InMemoryUserStore([make_user("u1", {"ord_1": "completed"})])
    outcome = await _activator(store).apply(make_gateway_order("ord_1", "cancelled"))

    assert outcome.result == ALREADY_APPLIED
    assert store.writes == []
    assert (await store.get("u1")).orders["ord_1"].payment_status == "completed"


@pytest.mark.asyncio
async def test_store_guard_rejects_write_after_concurrent_completion():
    store = InMemoryUserStore([make_user("u1", {"ord_1": "pending"})])
    stale = await store.get("u1")
    activator = _activator(store)
    await activator.apply(make_gateway_order("ord_1", "paid"))

    # A second run still holding the pre-activation snapshot
    outcome = await activator.apply(make_gateway_order("ord_1", "paid"), user=stale)
    assert outcome.result == ALREADY_APPLIED
    assert len(store.writes) == 1


@pytest.mark.asyncio
async def test_unknown_owner_is_reported_without_mutation():
    store = InMemoryUserStore([make_user("u1", {"ord_1": "pending"})])
    outcome = await _activator(store).apply(make_gateway_order("ord_x", "paid"))

    assert outcome.result == USER_NOT_FOUND
    assert outcome.error_code == "USER_NOT_RESOLVED"
    assert outcome.user_phone == "9990001111"
    assert store.writes == []


@pytest.mark.asyncio
async def test_owner_resolved_by_current_order_id_and_order_appended():
    store = InMemoryUserStore([make_user("u1", track_ids=False, current_order_id="ord_9")])
    outcome = await _activator(store).apply(make_gateway_order("ord_9", "paid"))

    assert outcome.result == ACTIVATED
    user = await store.get("u1")
    assert user.order_ids == ["ord_9"]
    record = user.orders["ord_9"]
    assert record.payment_status == "completed"
    assert record.amount == 49900
    assert record.notes.customer_plan == "Gold"
    assert record.created_at == datetime.utcfromtimestamp(1735689600)


@pytest.mark.asyncio
async def test_non_terminal_status_is_skipped():
    store = InMemoryUserStore([make_user("u1", {"ord_1": "pending"})])
    for status in ("created", "attempted", "failed"):
        outcome = await _activator(store).apply(make_gateway_order("ord_1", status))
        assert outcome.result == SKIPPED
    assert store.writes == []


@pytest.mark.asyncio
async def test_store_failure_becomes_failed_outcome():
    class BrokenStore(InMemoryUserStore):
        async def apply_order_update(self, update):
            raise RuntimeError("write conflict")

    store = BrokenStore([make_user("u1", {"ord_1": "pending"})])
    outcome = await _activator(store).apply(make_gateway_order("ord_1", "paid"))

    assert outcome.result == FAILED
    assert outcome.error_code == "ACTIVATION_ERROR"
    assert "write conflict" in outcome.error


@pytest.mark.asyncio
async def test_side_effects_after_activation():
    class FakeRedis:
        def __init__(self):
            self.data = {"user:u1": "x", "premium:9990001111:abc": "y", "user:u2": "z"}

        async def scan_iter(self, match):
            prefix = match.rstrip("*")
            for key in list(self.data):
                if key.startswith(prefix):
                    yield key

        async def delete(self, *keys):
            for k in keys:
                self.data.pop(k, None)
            return len(keys)

    class FakeNotifier:
        enabled = True

        def __init__(self):
            self.sent = []

        async def send(self, player_id, title, message, data=None):
            self.sent.append((player_id, title, data))
            return {"id": "n1"}

    user = make_user("u1", {"ord_1": "pending"})
    user.push_player_id = "player-1"
    store = InMemoryUserStore([user])
    redis, notifier = FakeRedis(), FakeNotifier()
    activator = _activator(store, redis=redis, notifier=notifier, cache_prefixes=["user", "premium"])

    await activator.apply(make_gateway_order("ord_1", "paid"))

    assert redis.data == {"user:u2": "z"}
    assert notifier.sent == [("player-1", "Premium activated", {"order_id": "ord_1"})]


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_activation():
    class FailingNotifier:
        enabled = True

        async def send(self, *args, **kwargs):
            raise RuntimeError("push down")

    user = make_user("u1", {"ord_1": "pending"})
    user.push_player_id = "player-1"
    store = InMemoryUserStore([user])
    outcome = await _activator(store, notifier=FailingNotifier()).apply(make_gateway_order("ord_1", "paid"))

    assert outcome.result == ACTIVATED
    assert (await store.get("u1")).is_premium is True


def test_derive_plan_from_plan_details():
    details = {"plan": "Platinum", "price": 999, "form": "engineering", "expiryDate": "2025-12-31T00:00:00Z"}
    order = make_gateway_order(
        "ord_1",
        "paid",
        notes={"customerPlan": "Gold", "planTitle": "Platinum 2025", "planDetails": json.dumps(details)},
    )
    plan = derive_plan(order, NOW)
    assert plan.plan == "Platinum"
    assert plan.plan_title == "Platinum 2025"
    assert plan.price == "999"
    assert plan.form == "engineering"
    assert plan.expiry_date == datetime(2025, 12, 31)


def test_derive_plan_falls_back_on_unparseable_details():
    order = make_gateway_order("ord_1", "paid", notes={"customerPlan": "Gold", "planDetails": "{not json"})
    plan = derive_plan(order, NOW, default_validity_days=180)
    assert plan.plan == "Gold"
    assert plan.plan_title == "Gold"
    assert plan.price == "0"
    assert plan.form == "Unknown"
    assert plan.expiry == 60
    assert plan.expiry_date == NOW + timedelta(days=180)


def test_plan_term_does_not_shorten_access():
    order = make_gateway_order("ord_1", "paid", notes={"planDetails": json.dumps({"plan": "Silver", "expiry": 30})})
    plan = derive_plan(order, NOW)
    assert plan.plan_title == "Silver"
    assert plan.expiry == 30
    assert plan.expiry_date == NOW + timedelta(days=180)
