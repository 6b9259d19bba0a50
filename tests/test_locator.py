"""Pending-order discovery over a user snapshot."""

from datetime import datetime, timedelta

from conftest import active_plan, make_user
from paysync.models.premium_plan import PremiumPlan
from paysync.services.locator import locate_pending_orders


def test_user_with_completed_order_is_excluded_entirely():
    users = [
        make_user("u1", {"ord_a": "completed", "ord_b": "pending"}),
        make_user("u2", {"ord_c": "pending", "ord_d": "pending"}, phone="8880002222"),
    ]
    out = locate_pending_orders(users)
    assert [p.order_id for p in out] == ["ord_c", "ord_d"]
    assert {p.user_id for p in out} == {"u2"}
    assert out[0].phone == "8880002222"


def test_user_with_active_entitlement_is_excluded():
    users = [make_user("u1", {"ord_a": "pending"}, is_premium=True, premium_plan=active_plan())]
    assert locate_pending_orders(users) == []


def test_expired_entitlement_does_not_exclude():
    expired = PremiumPlan(
        plan="Gold",
        plan_title="Gold",
        purchased_date=datetime.utcnow() - timedelta(days=200),
        expiry_date=datetime.utcnow() - timedelta(days=20),
    )
    users = [make_user("u1", {"ord_a": "pending"}, is_premium=True, premium_plan=expired)]
    assert [p.order_id for p in locate_pending_orders(users)] == ["ord_a"]


def test_only_pending_records_are_listed():
    users = [make_user("u1", {"ord_a": "cancelled", "ord_b": "pending", "ord_c": "failed"})]
    assert [p.order_id for p in locate_pending_orders(users)] == ["ord_b"]


def test_excluded_name_markers_skip_test_accounts():
    users = [
        make_user("u1", {"ord_a": "pending"}, name="Demo Account"),
        make_user("u2", {"ord_b": "pending"}, name="Ravi"),
    ]
    out = locate_pending_orders(users, excluded_name_markers=["Demo"])
    assert [p.order_id for p in out] == ["ord_b"]


def test_users_without_a_name_are_skipped():
    users = [
        make_user("u1", {"ord_a": "pending"}, name=""),
        make_user("u2", {"ord_b": "pending"}, name="Ravi"),
    ]
    assert [p.order_id for p in locate_pending_orders(users)] == ["ord_b"]


def test_order_ids_are_stripped():
    users = [make_user("u1", {" ord_a ": "pending", "  ": "pending"})]
    assert [p.order_id for p in locate_pending_orders(users)] == ["ord_a"]


def test_output_fields_and_defaults():
    user = make_user("u1", {"ord_a": "pending"})
    user.orders["ord_a"].notes.customer_plan = None
    [p] = locate_pending_orders([user])
    assert p.name == "Asha"
    assert p.customer_plan == "N/A"
    assert p.currency == "INR"
    assert p.amount == 49900
    assert p.created_at == datetime(2025, 1, 1)


def test_is_pure():
    users = [make_user("u1", {"ord_a": "pending"})]
    before = [u.model_dump() for u in users]
    locate_pending_orders(users)
    locate_pending_orders(users)
    assert [u.model_dump() for u in users] == before
