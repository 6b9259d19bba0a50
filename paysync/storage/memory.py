"""In-process user store for local runs and tests; optionally seeded from a JSON export."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any

from paysync.models.account import OrderUpdate, UserAccount
from paysync.models.order import LocalOrderRecord, OrderNotes
from paysync.storage.base import UserStore


def _parse_timestamp(value: Any) -> datetime | None:
    """Accept ISO strings, epoch seconds, or exported {"_seconds": ...} timestamps."""
    if value is None or value == "":
        return None
    if isinstance(value, dict) and "_seconds" in value:
        return datetime.utcfromtimestamp(value["_seconds"])
    if isinstance(value, (int, float)):
        return datetime.utcfromtimestamp(value)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)


def account_from_export(raw: dict[str, Any]) -> UserAccount:
    """Build a UserAccount from an exported user document (camelCase, orders as a list)."""
    orders: dict[str, LocalOrderRecord] = {}
    for o in raw.get("orders") or []:
        order_id = str(o.get("orderId") or "").strip()
        if not order_id:
            continue
        notes = o.get("notes") or {}
        orders[order_id] = LocalOrderRecord(
            order_id=order_id,
            amount=o.get("amount") or 0,
            currency=o.get("currency") or "INR",
            payment_status=o.get("paymentStatus") or "pending",
            notes=OrderNotes(customer_plan=notes.get("customerPlan")),
            created_at=_parse_timestamp(o.get("createdAt")),
        )
    order_ids = [str(oid).strip() for oid in raw.get("orderIds") or [] if str(oid).strip()]
    for order_id in orders:
        if order_id not in order_ids:
            order_ids.append(order_id)
    return UserAccount(
        id=str(raw["id"]),
        name=raw.get("name") or "",
        phone=raw.get("phone"),
        current_order_id=(raw.get("currentOrderId") or "").strip() or None,
        order_ids=order_ids,
        pending_order_ids=[oid for oid, rec in orders.items() if rec.is_pending],
        orders=orders,
        is_premium=bool(raw.get("isPremium")),
        push_player_id=raw.get("playerId"),
    )


class InMemoryUserStore(UserStore):
    def __init__(self, accounts: list[UserAccount] | None = None):
        self._users: dict[str, UserAccount] = {}
        # Stands in for the per-document atomicity a real store gives us
        self._lock = asyncio.Lock()
        self.writes: list[OrderUpdate] = []
        for account in accounts or []:
            self._users[account.id] = account.model_copy(deep=True)

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryUserStore":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls([account_from_export(raw) for raw in data])

    async def put(self, account: UserAccount) -> None:
        async with self._lock:
            self._users[account.id] = account.model_copy(deep=True)

    async def get(self, user_id: str) -> UserAccount | None:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def find_by_order_id(self, order_id: str) -> UserAccount | None:
        for user in self._users.values():
            if order_id in user.order_ids:
                return user.model_copy(deep=True)
        for user in self._users.values():
            if user.current_order_id == order_id:
                return user.model_copy(deep=True)
        return None

    async def list_with_pending_orders(self) -> list[UserAccount]:
        return [u.model_copy(deep=True) for u in self._users.values() if u.pending_order_ids]

    async def apply_order_update(self, update: OrderUpdate) -> bool:
        async with self._lock:
            user = self._users.get(update.user_id)
            if user is None:
                return False
            record = update.order
            existing = user.orders.get(record.order_id)
            if existing is not None and existing.is_completed:
                return False
            user.orders[record.order_id] = record.model_copy(deep=True)
            if record.order_id not in user.order_ids:
                user.order_ids.append(record.order_id)
            if record.is_pending:
                if record.order_id not in user.pending_order_ids:
                    user.pending_order_ids.append(record.order_id)
            else:
                user.pending_order_ids = [oid for oid in user.pending_order_ids if oid != record.order_id]
            if update.premium_plan is not None:
                user.is_premium = True
                user.premium_plan = update.premium_plan.model_copy(deep=True)
            if update.current_order_id:
                user.current_order_id = update.current_order_id
            self.writes.append(update)
            return True
