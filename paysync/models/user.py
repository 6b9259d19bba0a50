from datetime import datetime

from beanie import Document, Indexed
from pydantic import Field

from paysync.models.account import UserAccount
from paysync.models.order import LocalOrderRecord
from paysync.models.premium_plan import PremiumPlan


class User(Document):
    name: str = ""
    phone: Indexed(str) | None = None
    current_order_id: Indexed(str) | None = None
    order_ids: list[str] = Field(default_factory=list)
    pending_order_ids: list[str] = Field(default_factory=list)  # kept in step with orders.*.payment_status
    orders: dict[str, LocalOrderRecord] = Field(default_factory=dict)
    is_premium: bool = False
    premium_plan: PremiumPlan | None = None
    push_player_id: str | None = None  # OneSignal player id
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        indexes = [
            [("order_ids", 1)],
            [("pending_order_ids", 1)],
        ]

    def to_account(self) -> UserAccount:
        return UserAccount(
            id=str(self.id),
            name=self.name,
            phone=self.phone,
            current_order_id=self.current_order_id,
            order_ids=list(self.order_ids),
            pending_order_ids=list(self.pending_order_ids),
            orders=dict(self.orders),
            is_premium=self.is_premium,
            premium_plan=self.premium_plan,
            push_player_id=self.push_player_id,
        )
