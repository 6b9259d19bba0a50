"""Store-agnostic snapshot of a user, as handed to the locator and activator."""

from datetime import datetime

from pydantic import BaseModel, Field

from paysync.models.order import LocalOrderRecord
from paysync.models.premium_plan import PremiumPlan


class UserAccount(BaseModel):
    id: str
    name: str = ""
    phone: str | None = None
    current_order_id: str | None = None
    order_ids: list[str] = Field(default_factory=list)
    pending_order_ids: list[str] = Field(default_factory=list)
    orders: dict[str, LocalOrderRecord] = Field(default_factory=dict)
    is_premium: bool = False
    premium_plan: PremiumPlan | None = None
    push_player_id: str | None = None

    def owns_order(self, order_id: str) -> bool:
        return order_id in self.order_ids or order_id in self.orders

    def has_completed_order(self) -> bool:
        return any(o.is_completed for o in self.orders.values())

    def has_active_entitlement(self, now: datetime | None = None) -> bool:
        if not self.is_premium:
            return False
        # Premium flag without a plan is legacy data; treat as entitled
        if self.premium_plan is None:
            return True
        return self.premium_plan.is_active(now)


class OrderUpdate(BaseModel):
    """One atomic write against a single user document."""
    user_id: str
    order: LocalOrderRecord
    premium_plan: PremiumPlan | None = None  # set only on a paid transition
    current_order_id: str | None = None
