from datetime import datetime

from pydantic import BaseModel


class PremiumPlan(BaseModel):
    """Purchased access grant. Written only when an order is confirmed paid."""
    plan: str
    plan_title: str
    price: str = "0"
    form: str = "Unknown"  # counselling form this plan unlocks
    expiry: int = 60  # advertised plan term as sold; expiry_date governs access
    order_id: str | None = None
    purchased_date: datetime | None = None
    expiry_date: datetime
    is_payment_pending: bool = False

    def is_active(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return not self.is_payment_pending and self.expiry_date > now
