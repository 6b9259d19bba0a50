"""Local order records embedded on User, keyed by Razorpay order id."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

PENDING = "pending"
COMPLETED = "completed"

# Gateway statuses that drive the activator
PAID = "paid"
TERMINAL_GATEWAY_STATUSES = ("paid", "cancelled")


class OrderNotes(BaseModel):
    model_config = ConfigDict(extra="allow")

    customer_plan: str | None = None


class LocalOrderRecord(BaseModel):
    order_id: str
    amount: int = 0  # paise
    currency: str = "INR"
    payment_status: str = PENDING  # pending | completed | cancelled | failed | mirrored gateway status
    gateway_status: str | None = None
    attempts: int = 0
    receipt: str | None = None
    notes: OrderNotes = Field(default_factory=OrderNotes)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_pending(self) -> bool:
        return self.payment_status == PENDING

    @property
    def is_completed(self) -> bool:
        return self.payment_status == COMPLETED


def local_status_for(gateway_status: str) -> str:
    """paid -> completed; any other gateway status is mirrored as-is."""
    if gateway_status == PAID:
        return COMPLETED
    return gateway_status
