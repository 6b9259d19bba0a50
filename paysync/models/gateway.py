"""Razorpay entities as read by this service (never written back)."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GatewayOrder(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    status: str  # created | attempted | paid | cancelled | failed
    amount: int = 0
    amount_paid: int = 0
    amount_due: int = 0
    currency: str = "INR"
    receipt: str | None = None
    created_at: int | None = None  # epoch seconds
    attempts: int = 0
    notes: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "GatewayOrder":
        data = dict(data)
        # Razorpay returns [] instead of {} for orders created without notes
        if not isinstance(data.get("notes"), dict):
            data["notes"] = {}
        return cls.model_validate(data)

    @property
    def user_phone(self) -> str | None:
        return self.notes.get("userPhone")

    @property
    def customer_plan(self) -> str | None:
        return self.notes.get("customerPlan")


class GatewayPayment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    amount: int = 0
    method: str | None = None
    created_at: int | None = None
    error_code: str | None = None
    error_description: str | None = None


class GatewayOrderPage(BaseModel):
    items: list[GatewayOrder]
    count: int
