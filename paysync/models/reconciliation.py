"""Result shapes produced by the locator, reconciler and activator."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# ActivationOutcome.result values
ACTIVATED = "activated"
STATUS_UPDATED = "status_updated"
ALREADY_APPLIED = "already_applied"
USER_NOT_FOUND = "user_not_found"
SKIPPED = "skipped"
FAILED = "failed"


class PendingOrder(BaseModel):
    order_id: str
    phone: str | None = None
    user_id: str
    name: str = "N/A"
    amount: int = 0
    currency: str = "INR"
    customer_plan: str = "N/A"
    created_at: datetime | None = None


class PendingOrdersSummary(BaseModel):
    total_pending: int
    total_amount: int


class ActivationOutcome(BaseModel):
    order_id: str
    result: str
    gateway_status: str
    user_id: str | None = None
    user_phone: str | None = None
    payment_status: str | None = None  # local status after the write
    plan_title: str | None = None
    error: str | None = None
    error_code: str | None = None


class OrderError(BaseModel):
    order_id: str
    code: str
    error: str


class ReconciledOrder(BaseModel):
    id: str
    status: str
    amount: int
    currency: str
    created_at: int | None = None
    receipt: str | None = None
    attempts: int = 0
    amount_paid: int = 0
    amount_due: int = 0
    notes: dict[str, Any] = Field(default_factory=dict)
    was_paid: bool
    local_status: str | None = None  # local payment_status before this run, when known
    status_changed: bool = False


class BatchSummary(BaseModel):
    total_requested: int
    successful_fetches: int
    errors: int
    status_breakdown: dict[str, int]
    status_mismatches: int
    activations_applied: int


class BatchResult(BaseModel):
    orders: list[ReconciledOrder] = Field(default_factory=list)
    errors: list[OrderError] = Field(default_factory=list)
    activations: list[ActivationOutcome] = Field(default_factory=list)
    summary: BatchSummary
