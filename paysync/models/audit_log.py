"""One row per order write applied by reconciliation."""

from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import Field


class OrderAuditLog(Document):
    user_id: str
    event_type: str  # order_activated | order_status_updated
    order_id: str
    payment_status: str
    gateway_status: str | None = None
    sync_run_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "order_audit_logs"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("order_id", 1)],
        ]
