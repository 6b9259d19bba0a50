"""Dead letter for sync jobs that raised instead of returning a summary."""

from datetime import datetime

from beanie import Document
from pydantic import Field


class FailedJob(Document):
    job_name: str
    job_id: str
    reason: str = ""
    error_code: str | None = None  # AppError.code when the job raised one
    order_id: str | None = None  # set for gateway errors tied to one order
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "failed_sync_jobs"
        indexes = [[("job_name", 1), ("created_at", -1)]]
