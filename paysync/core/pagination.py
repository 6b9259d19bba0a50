"""Pagination helpers."""

from datetime import datetime

from pydantic import BaseModel

from paysync.core.exceptions import BadRequestError


class GatewayPagination(BaseModel):
    count: int
    total_available: int
    skip: int
    has_more: bool


def paginate(count: int, skip: int, max_count: int = 100) -> tuple[int, int]:
    """Clamp count/skip; return (count, skip)."""
    count = max(1, min(count, max_count))
    skip = max(0, skip)
    return count, skip


def to_epoch_seconds(value: str | None, field: str) -> int | None:
    """Parse an ISO date/datetime query value into gateway epoch seconds."""
    if not value:
        return None
    try:
        return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
    except ValueError as e:
        raise BadRequestError(f"Invalid '{field}' datetime: {value}") from e
