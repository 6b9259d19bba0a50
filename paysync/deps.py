"""Shared FastAPI dependencies."""

from functools import lru_cache
from typing import AsyncGenerator

import redis.asyncio as aioredis
from fastapi import Depends, Header

from paysync.core.config import get_settings
from paysync.core.security import require_operator_key
from paysync.services.gateway import get_gateway
from paysync.services.payments import PaymentsService, build_payments_service
from paysync.storage.base import UserStore, get_user_store


async def require_operator(x_operator_key: str | None = Header(default=None, alias="X-Operator-Key")) -> None:
    """Dependency: operator tooling key, when one is configured."""
    require_operator_key(x_operator_key)


@lru_cache
def get_store() -> UserStore:
    """One store per process; the in-memory backend keeps its state here."""
    return get_user_store()


async def get_redis() -> AsyncGenerator:
    url = get_settings().redis_url
    if not url:
        yield None
        return
    redis = aioredis.from_url(url, decode_responses=True)
    try:
        yield redis
    finally:
        await redis.aclose()


def get_readonly_payments_service(store: UserStore = Depends(get_store)) -> PaymentsService:
    """Service for store-only operations; does not need gateway credentials."""
    return build_payments_service(store, gateway=None)


def get_payments_service(
    store: UserStore = Depends(get_store),
    redis=Depends(get_redis),
) -> PaymentsService:
    """Raises ConfigurationError before any work when Razorpay credentials are missing."""
    return build_payments_service(store, gateway=get_gateway(), redis=redis)
