"""Cache invalidation for user-scoped keys after an order write."""

from typing import Iterable

from paysync.core.logging import get_logger
from paysync.models.account import UserAccount

log = get_logger(__name__)


def user_key_patterns(user: UserAccount, prefixes: Iterable[str]) -> list[str]:
    patterns = []
    for prefix in prefixes:
        patterns.append(f"{prefix}:{user.id}*")
        if user.phone:
            patterns.append(f"{prefix}:{user.phone}*")
    return patterns


async def invalidate_user(redis, user: UserAccount, prefixes: Iterable[str]) -> int:
    """Delete cached entries for this user; return number of keys removed. Never raises."""
    if redis is None:
        return 0
    removed = 0
    try:
        for pattern in user_key_patterns(user, prefixes):
            keys = [k async for k in redis.scan_iter(match=pattern)]
            if keys:
                removed += await redis.delete(*keys)
    except Exception as e:
        log.warning("cache_invalidation_failed", user_id=user.id, error=str(e))
    return removed
