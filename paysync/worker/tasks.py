"""ARQ job definitions."""

import uuid
from typing import Any

from arq.connections import RedisSettings

from paysync.core.config import get_settings
from paysync.core.exceptions import AppError
from paysync.core.logging import configure_logging, get_logger
from paysync.services.gateway import get_gateway
from paysync.services.payments import build_payments_service
from paysync.storage.base import get_user_store

log = get_logger(__name__)


async def _run_with_dlq(job_name: str, job_id: str | None, coro) -> Any:
    """Run coroutine; on exception persist to FailedJob (Mongo backend) then re-raise."""
    try:
        return await coro
    except Exception as e:
        fid = job_id or str(uuid.uuid4())
        log.exception("job_failed", job=job_name, job_id=fid, reason=str(e))
        if get_settings().user_store_backend == "mongo":
            from paysync.models.failed_job import FailedJob
            await FailedJob(
                job_name=job_name,
                job_id=fid,
                reason=str(e)[:2000],
                error_code=e.code if isinstance(e, AppError) else None,
                order_id=getattr(e, "order_id", None),
            ).insert()
        raise


async def sync_pending_orders(ctx: dict[str, Any]) -> dict[str, Any]:
    """Discover pending orders and reconcile them against Razorpay."""
    job_id = ctx.get("job_id") if isinstance(ctx.get("job_id"), str) else None

    async def _run() -> dict[str, Any]:
        log.info("job_start", job="sync_pending_orders")
        service = build_payments_service(ctx["store"], gateway=get_gateway(), redis=ctx.get("redis"))
        out = await service.sync_pending_orders()
        log.info("job_done", job="sync_pending_orders", summary=out.get("summary"))
        return out["summary"]

    return await _run_with_dlq("sync_pending_orders", job_id, _run())


async def startup(ctx: dict) -> None:
    settings = get_settings()
    configure_logging(debug=settings.debug)
    if settings.user_store_backend == "mongo":
        from paysync.db.init import init_db
        await init_db()
    ctx["store"] = get_user_store()


async def shutdown(ctx: dict) -> None:
    ctx.pop("store", None)
    if get_settings().user_store_backend == "mongo":
        from paysync.db.init import close_db
        close_db()


def get_redis_settings() -> RedisSettings:
    from urllib.parse import urlparse
    s = get_settings()
    u = urlparse(s.redis_url)
    return RedisSettings(
        host=u.hostname or "localhost",
        port=u.port or 6379,
        password=u.password,
        database=int(u.path.lstrip("/")) if u.path.lstrip("/") else 0,
    )
