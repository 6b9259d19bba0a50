"""Run ARQ worker. Usage: python -m paysync.worker.run_worker"""

from arq import run_worker
from arq.cron import cron

from paysync.core.config import get_settings
from paysync.worker.tasks import get_redis_settings, shutdown, startup, sync_pending_orders


def _cron_jobs() -> list:
    if not get_settings().sync_cron_enabled:
        return []
    return [cron(sync_pending_orders, minute={0, 15, 30, 45}, second=0)]


class WorkerSettings:
    """Also usable as `arq paysync.worker.run_worker.WorkerSettings`."""
    redis_settings = get_redis_settings()
    functions = [sync_pending_orders]
    cron_jobs = _cron_jobs()
    on_startup = startup
    on_shutdown = shutdown


if __name__ == "__main__":
    run_worker(WorkerSettings)
