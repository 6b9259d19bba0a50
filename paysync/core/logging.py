import logging
import sys
import uuid

import structlog

_QUIET_LOGGERS = ("urllib3", "httpx", "httpcore")


def configure_logging(debug: bool = False) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # Razorpay goes through requests, OneSignal through httpx
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def bind_request_id(request_id: str) -> None:
    structlog.contextvars.bind_contextvars(request_id=request_id)


def bind_sync_run(kind: str) -> str:
    """Tag subsequent log lines with a fresh reconciliation run id; return it."""
    run_id = uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(sync_run_id=run_id, sync_kind=kind)
    return run_id


def unbind_sync_run() -> None:
    structlog.contextvars.unbind_contextvars("sync_run_id", "sync_kind")


def current_sync_run_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("sync_run_id")
