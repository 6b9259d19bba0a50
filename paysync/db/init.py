import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from paysync.core.config import get_settings
from paysync.core.logging import get_logger
from paysync.models.audit_log import OrderAuditLog
from paysync.models.failed_job import FailedJob
from paysync.models.user import User

log = get_logger(__name__)

DOCUMENT_MODELS = [
    User,
    OrderAuditLog,
    FailedJob,
]

_client: AsyncIOMotorClient | None = None


def _use_tls(uri: str) -> bool:
    """True if URI uses TLS (Atlas or explicit tls=true). Avoids TLS for plain mongodb:// in CI."""
    return "mongodb+srv://" in uri or "tls=true" in uri.lower()


async def init_db() -> None:
    """Connect once per process and register the user, audit and dead-letter collections."""
    global _client
    if _client is not None:
        return
    settings = get_settings()
    # Atlas in Docker: tlsCAFile + tlsDisableOCSPEndpointCheck avoid TLSV1_ALERT_INTERNAL_ERROR
    kwargs = {}
    if _use_tls(settings.mongodb_uri):
        kwargs["tlsCAFile"] = certifi.where()
        kwargs["tlsDisableOCSPEndpointCheck"] = True
    client = AsyncIOMotorClient(settings.mongodb_uri, **kwargs)
    await init_beanie(database=client[settings.mongodb_db_name], document_models=DOCUMENT_MODELS)
    _client = client
    log.info("db_initialized", db=settings.mongodb_db_name, collections=[m.Settings.name for m in DOCUMENT_MODELS])


def close_db() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
