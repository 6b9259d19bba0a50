from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]


def _parse_csv_list(v: Any, default: List[str]) -> List[str]:
    try:
        if v is None or v == "":
            return default.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return default.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or default.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or default.copy()
    except Exception:
        return default.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")

    # Operator tooling: when set, X-Operator-Key must match
    operator_api_key: str = Field(default="", alias="OPERATOR_API_KEY")

    # User store: "mongo" (Beanie) or "memory" (local runs, optional JSON seed)
    user_store_backend: str = Field(default="mongo", alias="USER_STORE_BACKEND")
    user_store_seed_path: str | None = Field(default=None, alias="USER_STORE_SEED_PATH")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="paysync", alias="MONGODB_DB_NAME")

    # Redis (cache invalidation + ARQ)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    cache_key_prefixes_raw: str = Field(default="user,premium", alias="CACHE_KEY_PREFIXES")

    # Razorpay
    razorpay_key_id: str = Field(default="", alias="RAZORPAY_KEY_ID")
    razorpay_key_secret: str = Field(default="", alias="RAZORPAY_KEY_SECRET")

    # OneSignal push
    onesignal_app_id: str = Field(default="", alias="ONESIGNAL_APP_ID")
    onesignal_rest_api_key: str = Field(default="", alias="ONESIGNAL_REST_API_KEY")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    # Reconciliation
    reconcile_batch_size: int = Field(default=10, alias="RECONCILE_BATCH_SIZE")
    reconcile_batch_delay_ms: int = Field(default=100, alias="RECONCILE_BATCH_DELAY_MS")
    reconcile_max_orders: int = Field(default=50, alias="RECONCILE_MAX_ORDERS")
    reconcile_timeout_seconds: float | None = Field(default=None, alias="RECONCILE_TIMEOUT_SECONDS")
    sync_max_orders: int = Field(default=200, alias="SYNC_MAX_ORDERS")
    sync_cron_enabled: bool = Field(default=False, alias="SYNC_CRON_ENABLED")
    gateway_list_max_count: int = 100

    # Plans
    default_plan_validity_days: int = Field(default=180, alias="DEFAULT_PLAN_VALIDITY_DAYS")
    locator_excluded_name_markers_raw: str = Field(default="Demo", alias="LOCATOR_EXCLUDED_NAME_MARKERS")

    @property
    def cors_origins(self) -> List[str]:
        return _parse_csv_list(getattr(self, "cors_origins_raw", None), _DEFAULT_CORS)

    @property
    def cache_key_prefixes(self) -> List[str]:
        return _parse_csv_list(self.cache_key_prefixes_raw, [])

    @property
    def locator_excluded_name_markers(self) -> List[str]:
        return _parse_csv_list(self.locator_excluded_name_markers_raw, [])

    @property
    def razorpay_configured(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)


@lru_cache
def get_settings() -> Settings:
    return Settings()
