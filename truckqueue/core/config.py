"""
Truck Queue — Configuration
All settings are read from environment variables (or .env file).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "order-queue"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8006

    # ── Persistence ───────────────────────────────────────────
    STORE_BACKEND: str = "sql"  # "sql" | "memory"
    DATABASE_URL: str = ""      # overrides the PostgreSQL settings when set

    POSTGRES_HOST: str = "order-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "order_db"
    POSTGRES_USER: str = "order_user"
    POSTGRES_PASSWORD: str = "order_pass"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis (pub/sub + Celery broker) ───────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def celery_broker_url(self) -> str:
        return self.redis_url

    @property
    def celery_result_backend(self) -> str:
        return self.redis_url

    # ── JWT (verification only, shared secret) ────────────────
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION"
    JWT_ALGORITHM: str = "HS256"

    # ── Downstream Services ────────────────────────────────────
    MENU_SERVICE_URL: str = "http://menu-service:8007"
    IDENTITY_SERVICE_URL: str = "http://identity-provider:8001"
    HTTP_TIMEOUT_SECONDS: float = 3.0

    # ── Customer contact (SMS gateway) ────────────────────────
    CONTACT_ENABLED: bool = True
    CONTACT_GATEWAY_URL: str = "http://sms-gateway:8009/messages"

    # ── Queue rules ───────────────────────────────────────────
    DEFAULT_PREP_MINUTES: int = 5
    QUEUE_MINUTES_PER_ORDER: int = 5
    STRICT_TRANSITIONS: bool = True

    # ── Optimistic status updates ─────────────────────────────
    OPT_LOCK_MAX_RETRIES: int = 3
    OPT_LOCK_BASE_DELAY_MS: int = 10
    OPT_LOCK_MAX_DELAY_MS: int = 200
    OPT_LOCK_JITTER_MS: int = 10

    # ── Real-time notifications ───────────────────────────────
    NOTIFIER_BACKEND: str = "redis"  # "redis" | "local"
    SUBSCRIBER_BUFFER_SIZE: int = 100
    SSE_KEEPALIVE_INTERVAL_SECONDS: int = 15
    SSE_RETRY_MILLISECONDS: int = 3000

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
