"""
Content API — Configuration
All settings are read from environment variables (or .env file).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "content-api"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── PostgreSQL (Supabase database) ────────────────────────
    POSTGRES_HOST: str = "db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "postgres"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    DATABASE_URL: str = ""  # full async URL, wins over the POSTGRES_* parts

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Supabase (storage + auth REST) ────────────────────────
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = "CHANGE_ME_IN_PRODUCTION"
    SUPABASE_JWT_AUDIENCE: str = "authenticated"
    JWT_ALGORITHM: str = "HS256"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

    # ── Mux (video platform) ──────────────────────────────────
    MUX_API_URL: str = "https://api.mux.com"
    MUX_TOKEN_ID: str = ""
    MUX_TOKEN_SECRET: str = ""
    MUX_WEBHOOK_SECRET: str = ""
    MUX_CORS_ORIGIN: str = "*"

    @property
    def mux_configured(self) -> bool:
        return bool(self.MUX_TOKEN_ID and self.MUX_TOKEN_SECRET)

    # ── Redis ─────────────────────────────────────────────────
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

    # ── Media processing poll ─────────────────────────────────
    MEDIA_POLL_MAX_ATTEMPTS: int = 30
    MEDIA_POLL_INTERVAL_SECONDS: float = 5.0
    MEDIA_SYNC_INTERVAL_SECONDS: int = 900
    MEDIA_POLL_OUTCOME_LIMIT: int = 1000

    # ── Ordered lists ─────────────────────────────────────────
    REORDER_LOCK_TTL_SECONDS: int = 30

    # ── Uploads ───────────────────────────────────────────────
    THUMBNAIL_MAX_BYTES: int = 5 * 1024 * 1024
    BADGE_MAX_BYTES: int = 5 * 1024 * 1024
    BANNER_MAX_BYTES: int = 10 * 1024 * 1024

    # ── Multi-step workflows ──────────────────────────────────
    ASSET_FAILURE_POLICY: str = "continue"  # continue | rollback

    # ── Outbound HTTP ─────────────────────────────────────────
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
