"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_APPROVAL_TOKEN_SECRET = "change-me-approval-secret"
DEFAULT_SESSION_TOKEN_SECRET = "change-me-session-secret"
DEVELOPMENT_ENVIRONMENTS = frozenset({"development", "dev", "local", "test"})


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    environment: str = Field(default="development", alias="APP_ENV")
    database_url: str = Field(
        default="sqlite:///./procurement.db", alias="DATABASE_URL"
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    celery_broker_url: str | None = Field(
        default=None, alias="CELERY_BROKER_URL"
    )
    celery_result_backend: str | None = Field(
        default=None, alias="CELERY_RESULT_BACKEND"
    )
    aws_region: str = Field(default="ap-south-1", alias="AWS_REGION")
    aws_s3_bucket: str = Field(default="local", alias="AWS_S3_BUCKET")
    aws_access_key_id: str | None = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: str | None = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )
    local_storage_path: str = Field(
        default="/tmp/procurement-documents", alias="LOCAL_STORAGE_PATH"
    )

    public_base_url: str = Field(
        default="http://localhost:8000", alias="PUBLIC_BASE_URL"
    )
    approval_token_secret: str = Field(
        default=DEFAULT_APPROVAL_TOKEN_SECRET, alias="APPROVAL_TOKEN_SECRET"
    )
    approval_token_algorithm: str = Field(
        default="HS256", alias="APPROVAL_TOKEN_ALGORITHM"
    )
    approval_token_ttl_hours: int = Field(
        default=72, alias="APPROVAL_TOKEN_TTL_HOURS"
    )
    auto_approve_roles_raw: str = Field(default="ADMIN", alias="AUTO_APPROVE_ROLES")
    approver_history_fallback: bool = Field(
        default=True, alias="APPROVER_HISTORY_FALLBACK"
    )
    session_token_secret: str = Field(
        default=DEFAULT_SESSION_TOKEN_SECRET, alias="SESSION_TOKEN_SECRET"
    )

    mail_server: str | None = Field(default=None, alias="MAIL_SERVER")
    mail_port: int = Field(default=587, alias="MAIL_PORT")
    mail_username: str | None = Field(default=None, alias="MAIL_USERNAME")
    mail_password: str | None = Field(default=None, alias="MAIL_PASSWORD")
    mail_from: str = Field(default="noreply@localhost", alias="MAIL_FROM")
    mail_from_name: str = Field(default="Procurement Desk", alias="MAIL_FROM_NAME")
    mail_use_tls: bool = Field(default=True, alias="MAIL_USE_TLS")

    company_name: str = Field(default="Procurement Desk", alias="COMPANY_NAME")
    repair_interval_seconds: int = Field(
        default=900, alias="REPAIR_INTERVAL_SECONDS"
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @property
    def broker_url(self) -> str:
        """Return the Celery broker URL, defaulting to Redis."""

        return self.celery_broker_url or self.redis_url

    @property
    def result_backend(self) -> str:
        """Return the Celery result backend, defaulting to the Redis URL."""

        if self.celery_result_backend:
            return self.celery_result_backend
        return self.redis_url

    @property
    def auto_approve_roles(self) -> frozenset[str]:
        """Return the normalised set of roles whose submissions skip review."""

        return frozenset(
            part.strip().upper()
            for part in self.auto_approve_roles_raw.split(",")
            if part.strip()
        )

    @property
    def allows_default_secrets(self) -> bool:
        """Placeholder secrets are tolerated only in development and tests."""

        return self.environment.strip().lower() in DEVELOPMENT_ENVIRONMENTS

    def default_secret_names(self) -> list[str]:
        """Return the env keys whose secrets still hold the shipped placeholder."""

        names = []
        if self.approval_token_secret == DEFAULT_APPROVAL_TOKEN_SECRET:
            names.append("APPROVAL_TOKEN_SECRET")
        if self.session_token_secret == DEFAULT_SESSION_TOKEN_SECRET:
            names.append("SESSION_TOKEN_SECRET")
        return names

    @property
    def local_storage_enabled(self) -> bool:
        """Return ``True`` when documents are stored on local disk."""

        return self.aws_s3_bucket.lower() == "local"


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = [
    "DEFAULT_APPROVAL_TOKEN_SECRET",
    "DEFAULT_SESSION_TOKEN_SECRET",
    "Settings",
    "get_settings",
]
