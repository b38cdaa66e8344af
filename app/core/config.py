import asyncio
import ssl
from contextlib import asynccontextmanager, suppress
from functools import lru_cache

from fastapi import FastAPI
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="development", alias="APP_ENV")

    jwt_secret: str = Field(alias="JWT_SECRET")
    jwt_algo: str = Field(default="HS256", alias="JWT_ALGO")
    access_min: int = Field(default=60, alias="ACCESS_MIN", ge=1)

    domain_client: str = Field(default="http://localhost:3080", alias="DOMAIN_CLIENT")
    app_title: str = Field(default="LibreChat", alias="APP_TITLE")

    smtp_host: str = Field(default="smtp.azurecomm.net", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    mail_from: str | None = Field(default=None, alias="MAIL_FROM")

    invite_ttl_days: int = Field(default=7, alias="INVITE_TTL_DAYS", ge=1)

    trainee_email_domain: str = Field(
        default="trainee.local", alias="TRAINEE_EMAIL_DOMAIN"
    )
    trainee_account_grace_hours: int = Field(
        default=24, alias="TRAINEE_ACCOUNT_GRACE_HOURS", ge=0
    )
    trainee_cleanup_enabled: bool = Field(
        default=True, alias="TRAINEE_CLEANUP_ENABLED"
    )
    trainee_cleanup_cron: str = Field(default="0 0 * * *", alias="TRAINEE_CLEANUP_CRON")

    database_url: str = Field(alias="DATABASE_URL")

    @property
    def email_configured(self) -> bool:
        return bool(
            self.smtp_host
            and self.smtp_username
            and self.smtp_password
            and self.mail_from
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore


def get_smtp_ctx() -> ssl.SSLContext:
    return ssl.create_default_context()


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.workers.trainee_cleanup import cleanup_loop

    cleanup_task = None
    if get_settings().trainee_cleanup_enabled:
        cleanup_task = asyncio.create_task(cleanup_loop(app))
    app.state.cleanup_task = cleanup_task

    try:
        yield
    finally:
        if cleanup_task is not None:
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task
