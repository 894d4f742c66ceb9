from functools import lru_cache

from pydantic import EmailStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]

    # Security
    secret_key: str = "changeme"  # override in .env
    access_token_expire_minutes: int = 60
    password_reset_expire_hours: int = 1

    # Database
    database_url: str

    # Email
    email_backend: str = "smtp"  # "smtp" | "resend"
    email_from: str = "Afaya Care Link <onboarding@resend.dev>"
    email_smtp_host: str = "localhost"
    email_smtp_port: int = 1025
    email_smtp_username: str | None = None
    email_smtp_password: str | None = None
    resend_api_key: str | None = None
    email_sandbox_mode: bool = True
    email_test_recipient: EmailStr | None = None
    send_email_to_patients: bool = True

    # Scheduling / display
    schedule_timezone: str = "UTC"
    display_timezone: str = "UTC"
    frontend_url: str = "http://localhost:5173"

    # File storage
    file_storage_root: str = "uploads"
    max_document_mb: int = 20

    # Platform bootstrap (scripts/setup_platform.py)
    super_admin_email: str | None = None
    super_admin_password: str | None = None
    super_admin_full_name: str = "Platform Admin"

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
