"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    supabase_bucket: str = "captures"
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_payment_method_types: list[str] = ["card"]
    download_signing_secret: str
    frontend_base_url: str = "http://localhost:4450"
    public_base_url: str = "http://localhost:4450"
    ffmpeg_binary: str = "ffmpeg"
    hls_dir: str = "hls"
    capture_workdir: str | None = None
    live_timeout_seconds: float = 60
    lock_ttl_seconds: float = 120
    lock_sweep_interval_seconds: float = 10
    cleanup_interval_seconds: float = 120
    stream_stop_grace_seconds: float = 1.0
    playlist_wait_seconds: float = 20
    unpaid_retention_seconds: int = 3600
    grant_ttl_seconds: int = 3600
    grant_max_uses: int = 3
    confirmation_ttl_seconds: int = 3600
    download_url_ttl_seconds: int = 300
    preview_url_ttl_seconds: int = 3600
    overlay_fetch_ttl_seconds: int = 600
    preview_watermark_text: str = "PREVIEW - NOT PAID"
    mail_api_url: str | None = None
    mail_api_key: str | None = None
    mail_from: str = "no-reply@kiosk-capture.local"
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def sanitize_id(raw: str | None) -> str:
    """Strip everything but word characters and dashes from an external id."""
    if raw is None:
        return ""
    return "".join(ch for ch in raw.strip() if ch.isalnum() or ch in {"_", "-"})
