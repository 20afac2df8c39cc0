from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


_ENVIRONMENT = os.getenv("ENVIRONMENT", os.getenv("NODE_ENV", "development")).strip().lower()
_BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:3001").rstrip("/")


@dataclass
class Settings:
    project_name: str = os.getenv("PROJECT_NAME", "E-Secretary Backend")
    environment: str = _ENVIRONMENT
    backend_url: str = _BACKEND_URL
    log_dir: str = os.getenv("LOG_DIR", "data/logs")
    cors_origins: List[str] = field(default_factory=lambda: _env_list("CORS_ORIGINS"))

    jwt_secret: str = os.getenv("JWT_SECRET", "fallback-secret-change-me")
    token_ttl_days: int = _env_int("TOKEN_TTL_DAYS", 7)
    session_ttl_days: int = _env_int("SESSION_TTL_DAYS", 7)
    bcrypt_rounds: int = _env_int("BCRYPT_ROUNDS", 12)
    strict_session_revocation: bool = _env_bool("STRICT_SESSION_REVOCATION", False)

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./data/secretary.db")
    db_pool_size: int = _env_int("DB_POOL_SIZE", 10)
    db_pool_timeout: float = _env_float("DB_POOL_TIMEOUT", 10.0)
    db_pool_recycle: int = _env_int("DB_POOL_RECYCLE", 1800)

    google_client_id: str = os.getenv("GOOGLE_CLIENT_ID", "").strip()
    google_client_secret: str = os.getenv("GOOGLE_CLIENT_SECRET", "").strip()
    google_redirect_uri: str = (
        os.getenv("GOOGLE_REDIRECT_URI", "").strip() or f"{_BACKEND_URL}/api/auth/google/callback"
    )
    google_calendar_id: str = os.getenv("GOOGLE_CALENDAR_ID", "primary") or "primary"
    google_calendar_timezone: str = os.getenv("GOOGLE_CALENDAR_TIMEZONE", "Asia/Kolkata") or "UTC"

    fireflies_api_key: str = os.getenv("FIREFLIES_API_KEY", "").strip()
    n8n_webhook_url: str = os.getenv("N8N_WEBHOOK_URL", "http://localhost:5678/webhook/fireflies-transcript")
    automation_callback_secret: str = os.getenv("AUTOMATION_CALLBACK_SECRET", "").strip()
    http_timeout_sec: float = _env_float("HTTP_TIMEOUT_SEC", 20.0)

    rate_limit_window_sec: int = _env_int("RATE_LIMIT_WINDOW_SEC", 15 * 60)
    rate_limit_max_attempts: int = _env_int(
        "RATE_LIMIT_MAX_ATTEMPTS", 20 if _ENVIRONMENT == "production" else 100
    )
    rate_limit_max_keys: int = _env_int("RATE_LIMIT_MAX_KEYS", 10_000)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
