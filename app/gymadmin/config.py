import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    admin_diagnostics_enabled: bool
    schedule_weeks: int
    login_rate_limit: int
    login_rate_window_seconds: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///gymadmin.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        admin_diagnostics_enabled=_getenv("ADMIN_DIAGNOSTICS_ENABLED") == "1",
        schedule_weeks=_getenv_int("SCHEDULE_WEEKS", 52),
        login_rate_limit=_getenv_int("LOGIN_RATE_LIMIT", 5),
        login_rate_window_seconds=_getenv_int("LOGIN_RATE_WINDOW_SECONDS", 300),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "ADMIN_DIAGNOSTICS_ENABLED": s.admin_diagnostics_enabled,
        "SCHEDULE_WEEKS": s.schedule_weeks,
        "LOGIN_RATE_LIMIT": s.login_rate_limit,
        "LOGIN_RATE_WINDOW_SECONDS": s.login_rate_window_seconds,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # request bodies are small JSON/form payloads
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
