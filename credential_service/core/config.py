from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]


def _getenv(name: str, default: str) -> str:
    # Centralize env access so it’s easy to extend later (type casting, required vars)
    return os.environ.get(name, default).strip()


def _getint(name: str, default: str) -> int:
    raw = _getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    redis_url: str | None
    token_issuer: str
    access_token_ttl_min: int
    refresh_token_ttl_days: int
    # PEM files; None means "generate an ephemeral key" (dev/test only)
    access_signing_key_file: str | None
    access_legacy_public_key_file: str | None
    refresh_signing_key_file: str | None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if log_json_raw not in ("true", "false", "1", "0"):
        raise ValueError(f"LOG_JSON must be true|false (got {log_json_raw!r})")

    access_ttl = _getint("ACCESS_TOKEN_TTL_MIN", "15")
    refresh_ttl = _getint("REFRESH_TOKEN_TTL_DAYS", "7")

    access_key_file = _getenv("ACCESS_SIGNING_KEY_FILE", "") or None
    refresh_key_file = _getenv("REFRESH_SIGNING_KEY_FILE", "") or None

    if app_env_raw == "prod" and (access_key_file is None or refresh_key_file is None):
        raise ValueError(
            "ACCESS_SIGNING_KEY_FILE and REFRESH_SIGNING_KEY_FILE are required in prod"
        )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("true", "1"),
        redis_url=_getenv("REDIS_URL", "") or None,
        token_issuer=_getenv("TOKEN_ISSUER", "credential-service"),
        access_token_ttl_min=access_ttl,
        refresh_token_ttl_days=refresh_ttl,
        access_signing_key_file=access_key_file,
        access_legacy_public_key_file=(
            _getenv("ACCESS_LEGACY_PUBLIC_KEY_FILE", "") or None
        ),
        refresh_signing_key_file=refresh_key_file,
    )


# Optional: module-level singleton so imports are cheap
SETTINGS = load_settings()
