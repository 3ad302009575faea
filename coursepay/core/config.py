from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_SANDBOX_GATEWAY_URL = "https://sandbox.uddoktapay.com/api"


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: str = "false") -> bool:
    return _getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    gateway_api_key: str = ""
    gateway_base_url: str = _SANDBOX_GATEWAY_URL
    gateway_timeout_seconds: float = 15.0
    frontend_url: str = "http://localhost:5173"
    backend_url: str = "http://localhost:8000"
    currency: str = "BDT"
    jwt_public_key_file: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def payment_success_url(self) -> str:
        return f"{self.frontend_url}/payment/success"

    @property
    def payment_cancel_url(self) -> str:
        return f"{self.frontend_url}/payment/cancel"

    @property
    def payment_webhook_url(self) -> str:
        return f"{self.backend_url}/v1/payments/webhook"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    timeout_raw = _getenv("GATEWAY_TIMEOUT_SECONDS", "15")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    try:
        gateway_timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(
            f"GATEWAY_TIMEOUT_SECONDS must be a number (got {timeout_raw!r})"
        ) from None
    if gateway_timeout <= 0:
        raise ValueError("GATEWAY_TIMEOUT_SECONDS must be positive")

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        gateway_api_key=_getenv("UDDOKTAPAY_API_KEY", ""),
        gateway_base_url=_getenv("UDDOKTAPAY_BASE_URL", _SANDBOX_GATEWAY_URL).rstrip(
            "/"
        ),
        gateway_timeout_seconds=gateway_timeout,
        frontend_url=_getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
        backend_url=_getenv("BACKEND_URL", "http://localhost:8000").rstrip("/"),
        currency=_getenv("CURRENCY", "BDT").upper() or "BDT",
        jwt_public_key_file=_getenv("JWT_PUBLIC_KEY_FILE", "") or None,
    )


SETTINGS = load_settings()
