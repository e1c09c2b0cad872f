"""
Utilities to centralize configuration handling across the qrnr services.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any

INSECURE_SECRETS = {
    "",
    "dev-secret",
    "dev-secret-please-change",
    "super-secret-dev",
    "change-me-please",
}


@dataclass
class AppConfig:
    """Simple container for application level settings."""

    app_name: str
    # Storage
    database_url: str
    # Token signing
    jwt_secret: str
    super_jwt_secret: str
    admin_token_ttl_seconds: int
    super_token_ttl_seconds: int
    cust_token_ttl_seconds: int
    # Payment provider
    payment_secret_key: str
    payment_api_url: str
    # Realtime
    redis_url: str
    redis_channel_prefix: str
    # Rate limiting
    rate_limit_enabled: bool
    rate_limit_max_requests: int
    rate_limit_window_seconds: int
    rate_limit_max_keys: int
    # Built-in accounts (JSON in env, same format as the edge functions used)
    super_users: list[dict[str, Any]] = field(default_factory=list)
    cust_users: list[dict[str, Any]] = field(default_factory=list)
    # App settings
    log_level: str = "INFO"
    debug_mode: bool = False
    cookie_secure: bool = True
    cors_origins: list[str] = field(default_factory=list)

    def secret_for_realm(self, realm: str) -> str:
        """Super tokens are signed with their own key; admin/cust share JWT_SECRET."""
        if realm == "super":
            return self.super_jwt_secret
        return self.jwt_secret

    def ttl_for_realm(self, realm: str) -> int:
        return {
            "super": self.super_token_ttl_seconds,
            "admin": self.admin_token_ttl_seconds,
            "cust": self.cust_token_ttl_seconds,
        }.get(realm, self.admin_token_ttl_seconds)


def _read_env(name: str, default: str | None = None) -> str:
    """
    Internal helper to fetch environment variables with support for defaults.
    """
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required environment variable '{name}'")
        value = default
    return value


def read_bool(name: str, default: str = "false") -> bool:
    value = _read_env(name, default)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_users(name: str, default: str) -> list[dict[str, Any]]:
    """
    Parse a JSON user list.

    Accepts the array form ``[{"id": "...", "pw": "...", "name": "..."}]`` and
    the object form ``{"user@example.com": "1234"}``.
    """
    raw = _read_env(name, default)
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"{name} is not valid JSON: {exc}") from exc

    users: list[dict[str, Any]] = []
    if isinstance(parsed, list):
        for entry in parsed:
            if not isinstance(entry, dict):
                continue
            uid = entry.get("id") or entry.get("uid") or entry.get("email")
            pw = entry.get("pw") or entry.get("password")
            if not uid or not pw:
                continue
            users.append(
                {
                    "id": str(uid),
                    "pw": str(pw),
                    "name": entry.get("name") or entry.get("displayName") or str(uid),
                    "provider": entry.get("provider") or "local",
                }
            )
    elif isinstance(parsed, dict):
        for uid, pw in parsed.items():
            if pw is None:
                continue
            users.append({"id": str(uid), "pw": str(pw), "name": str(uid), "provider": "local"})
    return users


def validate_required_env_vars(skip_in_debug: bool = False) -> None:
    """
    Validate that all required environment variables are set.

    Fails fast during startup rather than signing tokens with a default key.

    Args:
        skip_in_debug: If True, skip validation when DEBUG_MODE=true

    Raises:
        RuntimeError: If any required variable is missing or has an insecure value
    """
    if skip_in_debug and read_bool("DEBUG_MODE", "false"):
        return

    errors = []

    for name in ("JWT_SECRET", "SUPER_JWT_SECRET"):
        if os.getenv(name, "") in INSECURE_SECRETS:
            errors.append(
                f"{name} must be configured with a secure random value. "
                'Generate with: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
            )

    if os.getenv("JWT_SECRET") and os.getenv("JWT_SECRET") == os.getenv("SUPER_JWT_SECRET"):
        errors.append("SUPER_JWT_SECRET must differ from JWT_SECRET")

    if not os.getenv("DATABASE_URL"):
        errors.append("DATABASE_URL must be configured")

    if not os.getenv("PASSWORD_HASH_SALT"):
        errors.append("PASSWORD_HASH_SALT must be configured")

    for name in ("RATE_LIMIT_MAX_REQUESTS", "RATE_LIMIT_WINDOW_SECONDS"):
        value = os.getenv(name, "")
        if value:
            try:
                if int(value) < 1:
                    errors.append(f"{name} must be a positive integer, got: {value}")
            except ValueError:
                errors.append(f"{name} must be a valid integer, got: {value}")

    if errors:
        error_msg = "\nConfiguration Errors - Missing or invalid environment variables:\n"
        for error in errors:
            error_msg += f"  - {error}\n"
        raise RuntimeError(error_msg)


def load_config(app_name: str) -> AppConfig:
    """
    Produce an AppConfig instance populated from environment variables.

    Each service passes its desired `app_name` to keep logs easy to
    differentiate while still reusing the same config loader.
    """
    origins = _read_env("CORS_ORIGINS", "")
    return AppConfig(
        app_name=app_name,
        database_url=_read_env("DATABASE_URL", "sqlite:///qrnr.db"),
        jwt_secret=_read_env("JWT_SECRET", "dev-secret-please-change"),
        super_jwt_secret=_read_env("SUPER_JWT_SECRET", "super-secret-dev"),
        admin_token_ttl_seconds=int(_read_env("ADMIN_TOKEN_TTL_SECONDS", "43200")),
        super_token_ttl_seconds=int(_read_env("SUPER_TOKEN_TTL_SECONDS", "43200")),
        cust_token_ttl_seconds=int(_read_env("CUST_TOKEN_TTL_SECONDS", "14400")),
        payment_secret_key=_read_env("PAYMENT_SECRET_KEY", ""),
        payment_api_url=_read_env("PAYMENT_API_URL", "https://api.tosspayments.com/v1"),
        redis_url=_read_env("REDIS_URL", "redis://localhost:6379/0"),
        redis_channel_prefix=_read_env("REDIS_CHANNEL_PREFIX", "qrnr:store"),
        rate_limit_enabled=read_bool("RATE_LIMIT_ENABLED", "true"),
        rate_limit_max_requests=int(_read_env("RATE_LIMIT_MAX_REQUESTS", "20")),
        rate_limit_window_seconds=int(_read_env("RATE_LIMIT_WINDOW_SECONDS", "10")),
        rate_limit_max_keys=int(_read_env("RATE_LIMIT_MAX_KEYS", "10000")),
        super_users=_read_users("SUPER_USERS_JSON", "[]"),
        cust_users=_read_users("CUST_USERS_JSON", "[]"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
        debug_mode=read_bool("DEBUG_MODE", "false"),
        cookie_secure=read_bool("COOKIE_SECURE", "true"),
        cors_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
    )
