"""Storefront configuration.

Settings are read from environment variables (and an optional ``.env`` file)
by pydantic-settings. Secrets are then frozen into a ``SecurityConfig`` at
process start and handed to the security services explicitly.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Development-only fallbacks. Never used when environment == "production".
DEV_FALLBACK_CSRF_SECRET = "development_only_csrf_secret_do_not_use_in_production"
DEV_FALLBACK_ENCRYPTION_KEY = "development_only_key_do_not_use_in_production"
DEV_FALLBACK_PAYMENT_SECRET = "development_only_payment_secret_do_not_use_in_production"
DEV_FALLBACK_PAYMENT_SALT = "development_only_salt_do_not_use_in_production"

MIN_SECRET_LENGTH = 32

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


class ConfigurationError(Exception):
    """Raised when required security configuration is missing or invalid.

    In production this is fatal: the operation that needed the secret is
    aborted instead of degrading to an insecure default.
    """


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Lush Milk Storefront"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False

    log_level: str = "INFO"
    log_format: Literal["structured", "dev"] = "dev"

    # Secrets (see SecurityConfig.from_settings for fallback policy)
    csrf_secret: str = ""
    encryption_key: str = ""
    payment_secret: str = ""
    payment_salt: str = ""

    csrf_token_ttl_seconds: int = 24 * 60 * 60
    csrf_cookie_samesite: str = "strict"
    payment_token_ttl_seconds: int = 15 * 60
    session_timeout_seconds: int = 30 * 60
    session_warning_seconds: int = 60

    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_jwt_secret: str = ""

    cors_origins: str = "http://localhost:3000"
    rate_limit_enabled: bool = True
    trusted_proxy_ips: str = ""

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in ("development", "production", "test"):
            raise ValueError(
                f"ENVIRONMENT must be one of development, production, test. Got '{v}'."
            )
        return value

    @field_validator("csrf_cookie_samesite")
    @classmethod
    def validate_samesite(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in ("strict", "lax"):
            raise ValueError(f"CSRF_COOKIE_SAMESITE must be 'strict' or 'lax'. Got '{v}'.")
        return value

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, v: str) -> str:
        # Hex keys are used as raw key bytes, so they must be exactly 32 bytes.
        # Any other string is treated as a passphrase and stretched with HKDF.
        if v and _HEX_RE.match(v) and len(v) >= 32 and len(v) != 64:
            raise ValueError(
                "ENCRYPTION_KEY given as hex must be exactly 64 hex characters (32 bytes). "
                f"Got {len(v)} characters. "
                'Generate one with: python -c "import secrets; print(secrets.token_hex(32))"'
            )
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def check_security_configuration(self) -> list[str]:
        """Return human-readable warnings about weak security configuration."""
        warnings: list[str] = []
        secrets_by_name = {
            "CSRF_SECRET": self.csrf_secret,
            "ENCRYPTION_KEY": self.encryption_key,
            "PAYMENT_SECRET": self.payment_secret,
            "PAYMENT_SALT": self.payment_salt,
        }

        for name, value in secrets_by_name.items():
            if not value:
                warnings.append(f"{name} is not set - development fallback will be used")
            elif len(value) < MIN_SECRET_LENGTH:
                warnings.append(
                    f"{name} is shorter than {MIN_SECRET_LENGTH} characters - use a longer secret"
                )

        seen: dict[str, str] = {}
        for name, value in secrets_by_name.items():
            if not value:
                continue
            if value in seen:
                warnings.append(f"{name} has the same value as {seen[value]} - use distinct secrets")
            else:
                seen[value] = name

        if self.is_production and not self.supabase_jwt_secret:
            warnings.append("SUPABASE_JWT_SECRET is not set - checkout endpoints will reject all users")

        return warnings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@dataclass(frozen=True)
class SecurityConfig:
    """Read-only secret material and token lifetimes for the security core."""

    csrf_secret: str
    encryption_key: str
    payment_secret: str
    payment_salt: str
    production: bool = False
    csrf_token_ttl_ms: int = 24 * 60 * 60 * 1000
    csrf_cookie_samesite: str = "strict"
    payment_token_ttl_ms: int = 15 * 60 * 1000
    session_timeout_ms: int = 30 * 60 * 1000
    session_warning_ms: int = 60 * 1000
    using_fallbacks: tuple[str, ...] = ()

    @property
    def signing_secret(self) -> str:
        return self.csrf_secret

    @classmethod
    def from_settings(cls, source: Settings) -> "SecurityConfig":
        """Build the config once at startup.

        Raises:
            ConfigurationError: If any secret is missing in production.
        """
        required = {
            "csrf_secret": (source.csrf_secret, DEV_FALLBACK_CSRF_SECRET),
            "encryption_key": (source.encryption_key, DEV_FALLBACK_ENCRYPTION_KEY),
            "payment_secret": (source.payment_secret, DEV_FALLBACK_PAYMENT_SECRET),
            "payment_salt": (source.payment_salt, DEV_FALLBACK_PAYMENT_SALT),
        }

        missing = [name for name, (value, _) in required.items() if not value]
        if missing and source.is_production:
            names = ", ".join(name.upper() for name in missing)
            logger.critical(f"Security secrets missing in production: {names}")
            raise ConfigurationError(
                f"Missing required security configuration: {names}. "
                "Refusing to start with development fallbacks in production."
            )

        resolved: dict[str, str] = {}
        for name, (value, fallback) in required.items():
            if value:
                resolved[name] = value
            else:
                logger.warning(
                    f"{name.upper()} is not set - using development fallback. "
                    "NOT SECURE FOR PRODUCTION!"
                )
                resolved[name] = fallback

        return cls(
            production=source.is_production,
            csrf_token_ttl_ms=source.csrf_token_ttl_seconds * 1000,
            csrf_cookie_samesite=source.csrf_cookie_samesite,
            payment_token_ttl_ms=source.payment_token_ttl_seconds * 1000,
            session_timeout_ms=source.session_timeout_seconds * 1000,
            session_warning_ms=source.session_warning_seconds * 1000,
            using_fallbacks=tuple(missing),
            **resolved,
        )
