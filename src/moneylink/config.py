"""Centralized configuration management for MoneyLink.

This module provides a Pydantic Settings-based configuration system that
consolidates backend API, linking provider and timing settings with
environment variable integration, type validation, and clear error handling.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PROFILE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


class ApiConfig(BaseModel):
    """Backend API connection settings."""

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(
        default="http://localhost:3000/api/v1",
        description="Base URL of the backend API (no trailing slash)",
    )
    timeout: float = Field(
        default=30.0, gt=0, le=300.0, description="HTTP request timeout in seconds"
    )
    organization_id: str | None = Field(
        default=None, description="Organization sent as X-Organization-Id header"
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so paths can be appended directly."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("API base URL must start with http:// or https://")
        return v.rstrip("/")


class TellerConfig(BaseModel):
    """Teller Connect widget configuration."""

    model_config = ConfigDict(frozen=True)

    application_id: str = Field(default="", description="Teller application ID")
    environment: Literal["sandbox", "development", "production"] = Field(
        default="sandbox", description="Teller environment"
    )
    script_url: str = Field(
        default="https://cdn.teller.io/connect/connect.js",
        description="Teller Connect SDK CDN URL",
    )


class StripeConfig(BaseModel):
    """Stripe Financial Connections configuration."""

    model_config = ConfigDict(frozen=True)

    publishable_key: str = Field(default="", description="Stripe publishable key")
    script_url: str = Field(
        default="https://js.stripe.com/v3/", description="Stripe.js CDN URL"
    )


class LinkingConfig(BaseModel):
    """Timing and sizing knobs for the linking flow."""

    model_config = ConfigDict(frozen=True)

    popup_poll_interval: float = Field(
        default=0.3, gt=0, description="Seconds between popup-closed checks"
    )
    auth_timeout: float = Field(
        default=60.0, gt=0, description="Hard limit on waiting for the OAuth popup"
    )
    callback_grace_period: float = Field(
        default=1.5,
        ge=0,
        description="Pause after popup closure before checking connection status",
    )
    progress_step: int = Field(
        default=10, ge=1, le=100, description="Sync progress increment per tick"
    )
    bank_progress_interval: float = Field(
        default=0.3, gt=0, description="Seconds between bank sync progress ticks"
    )
    service_progress_interval: float = Field(
        default=0.5, gt=0, description="Seconds between service sync progress ticks"
    )
    preview_limit: int = Field(
        default=50, ge=1, le=500, description="Items per category in service previews"
    )
    popup_width: int = Field(default=600, ge=100)
    popup_height: int = Field(default=700, ge=100)


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_to_file: bool = Field(default=False, description="Enable file logging")
    log_file_path: Path = Field(
        default=Path("logs/moneylink.log"), description="Path to log file"
    )


class MoneyLinkSettings(BaseSettings):
    """Main application settings with environment variable integration.

    Environment variables are loaded with the MONEYLINK_ prefix.
    For nested configs, use double underscores: MONEYLINK_TELLER__APPLICATION_ID

    Profile Support:
    - Loads from .env.{profile} files (e.g., .env.dev, .env.prod)
    - Falls back to .env for backward compatibility
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    teller: TellerConfig = Field(default_factory=TellerConfig)
    stripe: StripeConfig = Field(default_factory=StripeConfig)
    linking: LinkingConfig = Field(default_factory=LinkingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Application environment"
    )
    profile: str = Field(
        default="default",
        description="Configuration profile name (e.g., dev, prod, alice)",
    )

    @field_validator("profile")
    @classmethod
    def validate_profile_name(cls, v: str) -> str:
        """Ensure profile name is safe for use as a filename."""
        if not v:
            raise ValueError("Profile name cannot be empty")
        if not _PROFILE_PATTERN.match(v):
            raise ValueError(
                "Profile name must contain only alphanumeric characters, "
                "dashes, and underscores"
            )
        return v

    def __init__(self, **kwargs: Any):
        """Initialize settings with legacy environment variable fallbacks.

        The web frontend exposes provider identifiers as NEXT_PUBLIC_* variables;
        those are honoured when no MONEYLINK_* override is given.

        Args:
            **kwargs: Additional configuration overrides
        """
        if "api" not in kwargs and not os.getenv("MONEYLINK_API__BASE_URL"):
            base_url = os.getenv("NEXT_PUBLIC_API_BASE_URL")
            if base_url:
                kwargs["api"] = ApiConfig(base_url=base_url)

        if "teller" not in kwargs and not os.getenv("MONEYLINK_TELLER__APPLICATION_ID"):
            application_id = os.getenv("NEXT_PUBLIC_TELLER_APPLICATION_ID")
            env = os.getenv("NEXT_PUBLIC_TELLER_ENVIRONMENT", "sandbox")
            if application_id:
                kwargs["teller"] = TellerConfig(
                    application_id=application_id,
                    environment=env if env in ("development", "production") else "sandbox",
                )

        if "stripe" not in kwargs and not os.getenv("MONEYLINK_STRIPE__PUBLISHABLE_KEY"):
            publishable_key = os.getenv("NEXT_PUBLIC_STRIPE_PUBLISHABLE_KEY")
            if publishable_key:
                kwargs["stripe"] = StripeConfig(publishable_key=publishable_key)

        super().__init__(**kwargs)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize how settings are loaded to support profile-based env files."""
        init_dict = init_settings.init_kwargs if init_settings else {}
        profile = init_dict.get("profile", "dev")  # type: ignore[reportUnknownMemberType]

        profile_env_file = Path(f".env.{profile}")
        env_file = str(profile_env_file) if profile_env_file.exists() else ".env"

        from pydantic_settings import DotEnvSettingsSource

        custom_dotenv = DotEnvSettingsSource(
            settings_cls,
            env_file=env_file,
            env_file_encoding="utf-8",
        )

        return (
            init_settings,
            env_settings,
            custom_dotenv,
            file_secret_settings,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MONEYLINK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    def redacted(self) -> dict[str, Any]:
        """Return the settings as a dict with secrets masked for display."""
        data = self.model_dump(mode="json")
        for section, key in (("teller", "application_id"), ("stripe", "publishable_key")):
            value = data[section][key]
            if value:
                data[section][key] = f"{value[:4]}…" if len(value) > 4 else "****"
        return data


# Global settings instances - lazy loaded per profile
_settings_cache: dict[str, MoneyLinkSettings] = {}
_current_profile: str = "default"


def get_settings(profile: str | None = None) -> MoneyLinkSettings:
    """Get the settings instance for the specified profile.

    Settings are loaded once per profile and cached.

    Args:
        profile: Profile name. Defaults to the current profile.

    Returns:
        MoneyLinkSettings: The configuration instance for the profile

    Raises:
        ValueError: If configuration is invalid
    """
    if profile is None:
        profile = _current_profile

    if profile in _settings_cache:
        return _settings_cache[profile]

    try:
        settings = MoneyLinkSettings(profile=profile)
    except Exception as e:
        raise ValueError(f"Configuration error for profile '{profile}': {e}") from e

    _settings_cache[profile] = settings
    return settings


def set_current_profile(profile: str) -> None:
    """Set the current active profile.

    Args:
        profile: Profile name (e.g., 'dev', 'prod', 'alice')

    Raises:
        ValueError: If profile name contains invalid characters
    """
    global _current_profile

    if not profile:
        raise ValueError("Profile name cannot be empty")

    if not _PROFILE_PATTERN.match(profile):
        raise ValueError(
            f"Invalid profile: {profile}. "
            "Profile name must contain only alphanumeric characters, dashes, and underscores"
        )

    _current_profile = profile


def get_current_profile() -> str:
    """Get the current active profile name."""
    return _current_profile


def reload_settings(profile: str | None = None) -> MoneyLinkSettings:
    """Reload settings from environment variables.

    Args:
        profile: Profile to reload. If None, reloads current profile.

    Returns:
        MoneyLinkSettings: The reloaded configuration instance
    """
    if profile is None:
        profile = _current_profile

    _settings_cache.pop(profile, None)
    return get_settings(profile)


def clear_settings_cache() -> None:
    """Drop every cached settings instance (used by tests)."""
    _settings_cache.clear()
