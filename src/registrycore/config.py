"""
Centralized configuration for registrycore.

Uses Pydantic BaseSettings for environment variable integration
and validation.

Configuration sources (in order of precedence):
1. Explicit constructor arguments
2. Environment variables (REGISTRYCORE_*)
3. .env file
4. Default values

Example:
    from registrycore.config import get_config

    config = get_config()
    print(config.registry_prefix)  # From REGISTRYCORE_REGISTRY_PREFIX or default

    # Override at runtime
    config = get_config(output_format="yaml")
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistryCoreConfig(BaseSettings):
    """
    Central configuration for registrycore.

    All settings can be overridden via environment variables
    prefixed with REGISTRYCORE_.

    Example:
        export REGISTRYCORE_REGISTRY_URL=https://github.com/org/semconv
        export REGISTRYCORE_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="REGISTRYCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service identification
    service_name: str = Field(
        default="registrycore",
        description="Service name for telemetry and log attribution",
    )

    # Resolution
    registry_prefix: str = Field(
        default="registry.",
        description="Group id prefix of attribute registry groups",
    )
    registry_url: str = Field(
        default="",
        description="Registry URL recorded in the resolved output",
    )

    # Output
    output_format: Literal["json", "yaml"] = Field(
        default="json",
        description="Resolved registry serialization format",
    )
    include_catalog: bool = Field(
        default=False,
        description="Embed the attribute and signal catalogs in the output",
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        description="Logging level for registrycore",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Output format of resolution lifecycle events",
    )

    @field_validator("registry_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Require a non-empty prefix ending with a dot."""
        if not v:
            raise ValueError("registry_prefix must not be empty")
        if not v.endswith("."):
            v = f"{v}."
        return v

    def python_log_level(self) -> int:
        return getattr(logging, self.log_level.upper())


# Global singleton
_config: Optional[RegistryCoreConfig] = None


def get_config(**overrides) -> RegistryCoreConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.

    Args:
        **overrides: Override any config values

    Returns:
        RegistryCoreConfig instance
    """
    global _config

    if overrides or _config is None:
        _config = RegistryCoreConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
