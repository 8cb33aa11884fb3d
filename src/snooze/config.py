"""Centralized configuration: Pydantic BaseSettings with TOML + dotenv sources.

Settings live in config.toml and/or .env. Environment variables override both
using ``__`` as the nested delimiter (e.g. ``MONITOR__SLEEP_TIMEOUT_SECONDS``).

Priority (highest wins): init args > env vars > flat env names > .env > config.toml

Usage::

    from snooze.config import get_settings

    s = get_settings()
    print(s.project.name)
    print(s.sleep_timeout)
"""

from __future__ import annotations

import os
from datetime import timedelta
from functools import cached_property
from typing import Any

from pydantic import BaseModel, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# ---------------------------------------------------------------------------
# Sub-models (each maps to a [section] in config.toml)
# ---------------------------------------------------------------------------


class _StrictModel(BaseModel):
    """Base for all config sub-models: reject unknown keys so typos fail loudly."""

    model_config = {"extra": "forbid"}


class ProjectConfig(_StrictModel):
    name: str | None = None  # None → read from own container's compose label
    container_id: str | None = None  # None → $HOSTNAME / socket.gethostname()
    allow_list_mode: bool = False
    enable_label: str = "sleep-proxy.enable"
    project_label: str = "com.docker.compose.project"

    @field_validator("name", "container_id")
    @classmethod
    def blank_is_unset(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class MonitorConfig(_StrictModel):
    interval_seconds: float = 10.0
    sleep_timeout_seconds: int = 86400  # 24 hours
    stop_grace_seconds: int = 10

    @field_validator("interval_seconds")
    @classmethod
    def validate_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("interval_seconds must be positive")
        return v

    @field_validator("sleep_timeout_seconds")
    @classmethod
    def validate_sleep_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("sleep_timeout_seconds must be positive")
        return v

    @field_validator("stop_grace_seconds")
    @classmethod
    def validate_grace(cls, v: int) -> int:
        if v < 0:
            raise ValueError("stop_grace_seconds cannot be negative")
        return v


class DockerConfig(_StrictModel):
    host: str | None = None  # passed as --host; None → CLI default / $DOCKER_HOST
    command_timeout_seconds: int = 30

    @field_validator("command_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("command_timeout_seconds must be positive")
        return v


class ServerConfig(_StrictModel):
    host: str = "0.0.0.0"
    port: int = 8000
    endpoint_prefix: str = "sleep-proxy"

    @field_validator("endpoint_prefix")
    @classmethod
    def strip_slashes(cls, v: str) -> str:
        v = v.strip("/")
        if not v:
            raise ValueError("endpoint_prefix cannot be empty")
        return v


class LoggingConfig(_StrictModel):
    level: str = "INFO"

    @field_validator("level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()


# ---------------------------------------------------------------------------
# Flat env names (SLEEP_TIMEOUT=3600 style)
# ---------------------------------------------------------------------------

FLAT_ENV_NAMES: dict[str, tuple[str, str]] = {
    "SLEEP_TIMEOUT": ("monitor", "sleep_timeout_seconds"),
    "CHECK_INTERVAL": ("monitor", "interval_seconds"),
    "ALLOW_LIST_MODE": ("project", "allow_list_mode"),
    "ENDPOINT_PREFIX": ("server", "endpoint_prefix"),
    "PROXY_PORT": ("server", "port"),
}


class FlatEnvSettingsSource(PydanticBaseSettingsSource):
    """Map the flat env names of a plain sleep-proxy deployment onto sections.

    Empty values count as unset. The nested ``SECTION__FIELD`` form wins when both
    are given.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        data: dict[str, dict[str, str]] = {}
        for env_name, (section, key) in FLAT_ENV_NAMES.items():
            value = os.environ.get(env_name, "")
            if value:
                data.setdefault(section, {})[key] = value
        return data


# ---------------------------------------------------------------------------
# Root Settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        toml_file="config.toml",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    project: ProjectConfig = ProjectConfig()
    monitor: MonitorConfig = MonitorConfig()
    docker: DockerConfig = DockerConfig()
    server: ServerConfig = ServerConfig()
    logging: LoggingConfig = LoggingConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority: init > env vars > flat env names > .env > config.toml > file secrets."""
        return (
            init_settings,
            env_settings,
            FlatEnvSettingsSource(settings_cls),
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # --- Computed properties ---

    @cached_property
    def sleep_timeout(self) -> timedelta:
        return timedelta(seconds=self.monitor.sleep_timeout_seconds)

    @cached_property
    def monitor_interval(self) -> float:
        return self.monitor.interval_seconds


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_settings: Settings | None = None


def get_settings() -> Settings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
