"""Importer configuration loaded from a TOML file and environment variables.

The file is the primary source; any value can be overridden (or supplied,
e.g. secrets) through ``IMPORTER_<SECTION>__<KEY>`` environment variables::

    IMPORTER_TARGET__TOKEN=eyJhbGciOi... influx-importer extract --config importer.toml

:func:`load_config` is the validating loader.  It never exits the process;
it raises :class:`ConfigError` with a readable message and leaves the
decision to the caller.
"""

from __future__ import annotations

import json
import logging
import tomllib
from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from importer_engine.models.metrics import MetricDescriptor

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration file is missing, unreadable or invalid."""


class CatalogSource(str, Enum):
    STATIC = "static"
    DISCOVER = "discover"


class ApplicationConfig(BaseModel):
    max_concurrent_routers: int = Field(default=10, gt=0, description="Routers extracted at the same time.")
    request_timeout: float = Field(default=30.0, gt=0.0, description="Per-request timeout in seconds.")
    # Older configuration files kept the metrics lookback here.
    query_time: int | None = Field(default=None, description="Deprecated alias of metrics.max_query_time.")


class TargetConfig(BaseModel):
    url: str = Field(..., min_length=1, description="Fully qualified conductor URL, e.g. https://10.0.1.29")
    token: SecretStr = Field(..., description="JWT acquired with 'influx-importer get-token'.")
    verify_ssl: bool = False

    @field_validator("token")
    @classmethod
    def token_not_empty(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("a conductor token must be set")
        return v


class InfluxConfig(BaseModel):
    address: str = Field(..., min_length=1, description="HTTP address of the Influx instance.")
    username: str = ""
    password: SecretStr = SecretStr("")
    database: str = Field(..., min_length=1)


class AlarmHistoryConfig(BaseModel):
    enabled: bool = True
    max_query_time: int = Field(default=3600, gt=0, description="Maximum seconds of alarm history to pull.")


class MetricsConfig(BaseModel):
    max_query_time: int = Field(default=3600, gt=0, description="Maximum seconds of metric history to pull.")
    enabled: list[str] = Field(default_factory=list, description="Metric ids to extract.")
    catalog: CatalogSource = CatalogSource.STATIC


class LoggingConfig(BaseModel):
    level: str = "INFO"
    structured: bool = False

    @field_validator("level")
    @classmethod
    def known_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {v!r}")
        return level


class Settings(BaseSettings):
    """Validated importer settings."""

    model_config = SettingsConfigDict(
        env_prefix="IMPORTER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    application: ApplicationConfig = Field(default_factory=ApplicationConfig)
    target: TargetConfig
    influx: InfluxConfig
    alarm_history: AlarmHistoryConfig = Field(default_factory=AlarmHistoryConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="before")
    @classmethod
    def apply_legacy_query_time(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        application = data.get("application") or {}
        metrics = data.get("metrics") or {}
        legacy = application.get("query_time") if isinstance(application, dict) else None
        if legacy is not None and isinstance(metrics, dict) and "max_query_time" not in metrics:
            logger.warning("application.query_time is deprecated; use metrics.max_query_time")
            data = {**data, "metrics": {**metrics, "max_query_time": legacy}}
        return data

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment variables take precedence over the TOML file.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @classmethod
    def from_toml(cls, path: Path) -> Settings:
        """Build settings from the TOML file at *path* and the environment."""
        file_settings = type(
            cls.__name__,
            (cls,),
            {"__module__": cls.__module__, "model_config": SettingsConfigDict(toml_file=path)},
        )
        return file_settings()


def load_config(path: Path) -> Settings:
    """Read *path* (TOML) and return validated :class:`Settings`.

    Raises
    ------
    ConfigError
        If the file cannot be read, is not valid TOML, or fails validation.
    """
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        settings = Settings.from_toml(path)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read {path}: {exc}") from exc
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration in {path}: {problems}") from exc

    logger.debug(
        "Loaded configuration from %s (%d metric(s), alarm history %s)",
        path,
        len(settings.metrics.enabled),
        "enabled" if settings.alarm_history.enabled else "disabled",
    )
    return settings


def _toml_string(value: str) -> str:
    # A JSON string literal is also a valid TOML basic string.
    return json.dumps(value)


def render_config_template(url: str, token: str, metrics: Sequence[MetricDescriptor]) -> str:
    """Return a commented TOML configuration template.

    Every metric in *metrics* is listed, commented out, inside the
    ``metrics.enabled`` array so that users opt in explicitly.
    """
    lines = [
        "[application]",
        "# The maximum number of routers to query at a given time.",
        "max_concurrent_routers = 10",
        "",
        "[target]",
        "# The fully qualified URL to the conductor web instance. E.g: https://10.0.1.29",
        f"url = {_toml_string(url)}",
        "",
        "# The JWT token acquired with 'influx-importer get-token'.",
        f"token = {_toml_string(token)}",
        "",
        "[influx]",
        "# The address of the Influx instance which is typically a HTTP address.",
        'address = ""',
        'username = ""',
        'password = ""',
        'database = ""',
        "",
        "[alarm_history]",
        "# Whether alarm history should be collected.",
        "enabled = true",
        "",
        "# The maximum time, in seconds, to go back and collect alarms for.",
        "max_query_time = 3600",
        "",
        "[metrics]",
        "# The maximum time, in seconds, to go back and collect metrics for.",
        "max_query_time = 3600",
        "",
        "# All metrics are, by default, disabled.",
        "# Uncomment the desired stat to begin pulling for it.",
        "# Keep in mind that the more stats you enable the longer query times take",
        "# and the more consistent burden you place on the routers.",
        "enabled = [",
    ]
    for metric in metrics:
        lines.append(f"    # {metric.description}")
        lines.append(f'    # "{metric.id}",')
    lines.append("]")
    return "\n".join(lines) + "\n"
