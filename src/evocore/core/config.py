"""Configuration models for the evolution engine.

Pydantic models for loading and validating YAML engine configuration.

Example YAML:
    data_dir: ~/.evocore/data
    max_suggestions: 5
    max_template_examples: 20
    logging:
      level: DEBUG
      format: json
      file_path: ~/.evocore/logs/evocore.log
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from evocore.core.constants import (
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_MAX_SUGGESTIONS,
    DEFAULT_MAX_TEMPLATE_EXAMPLES,
    DEFAULT_RELEVANCE_THRESHOLD,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SUCCESS_RATE_TOLERANCE,
)
from evocore.core.exceptions import ConfigError

DATA_DIR_ENV_VAR = "EVOCORE_DATA_DIR"


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for rotating log file output. None logs to stderr.",
    )
    max_file_size_mb: int = Field(
        default=10,
        gt=0,
        le=1000,
        description="Maximum log file size before rotation (MB)",
    )
    backup_count: int = Field(
        default=3,
        ge=0,
        le=100,
        description="Number of rotated log files to keep",
    )

    @field_validator("file_path")
    @classmethod
    def _expand_file_path(cls, v: Path | None) -> Path | None:
        return v.expanduser() if v is not None else None


class EngineConfig(BaseModel):
    """Top-level configuration for the evolution engine."""

    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding one JSON document per persisted collection.",
    )
    max_suggestions: int = Field(
        default=DEFAULT_MAX_SUGGESTIONS,
        ge=1,
        description="Maximum number of suggestions returned per context.",
    )
    relevance_threshold: float = Field(
        default=DEFAULT_RELEVANCE_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Suggestions need relevance strictly above this value.",
    )
    success_rate_tolerance: float = Field(
        default=DEFAULT_SUCCESS_RATE_TOLERANCE,
        ge=0.0,
        le=1.0,
        description="Success rate differences within this band fall through "
        "to relevance when ranking suggestions.",
    )
    max_template_examples: int = Field(
        default=DEFAULT_MAX_TEMPLATE_EXAMPLES,
        ge=1,
        description="Context snapshots kept per skill template.",
    )
    retention_days: int = Field(
        default=DEFAULT_RETENTION_DAYS,
        ge=1,
        description="Default age cutoff for cleanup of workflow records.",
    )
    lock_timeout_seconds: float = Field(
        default=DEFAULT_LOCK_TIMEOUT_SECONDS,
        gt=0.0,
        description="How long a write waits for the advisory collection lock.",
    )
    logging: LogConfig = Field(default_factory=LogConfig)

    @model_validator(mode="before")
    @classmethod
    def _apply_data_dir_env(cls, data: Any) -> Any:
        """``EVOCORE_DATA_DIR`` in the environment overrides ``data_dir``."""
        env_dir = os.environ.get(DATA_DIR_ENV_VAR)
        if env_dir and isinstance(data, dict):
            data = {**data, "data_dir": env_dir}
        return data

    @field_validator("data_dir")
    @classmethod
    def _expand_data_dir(cls, v: Path) -> Path:
        return v.expanduser()

    @classmethod
    def from_yaml(cls, path: Path) -> EngineConfig:
        """Load engine configuration from a YAML file."""
        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        return cls.from_yaml_string(text)

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> EngineConfig:
        """Load engine configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError("Engine config must be a mapping")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
