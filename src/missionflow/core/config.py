# src/missionflow/core/config.py
"""
Configuration schema and loading for missionflow.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction. Every section has
defaults, so an empty settings file (or none at all) is valid.
"""

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from missionflow.contracts.enums import LayoutDirection

_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


class LayoutSettings(BaseModel):
    """Geometry for the auto-layout engine.

    Row height is node_height + rank_spacing and column width is
    node_width + node_spacing; margins offset the whole drawing.

    Example YAML:
        layout:
          direction: LR
          rank_spacing: 160
    """

    model_config = {"frozen": True}

    node_width: float = Field(default=220.0, gt=0, description="Rendered node width")
    node_height: float = Field(default=120.0, gt=0, description="Rendered node height")
    node_spacing: float = Field(default=100.0, ge=0, description="Gap between nodes in one rank")
    rank_spacing: float = Field(default=120.0, ge=0, description="Gap between consecutive ranks")
    margin_x: float = Field(default=0.0, ge=0)
    margin_y: float = Field(default=0.0, ge=0)
    direction: LayoutDirection = LayoutDirection.TOP_BOTTOM
    max_relaxation_rounds: int | None = Field(
        default=None,
        gt=0,
        description="Bound on longest-path relaxation rounds (default: node count)",
    )

    @property
    def row_height(self) -> float:
        return self.node_height + self.rank_spacing

    @property
    def column_width(self) -> float:
        return self.node_width + self.node_spacing


class ValidationSettings(BaseModel):
    """Thresholds for advisory validation findings."""

    model_config = {"frozen": True}

    max_entry_points: int = Field(
        default=3,
        ge=1,
        description="Warn when a pipeline has more entry stages than this",
    )
    warn_unassigned_agents: bool = Field(
        default=True,
        description="Warn about stages with no assigned agents",
    )


class EditorSettings(BaseModel):
    """Visual editor sync behaviour."""

    model_config = {"frozen": True}

    sync_debounce_ms: int = Field(
        default=100,
        ge=0,
        description="Coalescing window for flushing edits to the stage list",
    )

    @property
    def sync_debounce_seconds(self) -> float:
        return self.sync_debounce_ms / 1000.0


class ExecutionSettings(BaseModel):
    """Runtime stage-tracking behaviour."""

    model_config = {"frozen": True}

    activate_entry_stages: bool = Field(
        default=True,
        description="Start entry stages as active when an execution is created",
    )
    auto_advance: bool = Field(
        default=True,
        description="Activate eligible successors when a sequential/parallel stage completes",
    )


class MissionflowSettings(BaseModel):
    """Top-level missionflow configuration.

    Example YAML:
        layout:
          direction: TB
        validation:
          max_entry_points: 5
        editor:
          sync_debounce_ms: ${MISSIONFLOW_DEBOUNCE:-100}
        execution:
          auto_advance: true
    """

    model_config = {"frozen": True, "extra": "forbid"}

    layout: LayoutSettings = Field(default_factory=LayoutSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)

    @model_validator(mode="before")
    @classmethod
    def drop_empty_sections(cls, data: Any) -> Any:
        """Treat `section:` with no body (YAML null) as defaults."""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            raise ValueError(f"Required environment variable '{var_name}' is not set")

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lowercase_keys(value: Any) -> Any:
    """Dynaconf uppercases top-level keys from env vars; Pydantic wants snake_case."""
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> MissionflowSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (MISSIONFLOW_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: MISSIONFLOW_LAYOUT__DIRECTION for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated MissionflowSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
        ValueError: If a required ${VAR} has no value and no default
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="MISSIONFLOW",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lowercase_keys(raw_config)
    raw_config = _expand_env_vars(raw_config)

    return MissionflowSettings(**raw_config)
