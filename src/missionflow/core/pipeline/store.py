# src/missionflow/core/pipeline/store.py
"""Persistence helpers for pipeline configurations.

Configurations are stored as JSON in the camelCase shape the dashboard
reads. Derived fields (entryStageIds, isValid, validationErrors) are
recomputed on every load and every refresh - the stored values are never
trusted.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import structlog

from missionflow.contracts.errors import PipelineActivationError
from missionflow.contracts.pipeline import PipelineConfiguration, Team
from missionflow.core.config import ValidationSettings
from missionflow.core.pipeline.entry_points import find_entry_stages
from missionflow.core.pipeline.validation import validate_pipeline_graph

logger = structlog.get_logger(__name__)


def refresh_pipeline(
    config: PipelineConfiguration,
    settings: ValidationSettings | None = None,
    *,
    touch: bool = True,
) -> PipelineConfiguration:
    """Recompute the derived fields of a configuration.

    Args:
        config: Configuration whose stages may have changed
        settings: Validation thresholds
        touch: Set updated_at to now

    Returns:
        New configuration with entry_stage_ids, is_valid and
        validation_errors matching its stages
    """
    result = validate_pipeline_graph(config.stages, settings)
    update: dict[str, object] = {
        "entry_stage_ids": tuple(find_entry_stages(config.stages)),
        "is_valid": result.is_valid,
        "validation_errors": tuple(result.errors),
    }
    if touch:
        update["updated_at"] = datetime.now(UTC)
    return config.model_copy(update=update)


def load_pipeline(path: Path, settings: ValidationSettings | None = None) -> PipelineConfiguration:
    """Read a configuration from a JSON file and refresh its derived fields.

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If the JSON does not match the schema
    """
    config = PipelineConfiguration.model_validate_json(path.read_text(encoding="utf-8"))
    return refresh_pipeline(config, settings, touch=False)


def save_pipeline(config: PipelineConfiguration, path: Path) -> None:
    """Write a configuration to a JSON file in the persisted shape."""
    path.write_text(json.dumps(config.to_json_dict(), indent=2) + "\n", encoding="utf-8")
    logger.debug("Saved pipeline", pipeline_id=config.id, path=str(path))


def activate_pipeline(
    team: Team,
    config: PipelineConfiguration,
    settings: ValidationSettings | None = None,
) -> Team:
    """Make config the team's active pipeline.

    Validity is recomputed from the stages rather than read from
    config.is_valid, so a stale flag cannot slip an invalid graph through.

    Returns:
        New Team with pipeline set and active_pipeline_id marked

    Raises:
        PipelineActivationError: If the configuration is not valid
    """
    refreshed = refresh_pipeline(config, settings, touch=False)
    if not refreshed.is_valid:
        raise PipelineActivationError(config.id, list(refreshed.validation_errors))

    logger.info("Activated pipeline", team_id=team.id, pipeline_id=config.id)
    return team.model_copy(update={"pipeline": refreshed, "active_pipeline_id": refreshed.id})
