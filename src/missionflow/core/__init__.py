"""Core infrastructure: configuration, logging, and pipeline graph operations."""

from missionflow.core.config import MissionflowSettings, load_settings
from missionflow.core.logging import configure_logging, pipeline_context

__all__ = [
    "MissionflowSettings",
    "configure_logging",
    "load_settings",
    "pipeline_context",
]
