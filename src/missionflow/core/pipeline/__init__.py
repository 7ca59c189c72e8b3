# src/missionflow/core/pipeline/__init__.py
"""Team pipeline graph operations.

Pure functions over explicit stage/graph snapshots - no shared state, safe
to call from any thread.
"""

from missionflow.core.pipeline.converter import agent_lookup_from, graph_to_stages, stages_to_graph
from missionflow.core.pipeline.entry_points import find_entry_stages, find_exit_stages
from missionflow.core.pipeline.layout import auto_layout_graph, calculate_bounding_box, compute_ranks
from missionflow.core.pipeline.store import activate_pipeline, load_pipeline, refresh_pipeline, save_pipeline
from missionflow.core.pipeline.validation import ValidationFinding, ValidationResult, validate_pipeline_graph

__all__ = [
    "ValidationFinding",
    "ValidationResult",
    "activate_pipeline",
    "agent_lookup_from",
    "auto_layout_graph",
    "calculate_bounding_box",
    "compute_ranks",
    "find_entry_stages",
    "find_exit_stages",
    "graph_to_stages",
    "load_pipeline",
    "refresh_pipeline",
    "save_pipeline",
    "stages_to_graph",
    "validate_pipeline_graph",
]
