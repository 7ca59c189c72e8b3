# tests/strategies/__init__.py
"""Hypothesis strategies for property-based tests.

Re-exports commonly used strategies for convenience:
    from tests.strategies import acyclic_stage_lists, STANDARD_SETTINGS
"""

from tests.strategies.pipelines import acyclic_stage_lists, cyclic_stage_lists, stage_ids, stage_lists
from tests.strategies.settings import QUICK_SETTINGS, STANDARD_SETTINGS, STATE_MACHINE_SETTINGS

__all__ = [
    "QUICK_SETTINGS",
    "STANDARD_SETTINGS",
    "STATE_MACHINE_SETTINGS",
    "acyclic_stage_lists",
    "cyclic_stage_lists",
    "stage_ids",
    "stage_lists",
]
