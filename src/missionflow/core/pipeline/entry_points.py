# src/missionflow/core/pipeline/entry_points.py
"""Entry and exit stage resolution.

An entry stage has no incoming edge; an exit stage has no outgoing edge.
A stage that lists itself in next_stage_ids has an incoming edge (from
itself), so it is never an entry. Pure functions over a stage snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from missionflow.contracts.pipeline import Stage


def incoming_targets(stages: Iterable[Stage]) -> set[str]:
    """Ids that appear as the target of at least one edge."""
    targets: set[str] = set()
    for stage in stages:
        targets.update(stage.next_stage_ids)
    return targets


def find_entry_stages(stages: Sequence[Stage]) -> list[str]:
    """Return ids of stages with no incoming edge, in stage-list order.

    Examples:
        chain a -> b -> c           => ["a"]
        two unconnected stages      => both
        single self-looping stage   => []
    """
    has_incoming = incoming_targets(stages)
    return [stage.id for stage in stages if stage.id not in has_incoming]


def find_exit_stages(stages: Sequence[Stage]) -> list[str]:
    """Return ids of stages with no outgoing edge, in stage-list order."""
    return [stage.id for stage in stages if not stage.next_stage_ids]
