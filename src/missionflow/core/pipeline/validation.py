# src/missionflow/core/pipeline/validation.py
"""Structural soundness checks over a stage list.

Validation failures are data, not exceptions: validate_pipeline_graph()
always returns a ValidationResult. Blocking findings (errors) keep a
configuration from being marked valid; advisory findings (warnings) never
do, so a stage left unwired mid-edit does not block the editor.

Validates:
1. Stage ids are unique
2. Every successor id references an existing stage (dangling reference)
3. No cycles (three-colour depth-first traversal)
4. At least one entry stage exists
5. Every stage is reachable from an entry stage (warning only)
6. Advisory checks: exit stages, entry-point count, agent assignment,
   conditional branch wiring
"""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

import networkx as nx

from missionflow.contracts.enums import BranchType, FindingCode, FindingSeverity
from missionflow.contracts.pipeline import Stage
from missionflow.core.config import ValidationSettings
from missionflow.core.pipeline.entry_points import find_entry_stages, find_exit_stages


@dataclass(frozen=True, slots=True)
class ValidationFinding:
    """One problem found in a stage graph.

    Attributes:
        code: Machine-readable finding code
        severity: ERROR blocks validity, WARNING is advisory
        message: Human-readable description for the editor
        stage_ids: Stages the finding is about (cycle members, orphan, ...)
    """

    code: FindingCode
    severity: FindingSeverity
    message: str
    stage_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating a stage list."""

    findings: tuple[ValidationFinding, ...] = ()

    @property
    def is_valid(self) -> bool:
        """True iff there are no blocking findings."""
        return not any(finding.severity == FindingSeverity.ERROR for finding in self.findings)

    @property
    def errors(self) -> list[str]:
        """Messages of blocking findings, in detection order."""
        return [f.message for f in self.findings if f.severity == FindingSeverity.ERROR]

    @property
    def warnings(self) -> list[str]:
        """Messages of advisory findings, in detection order."""
        return [f.message for f in self.findings if f.severity == FindingSeverity.WARNING]

    def by_code(self, code: FindingCode) -> list[ValidationFinding]:
        """Findings with the given code."""
        return [f for f in self.findings if f.code == code]


class _Colour(Enum):
    WHITE = 0  # unvisited
    GRAY = 1  # on the current DFS path
    BLACK = 2  # finished


def _error(code: FindingCode, message: str, stage_ids: Iterable[str] = ()) -> ValidationFinding:
    return ValidationFinding(code=code, severity=FindingSeverity.ERROR, message=message, stage_ids=tuple(stage_ids))


def _warning(code: FindingCode, message: str, stage_ids: Iterable[str] = ()) -> ValidationFinding:
    return ValidationFinding(code=code, severity=FindingSeverity.WARNING, message=message, stage_ids=tuple(stage_ids))


def build_stage_digraph(stages: Sequence[Stage]) -> nx.DiGraph[str]:
    """Adjacency graph of stages, keeping only edges between existing stages.

    Node insertion order follows the stage list, so traversals are
    deterministic.
    """
    graph: nx.DiGraph[str] = nx.DiGraph()
    graph.add_nodes_from(stage.id for stage in stages)
    for stage in stages:
        for target_id in stage.next_stage_ids:
            if graph.has_node(target_id):
                graph.add_edge(stage.id, target_id)
    return graph


def find_cycles(graph: nx.DiGraph[str]) -> list[tuple[str, ...]]:
    """Detect cycles with an iterative three-colour depth-first traversal.

    Every edge into a GRAY node closes a cycle; the cycle reported is the
    slice of the current DFS path from that node to the edge's source.
    Self-loops are reported as single-stage cycles.

    Returns:
        One tuple of stage ids per back edge found, in traversal order
    """
    colour = dict.fromkeys(graph.nodes, _Colour.WHITE)
    cycles: list[tuple[str, ...]] = []

    for root in graph.nodes:
        if colour[root] is not _Colour.WHITE:
            continue
        colour[root] = _Colour.GRAY
        path: list[str] = [root]
        stack = [(root, iter(graph.successors(root)))]
        while stack:
            node, children = stack[-1]
            for child in children:
                if colour[child] is _Colour.GRAY:
                    cycles.append(tuple(path[path.index(child) :]))
                elif colour[child] is _Colour.WHITE:
                    colour[child] = _Colour.GRAY
                    path.append(child)
                    stack.append((child, iter(graph.successors(child))))
                    break
            else:
                colour[node] = _Colour.BLACK
                path.pop()
                stack.pop()

    return cycles


def find_reachable(graph: nx.DiGraph[str], start_ids: Iterable[str]) -> set[str]:
    """Breadth-first set of stages reachable from any of start_ids (inclusive)."""
    reachable: set[str] = set()
    queue = deque(start_id for start_id in start_ids if graph.has_node(start_id))
    while queue:
        node = queue.popleft()
        if node in reachable:
            continue
        reachable.add(node)
        queue.extend(graph.successors(node))
    return reachable


def _label(stage: Stage) -> str:
    return f'"{stage.name}" ({stage.id})'


def _check_conditional(stage: Stage) -> list[ValidationFinding]:
    """Advisory checks for a conditional stage's branch wiring."""
    if stage.condition is None:
        return [
            _warning(
                FindingCode.CONDITIONAL_WITHOUT_CONDITION,
                f"Stage {_label(stage)} is marked as conditional but has no condition defined",
                [stage.id],
            )
        ]

    findings: list[ValidationFinding] = []
    branch_targets = stage.condition.branches.all_targets()
    if not branch_targets:
        findings.append(
            _warning(
                FindingCode.EMPTY_CONDITION_BRANCHES,
                f"Stage {_label(stage)} conditional has no branches defined",
                [stage.id],
            )
        )

    missing_in_next = [target for target in branch_targets if target not in stage.next_stage_ids]
    extra_in_next = [target for target in stage.next_stage_ids if target not in branch_targets]
    if missing_in_next:
        findings.append(
            _warning(
                FindingCode.CONDITION_BRANCH_MISMATCH,
                f"Stage {_label(stage)} has condition branches not in nextStageIds: {', '.join(missing_in_next)}",
                [stage.id, *missing_in_next],
            )
        )
    if extra_in_next and branch_targets:
        findings.append(
            _warning(
                FindingCode.CONDITION_BRANCH_MISMATCH,
                f"Stage {_label(stage)} has nextStageIds not in condition branches: {', '.join(extra_in_next)}",
                [stage.id, *extra_in_next],
            )
        )
    return findings


def validate_pipeline_graph(
    stages: Sequence[Stage],
    settings: ValidationSettings | None = None,
) -> ValidationResult:
    """Validate the structure of a stage graph.

    Args:
        stages: Stage list snapshot (may be invalid in any way)
        settings: Thresholds for advisory findings (defaults if None)

    Returns:
        ValidationResult. is_valid is True iff there are no duplicate ids,
        no dangling references, no cycles, and at least one entry stage.
    """
    settings = settings or ValidationSettings()
    findings: list[ValidationFinding] = []

    if not stages:
        findings.append(_error(FindingCode.EMPTY_PIPELINE, "Pipeline has no stages"))
        return ValidationResult(findings=tuple(findings))

    # Check 1: unique ids
    id_counts = Counter(stage.id for stage in stages)
    for stage_id, count in id_counts.items():
        if count > 1:
            findings.append(
                _error(
                    FindingCode.DUPLICATE_STAGE_ID,
                    f"Stage id {stage_id!r} is used by {count} stages",
                    [stage_id],
                )
            )

    # Check 2: dangling references
    known_ids = set(id_counts)
    for stage in stages:
        for target_id in stage.next_stage_ids:
            if target_id not in known_ids:
                findings.append(
                    _error(
                        FindingCode.DANGLING_REFERENCE,
                        f"Stage {_label(stage)} references non-existent stage ID: {target_id}",
                        [stage.id, target_id],
                    )
                )

    graph = build_stage_digraph(stages)

    # Check 3: cycles
    for cycle in find_cycles(graph):
        cycle_str = " -> ".join([*cycle, cycle[0]])
        findings.append(
            _error(
                FindingCode.CYCLE,
                f"Pipeline has circular dependencies: {cycle_str}",
                cycle,
            )
        )

    # Check 4: entry points
    entry_ids = find_entry_stages(stages)
    if not entry_ids:
        findings.append(
            _error(
                FindingCode.NO_ENTRY_POINT,
                "Pipeline has no entry point - all stages have incoming connections",
            )
        )
    elif len(entry_ids) > settings.max_entry_points:
        findings.append(
            _warning(
                FindingCode.TOO_MANY_ENTRY_POINTS,
                f"Pipeline has {len(entry_ids)} entry points - consider reducing complexity",
                entry_ids,
            )
        )

    # Check 5: reachability from entries (advisory)
    if entry_ids:
        reachable = find_reachable(graph, entry_ids)
        for stage in stages:
            if stage.id not in reachable:
                findings.append(
                    _warning(
                        FindingCode.UNREACHABLE_STAGE,
                        f"Stage {_label(stage)} is unreachable from any entry stage",
                        [stage.id],
                    )
                )

    # Check 6: advisory wiring checks
    if not find_exit_stages(stages):
        findings.append(
            _warning(
                FindingCode.NO_EXIT_POINT,
                "Pipeline has no exit point - all stages have outgoing connections",
            )
        )

    for stage in stages:
        if settings.warn_unassigned_agents and not stage.assigned_agent_ids:
            findings.append(
                _warning(
                    FindingCode.UNASSIGNED_AGENTS,
                    f"Stage {_label(stage)} has no agents assigned",
                    [stage.id],
                )
            )
        if stage.branch_type == BranchType.CONDITIONAL:
            findings.extend(_check_conditional(stage))

    return ValidationResult(findings=tuple(findings))
