# tests/property/engine/test_execution_state_machine.py
"""Property-based stateful tests for the execution state machine.

Progress events arrive out of order and more than once. These tests feed
arbitrary event sequences (including duplicates and illegal ones) to a
diamond pipeline with an optional side branch and check that the
execution record never violates its invariants.

Key Invariants:
- totalCost equals the sum of stage costs, and equals the cost of the
  first completion of each stage (re-completion never re-adds cost)
- commits are never duplicated within a stage
- terminal stages stay terminal
- an active stage always had its activation rule satisfied
- the current agent set is exactly the union over active stages
"""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, invariant, precondition, rule

from missionflow.contracts import (
    BranchType,
    IllegalTransitionError,
    StageActivated,
    StageBlocked,
    StageCompleted,
    StageSkipped,
    StageStatus,
)
from missionflow.engine.execution import ExecutionStateMachine, create_pipeline_execution
from missionflow.testing import make_pipeline, make_stage
from tests.strategies import STANDARD_SETTINGS, STATE_MACHINE_SETTINGS

STAGE_IDS = ("plan", "build", "docs", "lint", "ship")
stage_choice = st.sampled_from(STAGE_IDS)


def _pipeline():
    """plan -> {build, docs, lint}; build, lint -> ship. docs and lint are optional."""
    return make_pipeline(
        [
            make_stage("plan", ["build", "docs", "lint"], branch_type=BranchType.PARALLEL),
            make_stage("build", ["ship"]),
            make_stage("docs", required_for_completion=False),
            make_stage("lint", ["ship"], required_for_completion=False),
            make_stage("ship"),
        ]
    )


class ExecutionStateMachineModel(RuleBasedStateMachine):
    """Explores random event orderings against one mission run."""

    def __init__(self) -> None:
        super().__init__()
        self.config = _pipeline()
        self.machine = ExecutionStateMachine(self.config, create_pipeline_execution(self.config))

        # Model state for verification
        self.first_completion_cost: dict[str, float] = {}
        self.terminal: set[str] = set()

    def _apply(self, event) -> None:
        try:
            self.machine.apply(event)
        except IllegalTransitionError:
            pass  # Illegal events leave the record untouched; checked by invariants

    @rule(stage_id=stage_choice, agent=st.sampled_from(["agent-1", "agent-2", "agent-3"]))
    def activate(self, stage_id: str, agent: str) -> None:
        self._apply(StageActivated(stage_id, agent_ids=(agent,)))

    @rule(
        stage_id=stage_choice,
        cost=st.floats(min_value=0, max_value=10, allow_nan=False, allow_infinity=False),
        commits=st.lists(st.sampled_from(["c1", "c2", "c3"]), max_size=3),
    )
    def complete(self, stage_id: str, cost: float, commits: list[str]) -> None:
        was_completed = self.machine.status_of(stage_id) == StageStatus.COMPLETED
        self._apply(StageCompleted(stage_id, commits=tuple(commits), cost=cost))
        if not was_completed and self.machine.status_of(stage_id) == StageStatus.COMPLETED:
            self.first_completion_cost[stage_id] = cost

    @rule(stage_id=stage_choice)
    def block(self, stage_id: str) -> None:
        self._apply(StageBlocked(stage_id, reason="stuck"))

    @rule(stage_id=stage_choice)
    def skip(self, stage_id: str) -> None:
        self._apply(StageSkipped(stage_id))

    @precondition(lambda self: self.machine.execution.is_finished)
    @rule()
    def finished_run_has_completion_time(self) -> None:
        assert self.machine.execution.completed_at is not None

    @invariant()
    def total_cost_matches_first_completions(self) -> None:
        execution = self.machine.execution
        assert execution.total_cost == sum(record.cost for record in execution.stages)
        for record in execution.stages:
            assert record.cost == self.first_completion_cost.get(record.stage_id, 0.0)

    @invariant()
    def commits_never_duplicated(self) -> None:
        for record in self.machine.execution.stages:
            assert len(record.commits) == len(set(record.commits))

    @invariant()
    def terminal_states_stay_terminal(self) -> None:
        for record in self.machine.execution.stages:
            if record.stage_id in self.terminal:
                assert record.status.is_terminal
            if record.status.is_terminal:
                self.terminal.add(record.stage_id)

    @invariant()
    def required_stages_never_skipped(self) -> None:
        for stage in self.config.stages:
            if stage.required_for_completion:
                assert self.machine.status_of(stage.id) != StageStatus.SKIPPED

    @invariant()
    def ship_only_runs_after_build(self) -> None:
        if self.machine.status_of("ship") in (StageStatus.ACTIVE, StageStatus.BLOCKED, StageStatus.COMPLETED):
            assert self.machine.status_of("build") == StageStatus.COMPLETED

    @invariant()
    def agent_set_is_union_over_active(self) -> None:
        expected: set[str] = set()
        for record in self.machine.execution.stages:
            if record.status == StageStatus.ACTIVE:
                expected.update(record.active_agent_ids)
            elif record.status.is_terminal:
                assert record.active_agent_ids == []
        assert self.machine.active_agent_ids() == expected


ExecutionStateMachineModel.TestCase.settings = STATE_MACHINE_SETTINGS
TestExecutionStateMachine = ExecutionStateMachineModel.TestCase


class TestIdempotence:
    @given(
        commits=st.lists(st.text(alphabet="0123456789abcdef", min_size=7, max_size=7), max_size=5),
        cost=st.floats(min_value=0, max_value=100, allow_nan=False, allow_infinity=False),
        repeats=st.integers(min_value=2, max_value=5),
    )
    @STANDARD_SETTINGS
    def test_repeated_completion_changes_nothing(self, commits: list[str], cost: float, repeats: int) -> None:
        """Property: completing the same stage N times == completing it once."""
        config = _pipeline()
        machine = ExecutionStateMachine(config, create_pipeline_execution(config))
        event = StageCompleted("plan", commits=tuple(commits), cost=cost)

        machine.apply(event)
        snapshot = machine.execution.model_dump()
        for _ in range(repeats - 1):
            assert not machine.apply(event).changed

        assert machine.execution.model_dump() == snapshot
        assert machine.execution.total_cost == cost
        assert machine.execution.get_stage("plan").commits == list(dict.fromkeys(commits))
