"""Status codes, modes, and kinds used across subsystem boundaries.

String values are part of the persisted JSON shape - changing one is a
breaking change for stored pipeline configurations and execution records.
"""

from enum import StrEnum


class BranchType(StrEnum):
    """Successor semantics of a stage.

    Stored in pipeline JSON (stages[].branchType).
    """

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


class JoinPolicy(StrEnum):
    """How a stage with several predecessors waits before activating.

    Values:
        ALL: every predecessor marked requiredForCompletion must be completed
        ANY: at least one predecessor must be completed
    """

    ALL = "all"
    ANY = "any"


class ConditionType(StrEnum):
    """Kind of check a conditional stage branches on.

    Carried as data only - evaluation happens outside this package.
    """

    TEST_PASSED = "test-passed"
    MANUAL_APPROVAL = "manual-approval"
    CUSTOM_SCRIPT = "custom-script"


class StageStatus(StrEnum):
    """Runtime status of one stage within a mission's pipeline execution.

    Stored in execution records (stages[].status).
    """

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    BLOCKED = "blocked"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are possible from this status."""
        return self in (StageStatus.COMPLETED, StageStatus.SKIPPED)


class LogEntryType(StrEnum):
    """Kind of entry in a stage execution log."""

    AGENT_ACTIVITY = "agent_activity"
    COMMIT = "commit"
    TEST = "test"
    ERROR = "error"
    DECISION = "decision"
    APPROVAL = "approval"
    SYSTEM = "system"


class LogSeverity(StrEnum):
    """Display severity of a stage execution log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class FindingSeverity(StrEnum):
    """Whether a validation finding blocks activation of a pipeline."""

    ERROR = "error"
    WARNING = "warning"


class FindingCode(StrEnum):
    """Machine-readable code for a pipeline validation finding.

    Blocking codes (severity ERROR) keep a configuration from being marked
    valid. Advisory codes (severity WARNING) never affect validity.
    """

    # Blocking
    EMPTY_PIPELINE = "empty_pipeline"
    DUPLICATE_STAGE_ID = "duplicate_stage_id"
    DANGLING_REFERENCE = "dangling_reference"
    CYCLE = "cycle"
    NO_ENTRY_POINT = "no_entry_point"

    # Advisory
    UNREACHABLE_STAGE = "unreachable_stage"
    NO_EXIT_POINT = "no_exit_point"
    TOO_MANY_ENTRY_POINTS = "too_many_entry_points"
    UNASSIGNED_AGENTS = "unassigned_agents"
    CONDITIONAL_WITHOUT_CONDITION = "conditional_without_condition"
    CONDITION_BRANCH_MISMATCH = "condition_branch_mismatch"
    EMPTY_CONDITION_BRANCHES = "empty_condition_branches"


class LayoutDirection(StrEnum):
    """Axis along which layout ranks advance.

    TB: ranks are rows, top to bottom.
    LR: ranks are columns, left to right.
    """

    TOP_BOTTOM = "TB"
    LEFT_RIGHT = "LR"
