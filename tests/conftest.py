# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import logging
import os
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from missionflow.contracts import Agent, BranchType, PipelineConfiguration
from missionflow.testing import make_agent, make_pipeline, make_stages

# =============================================================================
# Hypothesis Profiles
# =============================================================================

# CI profile: Balanced speed and coverage
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Logging Reset
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo configure_logging() calls made by CLI and logging tests.

    configure_logging() binds a handler to the sys.stderr of the moment,
    which CliRunner and capsys close after the test.
    """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers = handlers
    root.setLevel(level)


# =============================================================================
# Pipeline Fixtures
# =============================================================================


class FakeClock:
    """Deterministic replacement for datetime.now(UTC).

    Each call returns a time one second after the previous one.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._current = start or datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self._current += timedelta(seconds=1)
        return self._current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def diamond_pipeline() -> PipelineConfiguration:
    """s1 -> {s2, s3} (parallel) -> s4."""
    stages = make_stages({"s1": ["s2", "s3"], "s2": ["s4"], "s3": ["s4"], "s4": []})
    stages[0] = stages[0].model_copy(update={"branch_type": BranchType.PARALLEL})
    return make_pipeline(stages, pipeline_id="diamond")


@pytest.fixture
def agents() -> list[Agent]:
    return [make_agent("agent-1"), make_agent("agent-2", role="reviewer")]
