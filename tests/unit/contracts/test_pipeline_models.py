# tests/unit/contracts/test_pipeline_models.py
"""Tests for the persisted pipeline models."""

import pytest
from pydantic import ValidationError

from missionflow.contracts import (
    BranchType,
    ConditionType,
    JoinPolicy,
    PipelineConfiguration,
    Stage,
    StageCondition,
    UnknownStageError,
)
from missionflow.testing import chain_stages, make_pipeline, make_stage


class TestStage:
    def test_parses_camel_case_json(self) -> None:
        stage = Stage.model_validate(
            {
                "id": "s1",
                "name": "Test",
                "nextStageIds": ["s2", "s3"],
                "branchType": "conditional",
                "joinPolicy": "any",
                "requiredForCompletion": False,
                "condition": {"type": "test-passed", "branches": {"onSuccess": ["s2"], "onFailure": ["s3"]}},
            }
        )

        assert stage.next_stage_ids == ("s2", "s3")
        assert stage.branch_type == BranchType.CONDITIONAL
        assert stage.join_policy == JoinPolicy.ANY
        assert stage.required_for_completion is False
        assert stage.condition is not None
        assert stage.condition.condition_type == ConditionType.TEST_PASSED
        assert stage.condition.branches.all_targets() == ("s2", "s3")

    def test_defaults(self) -> None:
        stage = Stage(id="s1", name="Only")

        assert stage.branch_type == BranchType.SEQUENTIAL
        assert stage.join_policy == JoinPolicy.ALL
        assert stage.required_for_completion is True
        assert stage.is_exit

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Stage(id="", name="Nameless")

    def test_unknown_branch_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Stage.model_validate({"id": "s1", "name": "x", "branchType": "random"})

    def test_frozen(self) -> None:
        stage = make_stage("a")

        with pytest.raises(ValidationError):
            stage.name = "changed"  # type: ignore[misc]

    def test_ui_only_keys_ignored(self) -> None:
        stage = Stage.model_validate({"id": "s1", "name": "x", "selected": True})

        assert not hasattr(stage, "selected")

    def test_condition_dumps_type_key(self) -> None:
        condition = StageCondition(condition_type=ConditionType.MANUAL_APPROVAL)

        assert condition.to_json_dict()["type"] == "manual-approval"


class TestPipelineConfiguration:
    def test_get_stage(self) -> None:
        config = make_pipeline(chain_stages("a", "b"))

        assert config.get_stage("b").id == "b"

    def test_get_unknown_stage(self) -> None:
        config = make_pipeline(chain_stages("a", "b"))

        with pytest.raises(UnknownStageError) as exc_info:
            config.get_stage("zzz")

        assert exc_info.value.stage_id == "zzz"
        assert isinstance(exc_info.value, KeyError)
        assert str(exc_info.value) == "Unknown stage: 'zzz'"

    def test_predecessors(self) -> None:
        config = make_pipeline(chain_stages("a", "b", "c"))

        assert [stage.id for stage in config.predecessors("b")] == ["a"]
        assert config.predecessors("a") == []

    def test_stage_ids(self) -> None:
        assert make_pipeline(chain_stages("x", "y")).stage_ids() == ["x", "y"]

    def test_created_at_is_timezone_aware(self) -> None:
        config = PipelineConfiguration(id="p", name="P")

        assert config.created_at.tzinfo is not None
