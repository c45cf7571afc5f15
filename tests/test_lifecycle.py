from __future__ import annotations

import pytest

from venture_pilot.lifecycle import (
    GREETING,
    STAGE_ORDER,
    advance_stage,
    apply_suggestion,
    initialize_idea,
    list_stage_definitions,
    next_stage,
    record_result,
    reset_stage,
)
from venture_pilot.schemas import Role, StageResult, VentureStage


def test_stage_order_is_fixed() -> None:
    assert [stage.value for stage in STAGE_ORDER] == [
        "ideation",
        "validation",
        "branding",
        "mvp",
        "deploy",
        "launch",
        "feedback",
        "ops",
    ]
    assert [definition.order for definition in list_stage_definitions()] == list(range(1, 9))


def test_initialize_idea_starts_with_greeting() -> None:
    idea = initialize_idea("idea-1")

    assert idea.current_stage is VentureStage.IDEATION
    assert len(idea.messages) == 1
    assert idea.messages[0].role is Role.ASSISTANT
    assert idea.messages[0].content == GREETING
    assert idea.takeaways.refined_idea is None


@pytest.mark.parametrize(
    ("stage", "expected"),
    [
        (VentureStage.IDEATION, VentureStage.VALIDATION),
        (VentureStage.DEPLOY, VentureStage.LAUNCH),
        (VentureStage.OPS, VentureStage.OPS),
    ],
)
def test_next_stage_clamps_at_the_end(stage: VentureStage, expected: VentureStage) -> None:
    assert next_stage(stage) is expected


def test_advance_stage_returns_a_copy() -> None:
    idea = initialize_idea("idea-1")

    advanced = advance_stage(idea)

    assert advanced.current_stage is VentureStage.VALIDATION
    assert idea.current_stage is VentureStage.IDEATION


def test_apply_suggestion_only_moves_forward() -> None:
    idea = reset_stage(initialize_idea("idea-1"), VentureStage.BRANDING)

    assert apply_suggestion(idea, VentureStage.MVP).current_stage is VentureStage.MVP
    assert apply_suggestion(idea, VentureStage.VALIDATION).current_stage is VentureStage.BRANDING
    assert apply_suggestion(idea, VentureStage.BRANDING).current_stage is VentureStage.BRANDING
    assert apply_suggestion(idea, None) is idea


def test_reset_stage_defaults_to_ideation() -> None:
    idea = reset_stage(initialize_idea("idea-1"), VentureStage.DEPLOY)

    assert reset_stage(idea).current_stage is VentureStage.IDEATION


def test_record_result_merges_takeaways_without_moving() -> None:
    idea = initialize_idea("idea-1")
    result = StageResult(
        reply="Let's move to branding.",
        refined_idea="Dog walks on demand.",
        next_stage=VentureStage.BRANDING,
        plan="# Plan",
    )

    updated = record_result(idea, result)

    assert updated.takeaways.refined_idea == "Dog walks on demand."
    assert updated.takeaways.final_plan == "# Plan"
    assert updated.current_stage is VentureStage.IDEATION
    assert idea.takeaways.refined_idea is None


def test_record_result_without_takeaways_is_a_no_op() -> None:
    idea = initialize_idea("idea-1")

    assert record_result(idea, StageResult(reply="Hello")) is idea


def test_idea_wire_format_is_camel_case() -> None:
    wire = advance_stage(initialize_idea("idea-1")).to_wire()

    assert wire["currentStage"] == "validation"
    assert wire["messages"][0]["role"] == "assistant"
    assert wire["deployed"] is False
    assert "pagesUrl" not in wire
