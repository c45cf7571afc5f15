"""Stage transitions for a caller-owned ``VentureIdea``.

The orchestration core never moves an idea on its own. Callers advance an idea
explicitly or choose to apply a suggestion returned by the normalizer. Every
helper returns an updated copy and leaves its input untouched.
"""

from __future__ import annotations

from typing import List

from .schemas import ChatMessage, Role, StageDefinition, StageResult, VentureIdea, VentureStage

GREETING = (
    "Hi! I'm your AI cofounder. Let's build something together.\n\n"
    "To start, tell me about the startup idea you're exploring, even if it's rough."
)

STAGE_ORDER: List[VentureStage] = list(VentureStage)

STAGE_DESCRIPTIONS = {
    VentureStage.IDEATION: ("Ideation", "Clarify the target user, value proposition and basic concept."),
    VentureStage.VALIDATION: ("Validation", "Check audience, problem and market signal."),
    VentureStage.BRANDING: ("Branding", "Pick a name, tagline and palette."),
    VentureStage.MVP: ("MVP", "Extract a buildable MVP plan from the conversation."),
    VentureStage.DEPLOY: ("Deploy", "Publish the generated MVP."),
    VentureStage.LAUNCH: ("Launch", "Plan the first audience, channels and metrics."),
    VentureStage.FEEDBACK: ("Feedback", "Turn early feedback into the next change."),
    VentureStage.OPS: ("Operate", "Run the live product week to week."),
}


def list_stage_definitions() -> List[StageDefinition]:
    """Return UI-friendly descriptors for all stages."""

    return [
        StageDefinition(id=stage, label=label, description=description, order=stage.order)
        for stage, (label, description) in sorted(STAGE_DESCRIPTIONS.items(), key=lambda item: item[0].order)
    ]


def initialize_idea(idea_id: str, greeting: str = GREETING) -> VentureIdea:
    return VentureIdea(
        id=idea_id,
        messages=[ChatMessage(role=Role.ASSISTANT, content=greeting)],
        current_stage=VentureStage.IDEATION,
    )


def next_stage(stage: VentureStage) -> VentureStage:
    """Return the stage one position forward, clamped at the final stage."""

    index = STAGE_ORDER.index(stage)
    return STAGE_ORDER[min(index + 1, len(STAGE_ORDER) - 1)]


def advance_stage(idea: VentureIdea) -> VentureIdea:
    return idea.model_copy(update={"current_stage": next_stage(idea.current_stage)})


def apply_suggestion(idea: VentureIdea, suggestion: VentureStage | None) -> VentureIdea:
    """Move to *suggestion* when it lies ahead of the current stage.

    Backward and same-stage suggestions are ignored; going back is only
    possible through ``reset_stage``.
    """

    if suggestion is None or suggestion.order <= idea.current_stage.order:
        return idea
    return idea.model_copy(update={"current_stage": suggestion})


def reset_stage(idea: VentureIdea, stage: VentureStage = VentureStage.IDEATION) -> VentureIdea:
    return idea.model_copy(update={"current_stage": stage})


def record_result(idea: VentureIdea, result: StageResult) -> VentureIdea:
    """Merge a stage result into the takeaways without touching the stage."""

    updates = {}
    if result.refined_idea:
        updates["refined_idea"] = result.refined_idea
    if result.plan:
        updates["final_plan"] = result.plan
    if not updates:
        return idea
    takeaways = idea.takeaways.model_copy(update=updates)
    return idea.model_copy(update={"takeaways": takeaways})
