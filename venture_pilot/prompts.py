"""Stage-specific prompt construction.

Every builder here is a pure function of its inputs: the same stage and the
same history always produce the same message list.
"""

from __future__ import annotations

from textwrap import dedent
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from .schemas import ChatMessage, Role, VentureStage

Message = Dict[str, str]

COPILOT_PERSONA = "You are VenturePilot, an AI startup co-pilot."

REFINED_IDEA_INSTRUCTION = dedent(
    """
    Always end your reply with a labeled one-sentence summary:
    Refined Idea:
    <one-line summary here>
    """
).strip()

STAGE_PROMPTS: Dict[VentureStage, str] = {
    VentureStage.IDEATION: dedent(
        """
        You are an AI startup operator. Your job is to help the user clarify their idea just enough to move forward to building it.

        Minimize back-and-forth. Focus on extracting:
        - The target user
        - The core value prop
        - The basic UX concept (if web-based)

        When the idea is clear, say exactly "Let's move to the validation stage."
        """
    ).strip(),
    VentureStage.VALIDATION: dedent(
        """
        You're validating a business idea. Quickly summarize:
        - Audience
        - Problem being solved
        - Market signal or need

        If the idea seems viable, say exactly "Let's move to branding."
        """
    ).strip(),
    VentureStage.BRANDING: dedent(
        """
        You are generating branding for a startup MVP that will be deployed shortly.

        Suggest:
        - A concise brand name
        - A tagline that communicates the benefit
        - Optional: colors or logo idea

        Do not delay. Once the branding is settled, say exactly "Let's start the MVP."
        """
    ).strip(),
    VentureStage.MVP: dedent(
        """
        You are an AI startup builder planning a one-page web MVP with both frontend and backend components.

        Describe:
        - The landing page layout (hero, value prop, 3 benefits, call to action)
        - The backend endpoints the page needs
        - The data each endpoint accepts and returns

        Do NOT suggest hiring devs, choosing a tech stack, or asking philosophical questions.
        When the plan is complete, say exactly "Let's move to deployment."
        """
    ).strip(),
    VentureStage.DEPLOY: dedent(
        """
        You are supervising the deployment of a freshly generated MVP.

        Confirm what is being published, list anything the founder must provide, and keep it short.
        When the site is live, say exactly "Let's move to the launch."
        """
    ).strip(),
    VentureStage.LAUNCH: dedent(
        """
        You are a go-to-market launch architect.

        Propose a launch plan: the first audience to reach, three channels, and the success metric for week one.
        """
    ).strip(),
    VentureStage.FEEDBACK: dedent(
        """
        You are a product coach reviewing early customer feedback.

        Group the feedback into themes, call out the one change with the highest impact, and say what to measure next.
        """
    ).strip(),
    VentureStage.OPS: dedent(
        """
        You are an operator helping a founder run a small live product.

        Focus on recurring tasks, automation opportunities, and the risks to watch each week.
        """
    ).strip(),
}

CANVAS_INSTRUCTION = dedent(
    """
    Return a business canvas for the idea below as a JSON object with exactly these keys:
    {
      "summary": string,
      "requirements": [string],
      "questions": [string]
    }
    "requirements" should list at least three elaborated requirements and "questions" the clarifying questions a cofounder would ask.
    Respond ONLY with valid JSON. Do not include markdown or commentary.
    """
).strip()

BRANDING_INSTRUCTION = dedent(
    """
    Generate a concise branding kit in JSON format with the following keys:
    name - a catchy brand name (string)
    tagline - a short tagline (string)
    colors - an array of exactly 3 hex color codes (array)
    logoDesc - a brief logo design prompt (string)

    Respond ONLY with valid JSON.
    """
).strip()

MVP_PLAN_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "mvp": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "description": {"type": "string"},
                "features": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "feature": {"type": "string"},
                            "description": {"type": "string"},
                        },
                        "required": ["feature", "description"],
                    },
                    "minItems": 1,
                },
                "technology": {"type": "string"},
                "targetAudience": {"type": "string"},
                "businessModel": {"type": "string"},
                "launchPlan": {"type": "string"},
                "visualStyle": {"type": "string"},
                "userFlow": {"type": "string"},
                "dataFlow": {"type": "string"},
                "keyComponents": {"type": "array", "items": {"type": "string"}},
                "exampleInteractions": {"type": "array", "items": {"type": "string"}},
            },
            "required": ["name", "description", "features", "technology"],
        },
        "backendEndpoints": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "path": {"type": "string"},
                    "method": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["path", "method", "description"],
            },
        },
    },
    "required": ["mvp"],
}

MVP_PLAN_FUNCTION: Dict[str, Any] = {
    "name": "extract_mvp_plan",
    "description": "Extract an MVP plan from conversation history",
    "parameters": MVP_PLAN_SCHEMA,
}


def _coerce_message(item: Any) -> Message | None:
    if isinstance(item, ChatMessage):
        return item.to_payload()
    if not isinstance(item, Mapping):
        return None
    role = item.get("role")
    content = item.get("content")
    role_value = role.value if isinstance(role, Role) else role
    if role_value not in {member.value for member in Role} or not isinstance(content, str):
        return None
    return {"role": role_value, "content": content}


def sanitize_messages(messages: Iterable[Any]) -> List[Message]:
    """Reduce every message to ``role`` and ``content``, keeping transcript order.

    Elements without a known role or a string content are dropped.
    """

    sanitized: List[Message] = []
    for item in messages:
        message = _coerce_message(item)
        if message is not None:
            sanitized.append(message)
    return sanitized


def system_prompt_for(stage: VentureStage) -> str:
    return f"{STAGE_PROMPTS[stage]}\n\n{REFINED_IDEA_INSTRUCTION}"


def build_prompt(stage: VentureStage, prior_messages: Iterable[Any]) -> List[Message]:
    """Prepend the stage's system prompt to the sanitized history."""

    return [{"role": Role.SYSTEM.value, "content": system_prompt_for(stage)}, *sanitize_messages(prior_messages)]


def build_idea_prompts(prompt: str) -> Tuple[List[Message], List[Message]]:
    """Return the (micro-ideas, canvas) prompt pair for the idea stage."""

    seed = prompt.strip()
    ideas_messages = [
        {"role": Role.SYSTEM.value, "content": COPILOT_PERSONA},
        {"role": Role.USER.value, "content": f"Generate 5 AI-enabled micro-business ideas based on: {seed}"},
    ]
    canvas_messages = [
        {"role": Role.SYSTEM.value, "content": f"{COPILOT_PERSONA} Respond ONLY with valid JSON."},
        {"role": Role.USER.value, "content": f"{CANVAS_INSTRUCTION}\n\nIdea: {seed}"},
    ]
    return ideas_messages, canvas_messages


def build_validation_prompt(idea: str) -> List[Message]:
    system = (
        "Startup validation with: market, audience, model, competitors, risks.\n"
        f"{STAGE_PROMPTS[VentureStage.VALIDATION]}\n\n{REFINED_IDEA_INSTRUCTION}"
    )
    return [
        {"role": Role.SYSTEM.value, "content": system},
        {"role": Role.USER.value, "content": f"Validate: {idea.strip()}"},
    ]


def build_branding_prompt(idea: str) -> List[Message]:
    return [
        {"role": Role.SYSTEM.value, "content": COPILOT_PERSONA},
        {"role": Role.USER.value, "content": f"{BRANDING_INSTRUCTION}\nIdea: {idea.strip()}"},
    ]


def format_transcript(messages: Iterable[Any]) -> str:
    """Flatten a transcript into ``ROLE: content`` blocks."""

    return "\n\n".join(
        f"{message['role'].upper()}: {message['content']}" for message in sanitize_messages(messages)
    )


def build_mvp_plan_prompt(messages: Iterable[Any]) -> List[Message]:
    system = "\n".join(
        [
            "You are a startup cofounder assistant AI. From the following chat history, extract a complete MVP plan",
            "and the list of backend API endpoints required to implement it.",
            "When possible, call the function extract_mvp_plan with your answer as arguments.",
            "If a field isn't obvious, infer a reasonable value.",
            'Avoid vague names like "MyApp" or "CoolTool"; infer a meaningful product name if not given.',
            "Otherwise output valid JSON ONLY with the keys mvp and backendEndpoints. Do not include markdown.",
        ]
    )
    return [
        {"role": Role.SYSTEM.value, "content": system},
        {"role": Role.USER.value, "content": format_transcript(messages)},
    ]


def build_business_plan_prompt(messages: Iterable[Any]) -> List[Message]:
    system = dedent(
        """
        Based on the full context of the conversation, generate a complete business plan.

        Label it:
        Business Plan:
        <entire structured content>

        Do not ask questions. Just deliver the plan.
        """
    ).strip()
    return [{"role": Role.SYSTEM.value, "content": system}, *sanitize_messages(messages)]
