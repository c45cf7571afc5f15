"""Stage routing: validate input, build prompts, call the model, normalize."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping
from uuid import uuid4

from pydantic import ValidationError

from .config import Settings
from .errors import BadRequest, NotFound, StageError, UpstreamError
from .gateway import ModelGateway
from .normalizer import (
    NO_REPLY,
    extract_business_plan,
    normalize_reply,
    parse_branding,
    parse_canvas,
    parse_mvp_plan,
)
from .prompts import (
    MVP_PLAN_FUNCTION,
    build_branding_prompt,
    build_business_plan_prompt,
    build_idea_prompts,
    build_mvp_plan_prompt,
    build_prompt,
    build_validation_prompt,
    sanitize_messages,
)
from .schemas import Branding, MvpPlan, VentureStage

logger = logging.getLogger(__name__)

PROMPT_ERROR = "Missing or invalid prompt"
IDEA_ERROR = "Missing or invalid idea"
MESSAGES_ERROR = "Missing or invalid messages"
BRANDING_ERROR = "Invalid branding"
PUBLISHING_DISABLED_NOTE = "Publishing is not configured; the plan is ready for manual deployment."


# ---------------------------------------------------------------------------
# Collaborators and context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PublishRequest:
    """Everything an external publisher needs to provision and deploy an MVP."""

    idea_id: str
    plan: MvpPlan
    branding: Branding | None
    settings: Settings


@dataclass(frozen=True)
class PublishResult:
    pages_url: str
    repo_url: str | None = None


Publisher = Callable[[PublishRequest], PublishResult]


@dataclass(frozen=True)
class PipelineContext:
    """Per-process dependencies handed to every stage handler."""

    settings: Settings
    gateway: ModelGateway
    publisher: Publisher | None = None


@dataclass(frozen=True)
class StageResponse:
    status_code: int
    body: Dict[str, Any] | None


HandlerFn = Callable[[PipelineContext, Mapping[str, Any]], Dict[str, Any]]


@dataclass(frozen=True)
class RouteInfo:
    token: str
    description: str
    handler: HandlerFn


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------


def _require_text(body: Mapping[str, Any], *keys: str, error: str) -> str:
    for key in keys:
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    raise BadRequest(error)


def _require_messages(body: Mapping[str, Any]) -> List[Dict[str, str]]:
    messages = body.get("messages")
    if not isinstance(messages, list):
        raise BadRequest(MESSAGES_ERROR)
    sanitized = sanitize_messages(messages)
    if not sanitized:
        raise BadRequest(MESSAGES_ERROR)
    return sanitized


def _optional_branding(body: Mapping[str, Any]) -> Branding | None:
    raw = body.get("branding")
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise BadRequest(BRANDING_ERROR)
    try:
        return Branding.model_validate(raw)
    except ValidationError as exc:
        raise BadRequest(BRANDING_ERROR) from exc


def _idea_id(body: Mapping[str, Any]) -> str:
    value = body.get("ideaId")
    if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value):
        return str(value)
    return str(uuid4())


def _resolve_stage(value: Any) -> VentureStage:
    try:
        return VentureStage(value)
    except ValueError:
        return VentureStage.IDEATION


def _bullet_list(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items if item)


def format_plan_markdown(plan: MvpPlan) -> str:
    mvp = plan.mvp
    features = [f"**{feature.feature}**: {feature.description}" for feature in mvp.features]
    endpoints = [
        f"`{endpoint.method.upper()} {endpoint.path}`: {endpoint.description}" for endpoint in plan.backend_endpoints
    ]
    return "\n\n".join(
        section
        for section in [
            f"## {mvp.name}\n\n{mvp.description}",
            f"## Features\n\n{_bullet_list(features)}",
            f"## Technology\n\n{mvp.technology}",
            f"## Target Audience\n\n{mvp.target_audience}" if mvp.target_audience else "",
            f"## Backend Endpoints\n\n{_bullet_list(endpoints)}" if endpoints else "",
        ]
        if section
    )


# ---------------------------------------------------------------------------
# Stage handlers
# ---------------------------------------------------------------------------


def _handle_idea(context: PipelineContext, body: Mapping[str, Any]) -> Dict[str, Any]:
    prompt = _require_text(body, "prompt", error=PROMPT_ERROR)
    ideas_messages, canvas_messages = build_idea_prompts(prompt)

    ideas = context.gateway.chat(ideas_messages, model=context.settings.idea_model)
    canvas = parse_canvas(context.gateway.chat(canvas_messages))
    return {
        "ideaId": _idea_id(body),
        "ideas": ideas,
        "summary": canvas.summary,
        "requirements": canvas.requirements,
        "questions": canvas.questions,
    }


def _handle_validate(context: PipelineContext, body: Mapping[str, Any]) -> Dict[str, Any]:
    idea = _require_text(body, "idea", "prompt", error=IDEA_ERROR)
    raw = context.gateway.chat(build_validation_prompt(idea))
    result = normalize_reply(raw)
    return {"ideaId": _idea_id(body), "validation": raw.strip() or NO_REPLY, **result.to_wire()}


def _handle_brand(context: PipelineContext, body: Mapping[str, Any]) -> Dict[str, Any]:
    idea = _require_text(body, "idea", "prompt", error=IDEA_ERROR)
    raw = context.gateway.chat(build_branding_prompt(idea))
    branding = parse_branding(raw)
    return {"ideaId": _idea_id(body), "reply": raw.strip() or NO_REPLY, "branding": branding.to_wire()}


def _handle_assistant(context: PipelineContext, body: Mapping[str, Any]) -> Dict[str, Any]:
    messages = _require_messages(body)
    stage = _resolve_stage(body.get("stage"))
    raw = context.gateway.chat(build_prompt(stage, messages))
    return normalize_reply(raw, messages).to_wire()


def _extract_plan(context: PipelineContext, messages: List[Dict[str, str]]) -> tuple[str, MvpPlan | None]:
    raw = context.gateway.chat(build_mvp_plan_prompt(messages), functions=[MVP_PLAN_FUNCTION])
    return raw, parse_mvp_plan(raw)


def _plan_payload(idea_id: str, raw: str, plan: MvpPlan | None) -> Dict[str, Any]:
    if plan is None:
        return {"ideaId": idea_id, "reply": raw.strip() or NO_REPLY}
    return {"ideaId": idea_id, "reply": format_plan_markdown(plan), "mvpPlan": plan.to_wire()}


def _handle_mvp(context: PipelineContext, body: Mapping[str, Any]) -> Dict[str, Any]:
    messages = _require_messages(body)
    raw, plan = _extract_plan(context, messages)
    return _plan_payload(_idea_id(body), raw, plan)


def _handle_deploy(context: PipelineContext, body: Mapping[str, Any]) -> Dict[str, Any]:
    messages = _require_messages(body)
    branding = _optional_branding(body)
    idea_id = _idea_id(body)

    raw, plan = _extract_plan(context, messages)
    payload = _plan_payload(idea_id, raw, plan)
    if plan is None:
        return payload
    if context.publisher is None:
        payload["reply"] = f"{payload['reply']}\n\n{PUBLISHING_DISABLED_NOTE}"
        return payload

    request = PublishRequest(idea_id=idea_id, plan=plan, branding=branding, settings=context.settings)
    try:
        published = context.publisher(request)
    except StageError:
        raise
    except Exception as exc:
        logger.exception("Publishing idea %s failed", idea_id)
        raise UpstreamError(f"Publishing failed: {exc}") from exc

    payload["pagesUrl"] = published.pages_url
    if published.repo_url:
        payload["repoUrl"] = published.repo_url
    return payload


def _handle_generate(context: PipelineContext, body: Mapping[str, Any]) -> Dict[str, Any]:
    messages = _require_messages(body)
    raw = context.gateway.chat(build_business_plan_prompt(messages))
    result = normalize_reply(raw, messages)
    plan = extract_business_plan(raw.strip() or result.reply)
    return result.model_copy(update={"plan": plan}).to_wire()


# ---------------------------------------------------------------------------
# Registry and dispatch
# ---------------------------------------------------------------------------


ROUTES: Dict[str, RouteInfo] = {
    "idea": RouteInfo("idea", "Micro-business ideas plus a structured canvas.", _handle_idea),
    "validate": RouteInfo("validate", "Market, audience, model, competitors and risks.", _handle_validate),
    "brand": RouteInfo("brand", "Name, tagline, palette and logo prompt.", _handle_brand),
    "assistant": RouteInfo("assistant", "Stage-aware cofounder chat.", _handle_assistant),
    "mvp": RouteInfo("mvp", "Extract an MVP plan from the conversation.", _handle_mvp),
    "deploy": RouteInfo("deploy", "Extract an MVP plan and publish it.", _handle_deploy),
    "generate": RouteInfo("generate", "Full business plan from the conversation.", _handle_generate),
}


class StagePipeline:
    """Resolve a path token to its handler and turn the outcome into a response."""

    def __init__(self, settings: Settings, gateway: ModelGateway, publisher: Publisher | None = None) -> None:
        self.context = PipelineContext(settings=settings, gateway=gateway, publisher=publisher)

    def handle(self, path: str, body: Any, method: str = "POST") -> StageResponse:
        if method.upper() == "OPTIONS":
            return StageResponse(status_code=204, body=None)

        token = path.strip("/")
        route = ROUTES.get(token)
        try:
            if route is None:
                raise NotFound()
            payload = route.handler(self.context, body if isinstance(body, dict) else {})
        except StageError as exc:
            logger.info("stage %r failed with %s: %s", token, exc.status_code, exc.message)
            return StageResponse(status_code=exc.status_code, body=exc.to_body())
        return StageResponse(status_code=200, body=payload)
