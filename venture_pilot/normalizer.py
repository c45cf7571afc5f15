"""Turn raw model completions into typed stage results.

Nothing in this module raises on malformed model output. JSON stages degrade
to a well-typed fallback value and free-text stages always produce a reply and,
where possible, a refined idea.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Tuple

from pydantic import ValidationError

from .errors import MalformedModelOutput
from .prompts import sanitize_messages
from .schemas import Branding, Canvas, MvpPlan, Role, StageResult, VentureStage

logger = logging.getLogger(__name__)

NO_REPLY = "No reply."
SUMMARY_MIN_LINE_LENGTH = 60
SUMMARY_MAX_CHARS = 200

# The label must open its line; markdown decoration before it is allowed.
_REFINED_LABEL_RE = re.compile(r"^[^\w\n]*refined idea:", re.IGNORECASE | re.MULTILINE)
_REFINED_IDEA_RE = re.compile(
    r"^[^\w\n]*refined idea:\**[ \t]*(?:\r?\n[ \t]*)*(?P<body>\S.*)", re.IGNORECASE | re.MULTILINE
)
_BUSINESS_PLAN_RE = re.compile(r"business plan:\**[ \t]*\n?(?P<body>[\s\S]+)", re.IGNORECASE)

# Checked in order; the first match wins.
NEXT_STAGE_PATTERNS: Tuple[Tuple[VentureStage, re.Pattern[str]], ...] = (
    (VentureStage.VALIDATION, re.compile(r"\bmove to (?:the )?validation\b", re.IGNORECASE)),
    (VentureStage.BRANDING, re.compile(r"\bmove to (?:the )?branding\b", re.IGNORECASE)),
    (VentureStage.MVP, re.compile(r"\b(?:move to|start) (?:the )?mvp\b", re.IGNORECASE)),
    (VentureStage.DEPLOY, re.compile(r"\bmove to (?:the )?deploy(?:ment)?\b", re.IGNORECASE)),
    (VentureStage.LAUNCH, re.compile(r"\bmove to (?:the )?launch\b", re.IGNORECASE)),
)


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def strip_code_fence(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        lines = [line.rstrip() for line in text.splitlines()]
        if len(lines) >= 2:
            # drop opening fence (e.g., ```json)
            lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text


def load_json_object(raw_text: str) -> Dict[str, Any]:
    """Parse a JSON object out of model text or raise ``MalformedModelOutput``."""

    text = strip_code_fence(raw_text or "")
    candidates = [text]
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start and (start, end) != (0, len(text) - 1):
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data
    raise MalformedModelOutput("model output is not a JSON object")


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def parse_canvas(raw_text: str) -> Canvas:
    """Parse the idea canvas, falling back to ``summary=raw_text`` and empty lists."""

    try:
        data = load_json_object(raw_text)
    except MalformedModelOutput:
        logger.info("canvas output was not JSON; using raw text as summary")
        return Canvas(summary=raw_text or "", requirements=[], questions=[])

    summary = data.get("summary")
    return Canvas(
        summary=summary if isinstance(summary, str) else raw_text,
        requirements=_string_list(data.get("requirements")),
        questions=_string_list(data.get("questions")),
    )


def parse_branding(raw_text: str) -> Branding:
    try:
        data = load_json_object(raw_text)
    except MalformedModelOutput:
        logger.info("branding output was not JSON; returning raw text as tagline")
        return Branding(tagline=(raw_text or "").strip())

    def text_field(*keys: str) -> str:
        for key in keys:
            value = data.get(key)
            if isinstance(value, str):
                return value
        return ""

    return Branding(
        name=text_field("name"),
        tagline=text_field("tagline"),
        colors=_string_list(data.get("colors")),
        logo_desc=text_field("logoDesc", "logo_desc"),
    )


def parse_mvp_plan(raw_text: str) -> MvpPlan | None:
    """Validate an extracted MVP plan; ``None`` when it is unusable."""

    try:
        return MvpPlan.model_validate(load_json_object(raw_text))
    except MalformedModelOutput:
        logger.info("mvp plan output was not JSON")
    except ValidationError as exc:
        logger.info("mvp plan missing required fields: %s", exc.error_count())
    return None


# ---------------------------------------------------------------------------
# Free-text extraction
# ---------------------------------------------------------------------------


def extract_refined_idea(text: str) -> str | None:
    """Return the first line after a ``Refined Idea:`` label, or ``None``."""

    match = _REFINED_IDEA_RE.search(text or "")
    if not match:
        return None
    refined = match.group("body").strip()
    return refined or None


def extract_summary(text: str) -> str:
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    for line in lines:
        if "the idea is" in line.lower():
            return line
    for line in lines:
        if len(line) > SUMMARY_MIN_LINE_LENGTH:
            return line
    return text[:SUMMARY_MAX_CHARS]


def fallback_summary(messages: Iterable[Any], reply: str) -> str:
    """Summarize the assistant side of the transcript, including *reply*."""

    assistant_text = [
        message["content"] for message in sanitize_messages(messages) if message["role"] == Role.ASSISTANT.value
    ]
    assistant_text.append(reply)
    return extract_summary("\n\n".join(assistant_text))


def detect_next_stage_suggestion(text: str) -> VentureStage | None:
    for stage, pattern in NEXT_STAGE_PATTERNS:
        if pattern.search(text or ""):
            return stage
    return None


def extract_business_plan(text: str) -> str:
    match = _BUSINESS_PLAN_RE.search(text or "")
    if match and match.group("body").strip():
        return match.group("body").strip()
    return (text or "").strip()


def _strip_refined_block(text: str) -> str:
    match = _REFINED_LABEL_RE.search(text)
    if not match:
        return text
    remainder = text[: match.start()].rstrip()
    return remainder or text


def normalize_reply(raw_text: str, messages: Iterable[Any] = ()) -> StageResult:
    """Build a ``StageResult`` from a free-text completion."""

    text = (raw_text or "").strip()
    if not text:
        return StageResult(reply=NO_REPLY, refined_idea=NO_REPLY)

    refined = extract_refined_idea(text)
    if refined is None:
        refined = fallback_summary(messages, text)
    return StageResult(
        reply=_strip_refined_block(text),
        refined_idea=refined,
        next_stage=detect_next_stage_suggestion(text),
    )
