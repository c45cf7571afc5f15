"""Thin transport around the OpenAI chat completions API."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List, Mapping, Sequence

from openai import APIError, APIStatusError, OpenAI

from .config import Settings
from .errors import UpstreamError
from .schemas import ChatMessage

logger = logging.getLogger(__name__)

MessageLike = ChatMessage | Mapping[str, Any]
ClientFactory = Callable[..., OpenAI]


def _to_payload(messages: Sequence[MessageLike]) -> List[Dict[str, str]]:
    if not messages:
        raise ValueError("messages must not be empty")
    payload: List[Dict[str, str]] = []
    for index, message in enumerate(messages):
        if isinstance(message, ChatMessage):
            payload.append(message.to_payload())
            continue
        role = message.get("role") if isinstance(message, Mapping) else None
        content = message.get("content") if isinstance(message, Mapping) else None
        if not role or not isinstance(content, str):
            raise ValueError(f"message {index} needs both role and content")
        payload.append({"role": str(getattr(role, "value", role)), "content": content})
    return payload


def _completion_text(response: Any) -> str:
    """Return the first choice's text, or the arguments of a function call.

    Unexpected payload shapes yield an empty string; callers treat that as
    "no content".
    """

    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    if message is None:
        return ""

    content = getattr(message, "content", None)
    if isinstance(content, str) and content:
        return content

    for call in getattr(message, "tool_calls", None) or []:
        function = getattr(call, "function", None)
        arguments = getattr(function, "arguments", None)
        if isinstance(arguments, str) and arguments:
            return arguments

    function_call = getattr(message, "function_call", None)
    arguments = getattr(function_call, "arguments", None)
    if isinstance(arguments, str):
        return arguments
    return ""


class ModelGateway:
    """Issue exactly one chat completion per call; no retries."""

    def __init__(self, settings: Settings, client_factory: ClientFactory = OpenAI) -> None:
        self._settings = settings
        self._client_factory = client_factory
        self._client: OpenAI | None = None
        self._client_lock = threading.Lock()

    def _get_client(self) -> OpenAI:
        api_key = self._settings.openai_api_key
        if not api_key:
            raise UpstreamError("OpenAI API key is not configured")
        with self._client_lock:
            if self._client is None:
                self._client = self._client_factory(
                    api_key=api_key,
                    max_retries=0,
                    timeout=self._settings.request_timeout,
                )
        return self._client

    def chat(
        self,
        messages: Sequence[MessageLike],
        *,
        model: str | None = None,
        temperature: float | None = None,
        functions: Sequence[Dict[str, Any]] | None = None,
    ) -> str:
        """Send *messages* and return the raw completion text."""

        payload = _to_payload(messages)
        resolved_temperature = self._settings.default_temperature if temperature is None else temperature
        if not 0.0 <= resolved_temperature <= 2.0:
            raise ValueError(f"temperature {resolved_temperature} is outside [0, 2]")

        request: Dict[str, Any] = {
            "model": model or self._settings.model,
            "messages": payload,
            "temperature": resolved_temperature,
        }
        if functions:
            request["tools"] = [{"type": "function", "function": dict(fn)} for fn in functions]

        client = self._get_client()
        logger.debug("chat completion model=%s messages=%d", request["model"], len(payload))
        try:
            response = client.chat.completions.create(**request)
        except APIStatusError as exc:
            body = exc.response.text if exc.response is not None else None
            logger.warning("OpenAI returned status %s", exc.status_code)
            raise UpstreamError(f"OpenAI error: {body or exc.message}", body=body) from exc
        except APIError as exc:
            logger.warning("OpenAI request failed: %s", exc.message)
            raise UpstreamError(f"OpenAI error: {exc.message}") from exc

        return _completion_text(response)
