from __future__ import annotations

from typing import Any, Dict, List

import pytest

from venture_pilot.config import Settings, get_settings


class FakeGateway:
    """Stand-in for ``ModelGateway`` that replays canned completions."""

    def __init__(self, *replies: Any) -> None:
        self.replies: List[Any] = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def chat(self, messages, *, model=None, temperature=None, functions=None) -> str:
        self.calls.append(
            {
                "messages": [dict(message) for message in messages],
                "model": model,
                "temperature": temperature,
                "functions": functions,
            }
        )
        if not self.replies:
            return ""
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def clear_settings_cache() -> None:
    """Ensure cached settings do not leak between tests."""

    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="test-key")
