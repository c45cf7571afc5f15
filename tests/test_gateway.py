from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from typing import Any, Dict, List

import httpx
import openai
import pytest

from venture_pilot.config import Settings
from venture_pilot.errors import UpstreamError
from venture_pilot.gateway import ModelGateway
from venture_pilot.prompts import MVP_PLAN_FUNCTION
from venture_pilot.schemas import ChatMessage, Role

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _completion(content: str | None = None, arguments: str | None = None) -> SimpleNamespace:
    tool_calls = None
    if arguments is not None:
        tool_calls = [SimpleNamespace(function=SimpleNamespace(name="extract_mvp_plan", arguments=arguments))]
    message = SimpleNamespace(content=content, tool_calls=tool_calls, function_call=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, outcome: Any, **options: Any) -> None:
        self.options = options
        self.requests: List[Dict[str, Any]] = []
        self._outcome = outcome
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **request: Any) -> Any:
        self.requests.append(request)
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


def _gateway(outcome: Any, **settings: Any) -> tuple[ModelGateway, List[FakeClient]]:
    clients: List[FakeClient] = []

    def factory(**options: Any) -> FakeClient:
        client = FakeClient(outcome, **options)
        clients.append(client)
        return client

    config = Settings(**{"openai_api_key": "sk-test", **settings})
    return ModelGateway(config, client_factory=factory), clients


MESSAGES = [{"role": "system", "content": "Be brief."}, {"role": "user", "content": "Hello"}]


def test_chat_returns_first_choice_text() -> None:
    gateway, clients = _gateway(_completion("Hi there"), request_timeout=12.0)

    assert gateway.chat(MESSAGES) == "Hi there"

    (client,) = clients
    assert client.options == {"api_key": "sk-test", "max_retries": 0, "timeout": 12.0}
    request = client.requests[0]
    assert request["model"] == "gpt-4o"
    assert request["temperature"] == 0.7
    assert request["messages"] == MESSAGES
    assert "tools" not in request


def test_chat_reuses_the_client() -> None:
    gateway, clients = _gateway(_completion("ok"))

    gateway.chat(MESSAGES)
    gateway.chat([ChatMessage(role=Role.USER, content="Again")], model="gpt-4o-mini", temperature=0.0)

    assert len(clients) == 1
    second = clients[0].requests[1]
    assert second["model"] == "gpt-4o-mini"
    assert second["temperature"] == 0.0
    assert second["messages"] == [{"role": "user", "content": "Again"}]


def test_chat_sends_functions_as_tools_and_reads_arguments() -> None:
    gateway, clients = _gateway(_completion(None, arguments='{"mvp": {}}'))

    assert gateway.chat(MESSAGES, functions=[MVP_PLAN_FUNCTION]) == '{"mvp": {}}'
    assert clients[0].requests[0]["tools"] == [{"type": "function", "function": MVP_PLAN_FUNCTION}]


def test_chat_returns_empty_string_without_choices() -> None:
    gateway, _ = _gateway(SimpleNamespace(choices=[]))

    assert gateway.chat(MESSAGES) == ""


def test_chat_rejects_empty_or_malformed_messages() -> None:
    gateway, clients = _gateway(_completion("unused"))

    with pytest.raises(ValueError):
        gateway.chat([])
    with pytest.raises(ValueError):
        gateway.chat([{"role": "user"}])
    assert clients == []


@pytest.mark.parametrize("temperature", [-0.1, 2.5])
def test_chat_rejects_out_of_range_temperature(temperature: float) -> None:
    gateway, _ = _gateway(_completion("unused"))

    with pytest.raises(ValueError):
        gateway.chat(MESSAGES, temperature=temperature)


def test_missing_api_key_is_an_upstream_error() -> None:
    gateway, clients = _gateway(_completion("unused"), openai_api_key=None)

    with pytest.raises(UpstreamError) as excinfo:
        gateway.chat(MESSAGES)

    assert excinfo.value.status_code == 500
    assert "not configured" in excinfo.value.message
    assert clients == []


def test_status_errors_keep_the_provider_body() -> None:
    response = httpx.Response(429, text='{"error": "rate limited"}', request=httpx.Request("POST", OPENAI_URL))
    error = openai.APIStatusError("Rate limited", response=response, body=None)
    gateway, _ = _gateway(error)

    with pytest.raises(UpstreamError) as excinfo:
        gateway.chat(MESSAGES)

    assert excinfo.value.message == 'OpenAI error: {"error": "rate limited"}'
    assert excinfo.value.body == '{"error": "rate limited"}'


def test_connection_errors_become_upstream_errors() -> None:
    error = openai.APIConnectionError(request=httpx.Request("POST", OPENAI_URL))
    gateway, _ = _gateway(error)

    with pytest.raises(UpstreamError) as excinfo:
        gateway.chat(MESSAGES)

    assert excinfo.value.message.startswith("OpenAI error:")


def test_concurrent_first_calls_build_one_client() -> None:
    clients: List[FakeClient] = []
    start = threading.Barrier(8)

    def slow_factory(**options: Any) -> FakeClient:
        time.sleep(0.05)
        client = FakeClient(_completion("ok"), **options)
        clients.append(client)
        return client

    gateway = ModelGateway(Settings(openai_api_key="sk-test"), client_factory=slow_factory)

    def call(_: int) -> str:
        start.wait()
        return gateway.chat(MESSAGES)

    with ThreadPoolExecutor(max_workers=8) as pool:
        replies = list(pool.map(call, range(8)))

    assert replies == ["ok"] * 8
    assert len(clients) == 1
    assert len(clients[0].requests) == 8
