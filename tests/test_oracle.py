# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import json

import httpx
import pytest

from attachtranslate.agents import oracle as oracle_module
from attachtranslate.agents.oracle import TOOL_NAME, LLMOracle, OracleConfig
from attachtranslate.errors import OracleError


def _tool_response(translation: str, reading: str = "") -> httpx.Response:
    arguments = {
        "translation": translation,
        "source_language": "ja",
        "target_language": "en",
        "style": "casual",
        "slang": False,
        "reading": reading,
    }
    return httpx.Response(200, json={
        "choices": [{"message": {"tool_calls": [
            {"function": {"name": TOOL_NAME, "arguments": json.dumps(arguments)}},
        ]}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 5},
    })


@pytest.fixture
def built_clients(monkeypatch):
    """Routes every client the oracle builds through a mock transport and keeps them."""
    clients = []
    real_client = httpx.Client

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        text = body["messages"][-1]["content"]
        if text == "Boom":
            return httpx.Response(429, json={"error": {"message": "slow down"}})
        return _tool_response(text.upper(), reading="neko" if text == "猫" else "")

    def build(**kwargs):
        client = real_client(transport=httpx.MockTransport(handler), **kwargs)
        clients.append(client)
        return client

    monkeypatch.setattr(oracle_module.httpx, "Client", build)
    return clients


def _oracle() -> LLMOracle:
    return LLMOracle(OracleConfig(base_url="https://llm.local/v1/", api_key="sk-test", model_id="m"))


def test_calls_share_one_client(built_clients):
    oracle = _oracle()
    first = oracle.translate("hello", "auto", "en")
    second = oracle.translate("猫", "ja", "en")

    assert first.translated == "HELLO"
    assert second.reading == "neko"
    assert len(built_clients) == 1
    assert oracle.token_counter.input_tokens == 24


def test_close_releases_the_client_and_the_next_call_reopens_it(built_clients):
    oracle = _oracle()
    oracle.translate("hello", "auto", "en")
    oracle.close()

    assert built_clients[0].is_closed
    oracle.translate("again", "auto", "en")
    assert len(built_clients) == 2


def test_provider_error_is_raised(built_clients):
    with pytest.raises(OracleError, match="slow down"):
        _oracle().translate("Boom", "auto", "en")
