# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import json

import httpx
import pytest

from attachtranslate.cacher import model_registry
from attachtranslate.cacher.metadata_cache import MODEL_CACHE_TTL, HistoryRecord, MetadataCache
from attachtranslate.errors import OracleError

T0 = 1_700_000_000.0


class Clock:
    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingFetcher:
    def __init__(self, models: list[str]):
        self.models = models
        self.calls = 0

    def __call__(self, provider: str) -> list[str]:
        self.calls += 1
        return list(self.models)


def _history(n: int) -> HistoryRecord:
    return HistoryRecord(timestamp=T0 + n, source_lang="ja", target_lang="en", excerpt=f"entry {n}")


def test_model_list_is_served_from_cache_within_ttl(tmp_path):
    clock = Clock()
    fetcher = CountingFetcher(["gpt-b", "gpt-a"])
    cache = MetadataCache(tmp_path, fetcher=fetcher, clock=clock)

    assert cache.get_or_refresh("openai") == ["gpt-a", "gpt-b"]
    clock.now = T0 + MODEL_CACHE_TTL - 60
    assert cache.get_or_refresh("openai") == ["gpt-a", "gpt-b"]
    assert fetcher.calls == 1

    clock.now = T0 + MODEL_CACHE_TTL + 60
    fetcher.models = ["gpt-c"]
    assert cache.get_or_refresh("openai") == ["gpt-c"]
    assert fetcher.calls == 2


def test_force_refresh_ignores_ttl(tmp_path):
    fetcher = CountingFetcher(["m"])
    cache = MetadataCache(tmp_path, fetcher=fetcher, clock=Clock())
    cache.get_or_refresh("gemini")
    cache.get_or_refresh("gemini", force=True)
    assert fetcher.calls == 2


def test_model_list_survives_reload(tmp_path):
    clock = Clock()
    MetadataCache(tmp_path, fetcher=CountingFetcher(["x", "y"]), clock=clock).get_or_refresh("claude")
    saved = json.loads((tmp_path / "models_claude.json").read_text(encoding="utf-8"))
    assert saved == {"fetched_at": T0, "models": ["x", "y"]}

    fetcher = CountingFetcher(["z"])
    reloaded = MetadataCache(tmp_path, fetcher=fetcher, clock=clock).load()
    assert reloaded.get_or_refresh("claude") == ["x", "y"]
    assert fetcher.calls == 0


def test_missing_fetcher_raises(tmp_path):
    with pytest.raises(RuntimeError):
        MetadataCache(tmp_path).get_or_refresh("openai")


def test_history_is_fifo_bounded(tmp_path):
    cache = MetadataCache(tmp_path, history_limit=3)
    for n in range(5):
        cache.record_history(_history(n))
    assert [h.excerpt for h in cache.histories()] == ["entry 2", "entry 3", "entry 4"]


def test_history_round_trips_through_flush(tmp_path):
    cache = MetadataCache(tmp_path, history_limit=10)
    cache.record_history(_history(1))
    cache.flush()
    loaded = MetadataCache(tmp_path, history_limit=10).load()
    assert loaded.histories() == [_history(1)]


def test_reload_applies_a_smaller_limit(tmp_path):
    cache = MetadataCache(tmp_path, history_limit=10)
    for n in range(4):
        cache.record_history(_history(n))
    cache.flush()
    assert [h.excerpt for h in MetadataCache(tmp_path, history_limit=2).load().histories()] == ["entry 2", "entry 3"]


def test_unreadable_history_is_ignored(tmp_path):
    (tmp_path / "history.json").write_text("[{broken", encoding="utf-8")
    assert MetadataCache(tmp_path).load().histories() == []


def _mock_client(monkeypatch, handler):
    real_client = httpx.Client
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(model_registry.httpx, "Client", lambda **kwargs: real_client(transport=transport, **kwargs))


def test_fetch_openai_models(monkeypatch):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"data": [{"id": "b"}, {"id": "a"}, {"id": "a"}]})

    _mock_client(monkeypatch, handler)
    assert model_registry.fetch_models("openai", "sk-test", base_url="https://llm.local/v1/") == ["a", "b"]
    assert seen == {"url": "https://llm.local/v1/models", "auth": "Bearer sk-test"}


def test_fetch_gemini_strips_prefix(monkeypatch):
    _mock_client(monkeypatch, lambda request: httpx.Response(
        200, json={"models": [{"name": "models/gemini-pro"}, {"name": "models/gemini-flash"}]}))
    assert model_registry.fetch_models("gemini", "key") == ["gemini-flash", "gemini-pro"]


def test_fetch_provider_error_is_reported_verbatim(monkeypatch):
    _mock_client(monkeypatch, lambda request: httpx.Response(
        401, json={"error": {"message": "invalid x-api-key", "type": "authentication_error"}}))
    with pytest.raises(OracleError, match="invalid x-api-key \\| type: authentication_error"):
        model_registry.fetch_models("claude", "bad")


def test_fetch_requires_api_key():
    with pytest.raises(OracleError):
        model_registry.fetch_models("openai", None)
