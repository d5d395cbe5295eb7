# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0

import json
import logging
import os
from dataclasses import dataclass, field
from threading import Lock
from typing import Protocol, Any
from urllib.parse import urlparse

import httpx
from json_repair import json_repair

from attachtranslate.errors import OracleError
from attachtranslate.logger import global_logger

TOOL_NAME = "deliver_translation"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


@dataclass
class OracleResult:
    translated: str
    reading: str | None = None
    alternatives: list[str] = field(default_factory=list)
    correction: str | None = None


class TranslationOracle(Protocol):
    def translate(self, text: str, source_lang: str, target_lang: str,
                  style: str = "casual", slang: bool = False) -> OracleResult: ...


@dataclass(kw_only=True)
class OracleConfig:
    logger: logging.Logger = global_logger
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    model_id: str = DEFAULT_MODEL
    temperature: float = 0.2
    timeout: int = 120  # seconds (httpx read timeout)
    with_reading: bool = True
    system_proxy_enable: bool = False


def extract_token_info(response_data: dict) -> tuple[int, int]:
    usage = response_data.get("usage") or {}
    try:
        return int(usage.get("prompt_tokens", 0) or 0), int(usage.get("completion_tokens", 0) or 0)
    except (TypeError, ValueError):
        return 0, 0


class TokenCounter:
    def __init__(self):
        self.lock = Lock()
        self.input_tokens = 0
        self.output_tokens = 0

    def add(self, input_tokens: int, output_tokens: int):
        with self.lock:
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens

    def get_stats(self):
        with self.lock:
            return {
                "input_tokens": self.input_tokens,
                "output_tokens": self.output_tokens,
                "total_tokens": self.input_tokens + self.output_tokens,
            }


def format_provider_error(response: httpx.Response) -> str:
    """Render a provider error body as ``message | type: .. | code: ..``; fall back to the raw text."""
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return f"HTTP {response.status_code}: {response.text}"
    parts = [str(error.get("message") or response.text)]
    for key in ("type", "code", "status"):
        if error.get(key) is not None:
            parts.append(f"{key}: {error[key]}")
    return " | ".join(parts)


def tool_spec(with_reading: bool) -> dict:
    properties: dict[str, Any] = {
        "translation": {"type": "string"},
        "source_language": {"type": "string"},
        "target_language": {"type": "string"},
        "style": {"type": "string"},
        "slang": {"type": "boolean"},
        "alternatives": {"type": "array", "items": {"type": "string"}},
        "correction": {"type": "string"},
    }
    if with_reading:
        properties["reading"] = {
            "type": "string",
            "description": "Latin-alphabet romanization of the source text, empty when it is already Latin.",
        }
    return {
        "type": "function",
        "function": {
            "name": TOOL_NAME,
            "description": "Return the translation with metadata.",
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": ["translation", "source_language", "target_language", "style", "slang"],
            },
        },
    }


def system_prompt(source_lang: str, target_lang: str, style: str, slang: bool) -> str:
    source = "the detected source language" if source_lang in ("", "auto") else source_lang
    lines = [
        f"You are a professional translator. Translate the user's text from {source} into {target_lang}.",
        f"Use a {style} style.",
        "Keep slang and colloquialisms natural." if slang else "Avoid slang.",
        "Return only the translated text, without explanations, and preserve placeholders, numbers and markup.",
        f"Always answer by calling the `{TOOL_NAME}` tool.",
    ]
    return "\n".join(lines)


def parse_tool_arguments(raw: Any) -> OracleResult:
    if isinstance(raw, str):
        args = json_repair.loads(raw)
    else:
        args = raw
    if not isinstance(args, dict):
        raise OracleError(f"tool arguments are not an object: {raw!r}")
    translated = args.get("translation")
    if not isinstance(translated, str) or not translated.strip():
        raise OracleError("translation is empty")
    reading = args.get("reading")
    alternatives = args.get("alternatives") or []
    correction = args.get("correction")
    return OracleResult(
        translated=translated,
        reading=reading.strip() if isinstance(reading, str) and reading.strip() else None,
        alternatives=[a for a in alternatives if isinstance(a, str)],
        correction=correction if isinstance(correction, str) and correction.strip() else None,
    )


class LLMOracle:
    """
    Translation oracle over an OpenAI-compatible chat completions endpoint using a forced tool call.

    Errors are raised as OracleError carrying the provider's message; nothing is retried.
    """

    def __init__(self, config: OracleConfig):
        self.baseurl = config.base_url.strip().rstrip("/")
        self.domain = urlparse(self.baseurl).netloc
        self.key = config.api_key.strip() if config.api_key else "xx"
        self.model_id = config.model_id.strip()
        self.temperature = config.temperature
        self.timeout = httpx.Timeout(connect=5, read=config.timeout, write=60, pool=10)
        self.with_reading = config.with_reading
        self.logger = config.logger
        self.token_counter = TokenCounter()
        self.system_proxy_enable = config.system_proxy_enable
        self._client: httpx.Client | None = None
        self._client_lock = Lock()

    @property
    def client(self) -> httpx.Client:
        """One pooled client per oracle, shared by every worker thread."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    trust_env=self.system_proxy_enable,
                    timeout=self.timeout,
                    limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                )
            return self._client

    def close(self):
        with self._client_lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def _headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.key}",
        }
        if self.domain == "generativelanguage.googleapis.com":
            headers.pop("Authorization", None)
            headers["x-goog-api-key"] = self.key
        elif self.domain.endswith("openrouter.ai"):
            ref = os.getenv("OPENROUTER_REFERRER") or os.getenv("HTTP_REFERER")
            title = os.getenv("OPENROUTER_TITLE")
            if ref:
                headers["HTTP-Referer"] = ref
            if title:
                headers["X-Title"] = title
        return headers

    def _request_data(self, text: str, source_lang: str, target_lang: str, style: str, slang: bool) -> dict:
        return {
            "model": self.model_id,
            "messages": [
                {"role": "system", "content": system_prompt(source_lang, target_lang, style, slang)},
                {"role": "user", "content": text},
            ],
            "temperature": self.temperature,
            "tools": [tool_spec(self.with_reading)],
            "tool_choice": {"type": "function", "function": {"name": TOOL_NAME}},
        }

    def _parse_response(self, response_data: dict) -> OracleResult:
        try:
            message = response_data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise OracleError(f"unexpected response shape: {json.dumps(response_data)[:500]}") from e
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            if function.get("name") == TOOL_NAME:
                return parse_tool_arguments(function.get("arguments") or "{}")
        content = message.get("content")
        if isinstance(content, str) and content.strip():
            # Some compatible servers answer in plain content despite the forced tool call
            repaired = json_repair.loads(content)
            if isinstance(repaired, dict) and "translation" in repaired:
                return parse_tool_arguments(repaired)
            return OracleResult(translated=content.strip())
        raise OracleError(f"no tool call '{TOOL_NAME}' in response")

    def translate(self, text: str, source_lang: str, target_lang: str,
                  style: str = "casual", slang: bool = False) -> OracleResult:
        data = self._request_data(text, source_lang, target_lang, style, slang)
        try:
            response = self.client.post(
                f"{self.baseurl}/chat/completions",
                json=data,
                headers=self._headers(),
            )
        except httpx.RequestError as e:
            raise OracleError(f"request error: {e!r}") from e
        if response.status_code >= 400:
            raise OracleError(format_provider_error(response))
        try:
            response_data = response.json()
        except ValueError as e:
            raise OracleError(f"invalid JSON response: {response.text[:500]}") from e
        self.token_counter.add(*extract_token_info(response_data))
        return self._parse_response(response_data)
