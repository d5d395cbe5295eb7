# SPDX-FileCopyrightText: 2025 RealTimeX
# SPDX-License-Identifier: MPL-2.0
import httpx

from attachtranslate.agents.oracle import DEFAULT_BASE_URL, format_provider_error
from attachtranslate.errors import OracleError

GEMINI_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"
CLAUDE_MODELS_URL = "https://api.anthropic.com/v1/models"
ANTHROPIC_VERSION = "2023-06-01"
PROVIDERS = ("openai", "gemini", "claude")


def _request(provider: str, api_key: str, base_url: str | None) -> tuple[str, dict]:
    match provider:
        case "openai":
            base = (base_url or DEFAULT_BASE_URL).strip().rstrip("/")
            return f"{base}/models", {"Authorization": f"Bearer {api_key}"}
        case "gemini":
            return GEMINI_MODELS_URL, {"x-goog-api-key": api_key}
        case "claude":
            return CLAUDE_MODELS_URL, {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}
    raise ValueError(f"unknown provider '{provider}' (expected one of: {', '.join(PROVIDERS)})")


def _model_ids(provider: str, data: dict) -> list[str]:
    if provider == "gemini":
        names = [m.get("name", "") for m in data.get("models", [])]
        return [name.removeprefix("models/") for name in names if name]
    return [m["id"] for m in data.get("data", []) if m.get("id")]


def fetch_models(provider: str, api_key: str | None, base_url: str | None = None,
                 timeout: float = 30, trust_env: bool = False) -> list[str]:
    """List the model ids a provider offers, sorted."""
    if not api_key:
        raise OracleError(f"missing API key for provider '{provider}'")
    url, headers = _request(provider, api_key.strip(), base_url)
    try:
        with httpx.Client(trust_env=trust_env) as client:
            response = client.get(url, headers=headers, timeout=timeout)
    except httpx.RequestError as e:
        raise OracleError(f"request error: {e!r}") from e
    if response.status_code >= 400:
        raise OracleError(format_provider_error(response))
    try:
        data = response.json()
    except ValueError as e:
        raise OracleError(f"invalid JSON response: {response.text[:500]}") from e
    return sorted(set(_model_ids(provider, data)))
