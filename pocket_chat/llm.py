"""LLM client — OpenAI-compatible chat completions over the request executor.

    resolve_endpoint()     picks URL / key / model for a partner, re-read per call
    ChatCompletionClient   POST {base}/chat/completions and GET {base}/models

Both operations go through a RequestExecutor, so every call waits on the
endpoint's cooldown gate and retries transient failures. Failures surface as
LLMError subclasses (see errors.py) whose message is ready for display.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from pocket_chat.errors import (
    ConfigurationError,
    LLMError,
    TransportError,
    error_from_response,
)
from pocket_chat.executor import RequestExecutor, RetryObserver, RetryPolicy
from pocket_chat.models import Partner, Settings

logger = logging.getLogger(__name__)

EMPTY_REPLY = "..."


# ---------------------------------------------------------------------------
# Endpoint resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ApiEndpointConfig:
    url: str
    api_key: str = ""
    model: str = ""

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")


def resolve_endpoint(settings: Settings, partner: Partner | None = None) -> ApiEndpointConfig:
    """Return the endpoint for a partner.

    A partner with its own API falls back to the global setting field by
    field (URL, key and model independently) wherever its own value is blank.
    """
    url, key, model = settings.api_url, settings.api_key, settings.selected_model
    if partner is not None and partner.use_custom_api:
        url = partner.custom_api_url or url
        key = partner.custom_api_key or key
        model = partner.custom_model or model
    return ApiEndpointConfig(url=url or "", api_key=key or "", model=model or "")


def require_url(endpoint: ApiEndpointConfig) -> None:
    if not endpoint.base_url:
        raise ConfigurationError("API URL is not configured — set it in Settings")


def require_model(endpoint: ApiEndpointConfig) -> None:
    if not endpoint.model:
        raise ConfigurationError("No model selected — choose one in Settings")


def extract_model_ids(data: Any) -> list[str]:
    """Normalise a /models payload into a sorted, de-duplicated id list.

    Accepts {"data": [...]}, {"models": [...]} or a bare list; each item is a
    string or an object with "id" or "name".
    """
    raw: list = []
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        raw = data["data"]
    elif isinstance(data, dict) and isinstance(data.get("models"), list):
        raw = data["models"]
    elif isinstance(data, list):
        raw = data

    ids: set[str] = set()
    for item in raw:
        if isinstance(item, str):
            model_id = item
        elif isinstance(item, dict):
            model_id = item.get("id") or item.get("name") or ""
        else:
            model_id = ""
        if model_id:
            ids.add(str(model_id))
    return sorted(ids)


# ---------------------------------------------------------------------------
# ChatCompletionClient
# ---------------------------------------------------------------------------

class ChatCompletionClient:
    """Async client for one resolved endpoint.

    Args:
        endpoint: Resolved URL, bearer key and model.
        executor: Executor that applies cooldown and retries.
        policy:   Retry policy for this client's calls.
    """

    def __init__(
        self,
        endpoint: ApiEndpointConfig,
        executor: RequestExecutor,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._executor = executor
        self._policy = policy

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._endpoint.api_key:
            headers["Authorization"] = f"Bearer {self._endpoint.api_key}"
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        body: Any = None,
        on_retry: RetryObserver | None = None,
    ) -> httpx.Response:
        try:
            result = await self._executor.execute(
                method, url,
                headers=self._headers(), json=body,
                policy=self._policy, on_retry=on_retry,
            )
        except httpx.ConnectError as e:
            raise TransportError(f"Cannot connect to API at {self._endpoint.base_url}") from e
        except httpx.TimeoutException as e:
            raise TransportError(f"API at {self._endpoint.base_url} timed out") from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error talking to {self._endpoint.base_url}: {e}") from e

        if not result.ok:
            error = error_from_response(result.response, retries=result.retries)
            logger.info("api error url=%s status=%d retries=%d", url, error.status, error.retries)
            raise error
        return result.response

    async def complete(
        self,
        messages: list[dict[str, str]],
        temperature: float = 1.0,
        max_tokens: int = 8196,
        on_retry: RetryObserver | None = None,
    ) -> str:
        """Send a chat completion and return the reply text."""
        require_url(self._endpoint)
        require_model(self._endpoint)

        url = f"{self._endpoint.base_url}/chat/completions"
        body = {
            "model": self._endpoint.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        logger.debug("chat call url=%s model=%s messages=%d", url, self._endpoint.model, len(messages))

        resp = await self._send("POST", url, body, on_retry)
        text = _parse_reply(resp)
        logger.debug("chat reply len=%d", len(text))
        return text

    async def list_models(self, on_retry: RetryObserver | None = None) -> list[str]:
        """Return the model ids the endpoint advertises."""
        require_url(self._endpoint)
        resp = await self._send("GET", f"{self._endpoint.base_url}/models", None, on_retry)
        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("Unexpected response format from /models") from e
        return extract_model_ids(data)


def _parse_reply(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError as e:
        raise LLMError("Unexpected response format from chat completions") from e
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    return content or EMPTY_REPLY
