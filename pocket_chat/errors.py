"""Error types and provider error formatting.

Every failure that reaches a caller is an LLMError whose str() is ready to
show to the user:

    ConfigurationError   endpoint URL or model missing; never retried
    TransportError       network unreachable, DNS, TLS, timeout (after retries)
    ProviderError        the endpoint answered with a non-success status
      RateLimitError       429
        QuotaExhaustedError  429 whose body talks about quota or billing

format_api_error() builds the message from a failed httpx.Response. The
message always names the status and, when retries happened, how many.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

MAX_DETAIL_CHARS = 300

REQUEST_ID_HEADERS = ("x-request-id", "x-openai-request-id", "cf-ray")

# Matched against the lowercased 429 body
_QUOTA_KEYWORDS = ("insufficient_quota", "quota", "billing", "余额", "额度", "欠费")


class LLMError(RuntimeError):
    """Raised when the model endpoint cannot be used or returns an error."""


class ConfigurationError(LLMError):
    """Raised before any network call when the endpoint is not configured."""


class TransportError(LLMError):
    """Raised when no response was received after all retries."""


class ProviderError(LLMError):
    """The endpoint returned a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status: int,
        retries: int = 0,
        request_id: str = "",
        details: str = "",
    ) -> None:
        super().__init__(message)
        self.status = status
        self.retries = retries
        self.request_id = request_id
        self.details = details


class RateLimitError(ProviderError):
    """HTTP 429 from the provider."""


class QuotaExhaustedError(RateLimitError):
    """HTTP 429 caused by exhausted quota or billing."""


@dataclass(frozen=True)
class RateLimitClass:
    quota: bool
    label: str
    hint: str


QUOTA_EXHAUSTED = RateLimitClass(
    quota=True,
    label="Quota exhausted",
    hint="check your plan, quota or billing",
)
RATE_LIMITED = RateLimitClass(
    quota=False,
    label="Rate limited",
    hint="try again later or send messages less often",
)


def clip_text(text: object, max_len: int = MAX_DETAIL_CHARS) -> str:
    """Collapse whitespace, trim, and cut to max_len with a trailing "..."."""
    s = re.sub(r"\s+", " ", str(text if text is not None else "").strip())
    if len(s) > max_len:
        return f"{s[:max_len]}..."
    return s


def extract_error_message(payload: Any, fallback: str = "") -> str:
    """Pull the most specific message out of a provider error body."""
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            if isinstance(error.get("message"), str):
                return error["message"]
            nested = error.get("error")
            if isinstance(nested, dict) and isinstance(nested.get("message"), str):
                return nested["message"]
        if isinstance(payload.get("message"), str):
            return payload["message"]
        if isinstance(error, dict) and isinstance(error.get("type"), str):
            code = error.get("code")
            return f"{error['type']}: {code}" if code else error["type"]
        if isinstance(error, str) and error:
            return error
    return fallback or ""


def request_id_from_headers(headers: Mapping[str, str] | None) -> str:
    if not headers:
        return ""
    for name in REQUEST_ID_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return ""


def classify_rate_limit(details: str) -> RateLimitClass:
    """Tell quota exhaustion apart from ordinary throttling by keyword."""
    text = (details or "").lower()
    if any(k in text for k in _QUOTA_KEYWORDS):
        return QUOTA_EXHAUSTED
    return RATE_LIMITED


def _response_details(response: httpx.Response) -> str:
    try:
        raw = response.text
    except (httpx.ResponseNotRead, httpx.StreamError, UnicodeDecodeError):
        raw = ""
    try:
        payload = json.loads(raw) if raw else None
    except ValueError:
        payload = None
    return clip_text(extract_error_message(payload, raw))


def error_from_response(response: httpx.Response, retries: int = 0) -> ProviderError:
    """Build the ProviderError (or subclass) that describes a failed response."""
    status = response.status_code
    details = _response_details(response)
    request_id = request_id_from_headers(response.headers)
    retry_info = f" (retried {retries} times)" if retries > 0 else ""
    request_info = f" (request id: {request_id})" if request_id else ""

    if status == 429:
        kind = classify_rate_limit(details)
        suffix = f" Details: {details}" if details else ""
        message = f"{kind.label} (429){retry_info}, {kind.hint}.{suffix}{request_info}"
        cls = QuotaExhaustedError if kind.quota else RateLimitError
    else:
        suffix = f": {details}" if details else ""
        message = f"API error ({status}){retry_info}{suffix}{request_info}"
        cls = ProviderError

    return cls(message, status=status, retries=retries, request_id=request_id, details=details)


def format_api_error(response: httpx.Response, retries: int = 0) -> str:
    """Return the user-facing message for a failed response."""
    return str(error_from_response(response, retries))
