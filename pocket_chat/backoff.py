"""Retry delay computation.

Pure functions, no state. All delays are integer milliseconds.

    compute_backoff_ms        exponential growth capped at max_delay, plus jitter
    parse_retry_after_ms      Retry-After as seconds, HTTP-date or "1.5s"/"250ms"
    parse_duration_ms         bare number (seconds) or number with ms|s|m|h
    retry_delay_from_headers  first usable hint from the rate-limit headers

A provider hint can only lengthen the wait: callers use
max(hint or 0, compute_backoff_ms(...)).
"""

from __future__ import annotations

import math
import random
import re
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

DEFAULT_BASE_DELAY_MS = 750
DEFAULT_MAX_DELAY_MS = 20_000
MAX_JITTER_MS = 250

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)?$", re.IGNORECASE)
_UNIT_MS = {"ms": 1, "s": 1000, "m": 60_000, "h": 3_600_000}

RETRYABLE_STATUSES = frozenset({408, 409, 429})


def compute_backoff_ms(
    attempt: int,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
    rng: Callable[[], float] = random.random,
) -> int:
    """Return min(max_delay, base·2^(attempt−1)) plus up to 250ms of jitter.

    Jitter is uniform in [0, min(250, 0.2 × exponential value)].
    """
    exp = min(max_delay_ms, base_delay_ms * 2 ** max(0, attempt - 1))
    jitter = rng() * min(MAX_JITTER_MS, exp * 0.2)
    return max(0, round(exp + jitter))


def parse_duration_ms(value: object) -> int | None:
    """Parse "2", "0.8s", "500ms", "1m" or "1h" into milliseconds."""
    raw = str(value if value is not None else "").strip()
    if not raw:
        return None
    match = _DURATION_RE.match(raw)
    if not match:
        return None
    amount = float(match.group(1))
    unit = (match.group(2) or "s").lower()
    return max(0, round(amount * _UNIT_MS[unit]))


def parse_retry_after_ms(value: object, now: datetime | None = None) -> int | None:
    """Parse a Retry-After value: seconds, an HTTP-date, or a unit duration."""
    raw = str(value if value is not None else "").strip()
    if not raw:
        return None

    try:
        seconds = float(raw)
    except ValueError:
        seconds = None
    if seconds is not None and math.isfinite(seconds):
        return max(0, round(seconds * 1000))

    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        when = None
    if when is not None:
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        now = now or datetime.now(timezone.utc)
        return max(0, round((when - now).total_seconds() * 1000))

    return parse_duration_ms(raw)


def retry_delay_from_headers(headers: Mapping[str, str] | None) -> int | None:
    """Return the provider's requested wait in ms, or None if it gave no hint.

    Checked in order: retry-after, x-ratelimit-reset-requests,
    x-ratelimit-reset-tokens. Header lookup is case-insensitive when given
    httpx.Headers.
    """
    if not headers:
        return None

    delay = parse_retry_after_ms(headers.get("retry-after"))
    if delay is not None:
        return delay

    for name in ("x-ratelimit-reset-requests", "x-ratelimit-reset-tokens"):
        delay = parse_duration_ms(headers.get(name))
        if delay is not None:
            return delay
    return None


def is_retryable_status(status: int) -> bool:
    """429, 408, 409 and every 5xx are worth another attempt."""
    return status in RETRYABLE_STATUSES or 500 <= status <= 599
