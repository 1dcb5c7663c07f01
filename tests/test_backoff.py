"""Tests for pocket_chat.backoff — backoff growth, jitter bounds, header parsing."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httpx
import pytest

from pocket_chat.backoff import (
    compute_backoff_ms,
    is_retryable_status,
    parse_duration_ms,
    parse_retry_after_ms,
    retry_delay_from_headers,
)


# ── compute_backoff_ms ───────────────────────────────────────


@pytest.mark.parametrize("attempt", range(1, 12))
def test_backoff_bounds(attempt):
    floor = min(20_000, 750 * 2 ** (attempt - 1))
    for _ in range(50):
        delay = compute_backoff_ms(attempt)
        assert floor <= delay <= 20_000 + 250
        assert isinstance(delay, int)


def test_backoff_without_jitter_doubles():
    no_jitter = lambda: 0.0  # noqa: E731
    assert compute_backoff_ms(1, rng=no_jitter) == 750
    assert compute_backoff_ms(2, rng=no_jitter) == 1500
    assert compute_backoff_ms(3, rng=no_jitter) == 3000


def test_backoff_capped_at_max_delay():
    assert compute_backoff_ms(30, max_delay_ms=5000, rng=lambda: 0.0) == 5000


def test_jitter_is_at_most_twenty_percent_of_small_delays():
    # exp = 100 → jitter ≤ 20
    assert compute_backoff_ms(1, base_delay_ms=100, rng=lambda: 0.999) <= 120


def test_jitter_capped_at_250ms():
    assert compute_backoff_ms(5, rng=lambda: 0.999) <= 750 * 16 + 250


# ── parse_duration_ms / parse_retry_after_ms ─────────────────


def test_parse_duration_units():
    assert parse_duration_ms("2s") == 2000
    assert parse_duration_ms("500ms") == 500
    assert parse_duration_ms("1m") == 60_000
    assert parse_duration_ms("1h") == 3_600_000
    assert parse_duration_ms("0.8s") == 800
    assert parse_duration_ms("3") == 3000
    assert parse_duration_ms("2S") == 2000


def test_parse_duration_rejects_garbage():
    assert parse_duration_ms("") is None
    assert parse_duration_ms(None) is None
    assert parse_duration_ms("abc") is None
    assert parse_duration_ms("-1s") is None
    assert parse_duration_ms("6m0s") is None


def test_retry_after_seconds():
    assert parse_retry_after_ms("2") == 2000
    assert parse_retry_after_ms("1.5") == 1500


def test_retry_after_duration_fallback():
    assert parse_retry_after_ms("2s") == 2000
    assert parse_retry_after_ms("500ms") == 500


def test_retry_after_empty_and_garbage():
    assert parse_retry_after_ms("") is None
    assert parse_retry_after_ms("abc") is None


def test_retry_after_http_date():
    now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    value = format_datetime(now + timedelta(seconds=30), usegmt=True)
    assert parse_retry_after_ms(value, now=now) == 30_000


def test_retry_after_http_date_in_past_is_zero():
    now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    value = format_datetime(now - timedelta(seconds=30), usegmt=True)
    assert parse_retry_after_ms(value, now=now) == 0


# ── retry_delay_from_headers ─────────────────────────────────


def test_headers_retry_after_wins():
    headers = httpx.Headers({
        "Retry-After": "3",
        "x-ratelimit-reset-requests": "10s",
    })
    assert retry_delay_from_headers(headers) == 3000


def test_headers_reset_requests_then_tokens():
    assert retry_delay_from_headers(httpx.Headers({"x-ratelimit-reset-requests": "0.8s"})) == 800
    assert retry_delay_from_headers(httpx.Headers({"x-ratelimit-reset-tokens": "250ms"})) == 250


def test_headers_unparseable_falls_through():
    headers = httpx.Headers({
        "retry-after": "soon",
        "x-ratelimit-reset-requests": "whenever",
        "x-ratelimit-reset-tokens": "1s",
    })
    assert retry_delay_from_headers(headers) == 1000


def test_headers_none_when_no_hint():
    assert retry_delay_from_headers(httpx.Headers({})) is None
    assert retry_delay_from_headers(None) is None


# ── is_retryable_status ──────────────────────────────────────


@pytest.mark.parametrize("status", [408, 409, 429, 500, 502, 503, 599])
def test_retryable(status):
    assert is_retryable_status(status)


@pytest.mark.parametrize("status", [200, 400, 401, 403, 404, 422, 600])
def test_not_retryable(status):
    assert not is_retryable_status(status)
