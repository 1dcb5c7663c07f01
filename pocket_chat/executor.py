"""Resilient request executor.

Wraps one HTTP call with the origin's cooldown gate, the backoff policy and
retry-worthy status detection:

    for attempt in 0..max_retries:
        await gate.wait()
        send
          transport error      → retry with plain backoff; re-raise when exhausted
          2xx                  → return
          retry-worthy status  → retry if attempts remain, else return the response
          any other status     → return the response (no retry)

On every retry the body is drained, the effective delay
max(header hint, backoff) is computed, the gate is bumped so that every
other caller of the same origin waits too, a RequestAttempt is recorded and
passed to on_retry, and the executor sleeps.

The result carries the settled response and the retried attempts; turning a
failed response into an error message is the caller's job (see errors.py).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from pocket_chat.backoff import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_DELAY_MS,
    compute_backoff_ms,
    is_retryable_status,
    retry_delay_from_headers,
)
from pocket_chat.cooldown import CooldownRegistry, Sleep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS


@dataclass(frozen=True)
class RequestAttempt:
    """One failed attempt that led to a retry."""

    index: int               # 0-based attempt that failed
    delay_ms: int            # wait before the next attempt
    status: int | None = None
    error: Exception | None = None

    @property
    def retry_number(self) -> int:
        return self.index + 1


@dataclass
class ExecutionResult:
    response: httpx.Response
    attempts: list[RequestAttempt] = field(default_factory=list)

    @property
    def retries(self) -> int:
        return len(self.attempts)

    @property
    def ok(self) -> bool:
        return self.response.is_success


RetryObserver = Callable[[RequestAttempt], None]


class RequestExecutor:
    """Issues HTTP requests with retries, sharing cooldowns through a registry.

    Args:
        cooldowns: Registry whose gates are shared with every other executor
                   that should throttle together.
        client:    Optional shared httpx.AsyncClient. When omitted a client is
                   opened for each execute() call.
        policy:    Default retry policy.
        timeout:   HTTP timeout in seconds for clients opened here.
        sleep:     Coroutine used for retry delays.
    """

    def __init__(
        self,
        cooldowns: CooldownRegistry | None = None,
        client: httpx.AsyncClient | None = None,
        policy: RetryPolicy | None = None,
        timeout: float = 120.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.cooldowns = cooldowns if cooldowns is not None else CooldownRegistry()
        self._client = client
        self._policy = policy or RetryPolicy()
        self._timeout = timeout
        self._sleep = sleep

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        policy: RetryPolicy | None = None,
        on_retry: RetryObserver | None = None,
    ) -> ExecutionResult:
        if self._client is not None:
            return await self._run(self._client, method, url, headers, json, policy, on_retry)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._run(client, method, url, headers, json, policy, on_retry)

    async def _run(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        headers: dict[str, str] | None,
        body: Any,
        policy: RetryPolicy | None,
        on_retry: RetryObserver | None,
    ) -> ExecutionResult:
        policy = policy or self._policy
        gate = self.cooldowns.gate_for(url)
        attempts: list[RequestAttempt] = []
        max_retries = max(0, policy.max_retries)

        for attempt in range(max_retries + 1):
            await gate.wait()
            last = attempt >= max_retries

            try:
                response = await client.request(
                    method,
                    url,
                    headers=dict(headers) if headers else None,
                    json=body,
                )
            except httpx.RequestError as e:
                if last:
                    logger.info("request failed url=%s attempts=%d error=%r", url, attempt + 1, e)
                    raise
                delay = compute_backoff_ms(
                    attempt + 1, policy.base_delay_ms, policy.max_delay_ms,
                )
                record = RequestAttempt(index=attempt, delay_ms=delay, error=e)
            else:
                if response.is_success:
                    return ExecutionResult(response, attempts)
                if last or not is_retryable_status(response.status_code):
                    return ExecutionResult(response, attempts)

                await response.aread()
                hint = retry_delay_from_headers(response.headers)
                backoff = compute_backoff_ms(
                    attempt + 1, policy.base_delay_ms, policy.max_delay_ms,
                )
                delay = max(hint or 0, backoff)
                record = RequestAttempt(index=attempt, delay_ms=delay, status=response.status_code)

            gate.bump(delay)
            attempts.append(record)
            logger.warning(
                "retrying url=%s attempt=%d status=%s error=%r delay_ms=%d",
                url, record.retry_number, record.status, record.error, delay,
            )
            if on_retry is not None:
                on_retry(record)
            await self._sleep(delay / 1000)

        # range() always ends in a return or a raise
        raise AssertionError("unreachable")
