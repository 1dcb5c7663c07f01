"""Shared "do not call before" gates.

A gate holds one instant, active_until. Any request that discovers a rate
limit pushes it forward with bump(); every request, including the first
attempt, awaits wait() before it is issued. The instant never moves back.

Gates are handed out by a CooldownRegistry keyed by endpoint origin, so chat,
voice calls, video calls and co-listening against the same provider throttle
each other, while a partner pointing at a different provider keeps its own
gate. The registry is passed explicitly to every executor that should share
it.

No lock is needed: the event loop runs each read-then-branch segment without
interleaving, and active_until only changes between awaits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class CooldownGate:
    """Holds active_until, in clock seconds."""

    def __init__(
        self,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        name: str = "",
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._active_until = 0.0
        self.name = name

    @property
    def active_until(self) -> float:
        return self._active_until

    def remaining_ms(self) -> int:
        return max(0, round((self._active_until - self._clock()) * 1000))

    async def wait(self) -> None:
        """Suspend until the cooldown has passed. No-op when already past."""
        remaining = self._active_until - self._clock()
        if remaining <= 0:
            return
        logger.debug("cooldown wait gate=%s remaining_ms=%d", self.name, round(remaining * 1000))
        await self._sleep(remaining)

    def bump(self, delay_ms: float) -> None:
        """Advance active_until to now + delay_ms unless it is already later."""
        if delay_ms is None or delay_ms <= 0:
            return
        until = self._clock() + delay_ms / 1000
        if until > self._active_until:
            self._active_until = until


def origin_of(url: str) -> str:
    """"https://api.example.com:443/v1/chat" → "https://api.example.com:443"."""
    u = httpx.URL(url)
    port = u.port
    if port is None:
        port = {"http": 80, "https": 443}.get(u.scheme)
    return f"{u.scheme}://{u.host}:{port}"


class CooldownRegistry:
    """One CooldownGate per endpoint origin."""

    def __init__(self, clock: Clock = time.monotonic, sleep: Sleep = asyncio.sleep) -> None:
        self._clock = clock
        self._sleep = sleep
        self._gates: dict[str, CooldownGate] = {}

    def gate_for(self, url: str) -> CooldownGate:
        key = origin_of(url)
        gate = self._gates.get(key)
        if gate is None:
            gate = CooldownGate(self._clock, self._sleep, name=key)
            self._gates[key] = gate
        return gate

    def __len__(self) -> int:
        return len(self._gates)
