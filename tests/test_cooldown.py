"""Tests for pocket_chat.cooldown — gate waiting, monotonic bumps, origin keys."""

from pocket_chat.cooldown import CooldownGate, CooldownRegistry, origin_of


class TestCooldownGate:
    async def test_wait_is_noop_without_cooldown(self, clock) -> None:
        gate = CooldownGate(clock, clock.sleep)
        await gate.wait()
        assert clock.sleeps == []

    async def test_wait_sleeps_until_active_until(self, clock) -> None:
        gate = CooldownGate(clock, clock.sleep)
        gate.bump(1500)
        await gate.wait()
        assert clock.sleeps == [1.5]
        await gate.wait()
        assert clock.sleeps == [1.5]

    def test_bump_never_retreats(self, clock) -> None:
        gate = CooldownGate(clock, clock.sleep)
        gate.bump(5000)
        until = gate.active_until
        gate.bump(1000)
        assert gate.active_until == until
        gate.bump(8000)
        assert gate.active_until > until

    def test_bump_ignores_non_positive(self, clock) -> None:
        gate = CooldownGate(clock, clock.sleep)
        gate.bump(0)
        gate.bump(-10)
        assert gate.remaining_ms() == 0

    def test_remaining_ms_counts_down(self, clock) -> None:
        gate = CooldownGate(clock, clock.sleep)
        gate.bump(2000)
        assert gate.remaining_ms() == 2000
        clock.now += 0.5
        assert gate.remaining_ms() == 1500
        clock.now += 5
        assert gate.remaining_ms() == 0


class TestCooldownRegistry:
    def test_same_origin_shares_gate(self) -> None:
        reg = CooldownRegistry()
        a = reg.gate_for("https://api.example.com/v1/chat/completions")
        b = reg.gate_for("https://api.example.com/v1/models")
        assert a is b
        assert len(reg) == 1

    def test_default_port_is_same_origin(self) -> None:
        reg = CooldownRegistry()
        assert reg.gate_for("https://api.example.com/v1") is reg.gate_for("https://api.example.com:443/v1")

    def test_different_origins_are_independent(self, clock) -> None:
        reg = CooldownRegistry(clock, clock.sleep)
        main = reg.gate_for("https://api.example.com/v1")
        custom = reg.gate_for("http://localhost:5001/v1")
        main.bump(10_000)
        assert custom.remaining_ms() == 0
        assert main.remaining_ms() == 10_000

    def test_origin_of(self) -> None:
        assert origin_of("https://API.example.com/v1/x") == "https://api.example.com:443"
        assert origin_of("http://localhost:5001/v1") == "http://localhost:5001"
