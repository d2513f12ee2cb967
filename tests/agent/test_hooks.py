"""Tests for the hook bus: ordering, suppression, removal, context types."""

from datetime import datetime, timezone

import pytest

from aya.agent.hooks import (
    ContentContext,
    GenerationContext,
    HookBus,
    HookKind,
    MessageReceived,
)
from aya.chat.identity import Identity
from aya.memory.models import Memory, MemoryContent


# ── Helpers ──────────────────────────────────────────────────────────────


def received(text: str = "gm") -> MessageReceived:
    return MessageReceived(
        text=text,
        sender=Identity.agent("someone"),
        source="agentcoin",
        timestamp=datetime.now(timezone.utc),
    )


def generation() -> GenerationContext:
    mem = Memory(id="m", agent_id="a", user_id="u", room_id="r", content=MemoryContent("x"))
    return GenerationContext(memory=mem)


# ── Dispatch ─────────────────────────────────────────────────────────────


class TestDispatch:
    @pytest.mark.asyncio
    async def test_no_handlers_passes(self):
        assert await HookBus().dispatch(HookKind.MESSAGE, received()) is True

    @pytest.mark.asyncio
    async def test_registration_order(self):
        bus = HookBus()
        calls = []
        bus.on("message", lambda ctx: calls.append("a") or True)
        bus.on("message", lambda ctx: calls.append("b") or True)
        assert await bus.dispatch("message", received()) is True
        assert calls == ["a", "b"]

    @pytest.mark.asyncio
    async def test_first_falsy_stops(self):
        bus = HookBus()
        calls = []

        def a(ctx):
            calls.append("a")
            return False

        def b(ctx):
            calls.append("b")
            return True

        bus.on(HookKind.MESSAGE, a)
        bus.on(HookKind.MESSAGE, b)
        assert await bus.dispatch(HookKind.MESSAGE, received()) is False
        assert calls == ["a"]

    @pytest.mark.asyncio
    async def test_none_counts_as_suppression(self):
        bus = HookBus()
        bus.on(HookKind.MESSAGE, lambda ctx: None)
        assert await bus.dispatch(HookKind.MESSAGE, received()) is False

    @pytest.mark.asyncio
    async def test_async_handlers_awaited_in_sequence(self):
        bus = HookBus()
        calls = []

        async def slow(ctx):
            calls.append("slow")
            return True

        bus.on(HookKind.BEFORE_GENERATION, slow)
        bus.on(HookKind.BEFORE_GENERATION, lambda ctx: calls.append("sync") or True)
        assert await bus.dispatch(HookKind.BEFORE_GENERATION, generation())
        assert calls == ["slow", "sync"]

    @pytest.mark.asyncio
    async def test_handler_exception_propagates(self):
        bus = HookBus()

        def boom(ctx):
            raise RuntimeError("hook broke")

        bus.on(HookKind.MESSAGE, boom)
        with pytest.raises(RuntimeError, match="hook broke"):
            await bus.dispatch(HookKind.MESSAGE, received())

    @pytest.mark.asyncio
    async def test_handlers_share_the_context(self):
        bus = HookBus()
        ctx = generation()

        def first(c):
            c.responses.append("marker")
            return True

        seen = []
        bus.on(HookKind.BEFORE_ACTION, first)
        bus.on(HookKind.BEFORE_ACTION, lambda c: seen.append(list(c.responses)) or True)
        await bus.dispatch(HookKind.BEFORE_ACTION, ctx)
        assert seen == [["marker"]]

    @pytest.mark.asyncio
    async def test_wrong_context_type(self):
        bus = HookBus()
        with pytest.raises(TypeError):
            await bus.dispatch(HookKind.MESSAGE, generation())
        with pytest.raises(TypeError):
            await bus.dispatch(HookKind.AFTER_GENERATION, generation())

    @pytest.mark.asyncio
    async def test_content_context_accepted_for_after_hooks(self):
        bus = HookBus()
        ctx = ContentContext(memory=generation().memory)
        assert await bus.dispatch(HookKind.AFTER_ACTION, ctx) is True

    @pytest.mark.asyncio
    async def test_registration_during_dispatch_applies_next_time(self):
        bus = HookBus()
        late_calls = []

        def late(ctx):
            late_calls.append(1)
            return True

        def adder(ctx):
            bus.on(HookKind.MESSAGE, late)
            return True

        bus.on(HookKind.MESSAGE, adder)
        await bus.dispatch(HookKind.MESSAGE, received())
        assert late_calls == []
        await bus.dispatch(HookKind.MESSAGE, received())
        assert late_calls == [1]


# ── Registration ─────────────────────────────────────────────────────────


class TestRegistration:
    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            HookBus().on("after-reply", lambda ctx: True)

    def test_not_callable(self):
        with pytest.raises(TypeError):
            HookBus().on(HookKind.MESSAGE, "nope")  # type: ignore[arg-type]

    def test_off_removes_all_duplicates(self):
        bus = HookBus()

        def h(ctx):
            return True

        bus.on(HookKind.MESSAGE, h)
        bus.on(HookKind.MESSAGE, h)
        assert bus.count(HookKind.MESSAGE) == 2
        assert bus.off(HookKind.MESSAGE, h) == 2
        assert bus.count(HookKind.MESSAGE) == 0

    def test_off_unknown_handler_is_noop(self):
        assert HookBus().off(HookKind.MESSAGE, lambda ctx: True) == 0

    def test_kinds_are_independent(self):
        bus = HookBus()
        bus.on(HookKind.MESSAGE, lambda ctx: True)
        assert bus.count(HookKind.AFTER_ACTION) == 0

    def test_handlers_is_a_copy(self):
        bus = HookBus()
        bus.on(HookKind.MESSAGE, lambda ctx: True)
        bus.handlers(HookKind.MESSAGE).clear()
        assert bus.count(HookKind.MESSAGE) == 1

    def test_clear(self):
        bus = HookBus()
        bus.on(HookKind.MESSAGE, lambda ctx: True)
        bus.on(HookKind.AFTER_ACTION, lambda ctx: True)
        bus.clear()
        assert all(bus.count(k) == 0 for k in HookKind)
