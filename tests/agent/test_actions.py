"""Tests for ActionKind / ActionRegistry / ActionRunner in isolation."""

import pytest

from aya.agent.actions import (
    Action,
    ActionKind,
    ActionRegistry,
    ActionRunner,
    continue_action,
    ignore_action,
)
from aya.agent.hooks import HookBus, HookKind
from aya.agent.state import ConversationState
from aya.errors import ActionRegistrationError, ContinuationLimitExceeded, GenerationFailure
from aya.memory.models import Memory, MemoryContent
from aya.providers.base import GeneratedContent


# ── Helpers ──────────────────────────────────────────────────────────────


async def noop_handler(state, memory, options, send):
    return True


def make_memory(mid: str = "m0", text: str = "hi") -> Memory:
    return Memory(id=mid, agent_id="a", user_id="u", room_id="r", content=MemoryContent(text))


def make_state() -> ConversationState:
    return ConversationState(agent_id="a", agent_name="Aya", room_id="r", sender_id="u")


class TurnRecorder:
    """send_turn stand-in: turns each content into a memory."""

    def __init__(self):
        self.sent = []

    async def __call__(self, content: GeneratedContent) -> Memory:
        self.sent.append(content.text)
        return make_memory(f"t{len(self.sent)}", content.text)


# ── ActionKind ───────────────────────────────────────────────────────────


class TestActionKind:
    def test_parse_case_insensitive(self):
        assert ActionKind.parse("continue") is ActionKind.CONTINUE
        assert ActionKind.parse(" Mute_Room ") is ActionKind.MUTE_ROOM

    @pytest.mark.parametrize("name", [None, "", "  ", "DANCE"])
    def test_parse_unknown(self, name):
        assert ActionKind.parse(name) is None


# ── Registry ─────────────────────────────────────────────────────────────


class TestRegistry:
    def test_register_and_resolve(self):
        reg = ActionRegistry()
        action = Action(kind=ActionKind.FOLLOW_ROOM, handler=noop_handler)
        reg.register(action)
        assert reg.resolve("follow_room") is action
        assert ActionKind.FOLLOW_ROOM in reg
        assert len(reg) == 1

    def test_string_kind_is_normalised(self):
        reg = ActionRegistry()
        reg.register(Action(kind="mute_room", handler=noop_handler))  # type: ignore[arg-type]
        assert reg.kinds == [ActionKind.MUTE_ROOM]

    def test_unknown_kind_rejected(self):
        with pytest.raises(ActionRegistrationError):
            ActionRegistry().register(Action(kind="DANCE", handler=noop_handler))  # type: ignore[arg-type]

    def test_none_kind_rejected(self):
        with pytest.raises(ActionRegistrationError):
            ActionRegistry().register(Action(kind=ActionKind.NONE, handler=noop_handler))

    def test_duplicate_rejected(self):
        reg = ActionRegistry()
        reg.register(Action(kind=ActionKind.IGNORE, handler=noop_handler))
        with pytest.raises(ActionRegistrationError):
            reg.register(Action(kind=ActionKind.IGNORE, handler=noop_handler))

    def test_handler_must_be_callable(self):
        with pytest.raises(ActionRegistrationError):
            ActionRegistry().register(Action(kind=ActionKind.IGNORE, handler=None))  # type: ignore[arg-type]

    def test_resolve_none_and_unregistered(self):
        reg = ActionRegistry()
        assert reg.resolve(None) is None
        assert reg.resolve("NONE") is None
        assert reg.resolve("CREATE_MEMECOIN") is None
        assert reg.resolve("DANCE") is None

    def test_unregister(self):
        reg = ActionRegistry()
        reg.register(Action(kind=ActionKind.IGNORE, handler=noop_handler))
        assert reg.unregister(ActionKind.IGNORE) is not None
        assert reg.resolve("IGNORE") is None


# ── Runner ───────────────────────────────────────────────────────────────


class TestRunner:
    @pytest.mark.asyncio
    async def test_turns_appended_to_responses(self):
        async def handler(state, memory, options, send):
            assert options["responses"] == []
            await send(GeneratedContent("one"))
            await send(GeneratedContent("two"))
            return True

        responses: list[Memory] = []
        send_turn = TurnRecorder()
        created = await ActionRunner(HookBus()).run(
            Action(ActionKind.FOLLOW_ROOM, handler), make_memory(), responses, make_state(), send_turn,
        )
        assert send_turn.sent == ["one", "two"]
        assert [m.text for m in created] == ["one", "two"]
        assert responses == created

    @pytest.mark.asyncio
    async def test_before_and_after_per_turn(self):
        hooks = HookBus()
        order = []
        hooks.on(HookKind.BEFORE_ACTION, lambda ctx: order.append(("before", len(ctx.responses))) or True)
        hooks.on(HookKind.AFTER_ACTION, lambda ctx: order.append(("after", ctx.content.text)) or True)

        async def handler(state, memory, options, send):
            await send(GeneratedContent("a"))
            await send(GeneratedContent("b"))
            return True

        await ActionRunner(hooks).run(
            Action(ActionKind.FOLLOW_ROOM, handler), make_memory(), [], make_state(), TurnRecorder(),
        )
        assert order == [("before", 0), ("after", "a"), ("before", 1), ("after", "b")]

    @pytest.mark.asyncio
    async def test_stopped_send_returns_empty(self):
        hooks = HookBus()
        hooks.on(HookKind.BEFORE_ACTION, lambda ctx: False)
        results = []

        async def handler(state, memory, options, send):
            results.append(await send(GeneratedContent("a")))
            results.append(await send(GeneratedContent("b")))
            return True

        send_turn = TurnRecorder()
        await ActionRunner(hooks).run(
            Action(ActionKind.FOLLOW_ROOM, handler), make_memory(), [], make_state(), send_turn,
        )
        assert results == [[], []]
        assert send_turn.sent == []

    @pytest.mark.asyncio
    async def test_limit(self):
        async def handler(state, memory, options, send):
            for i in range(3):
                await send(GeneratedContent(str(i)))
            return True

        send_turn = TurnRecorder()
        with pytest.raises(ContinuationLimitExceeded) as exc:
            await ActionRunner(HookBus(), max_continuations=2).run(
                Action(ActionKind.FOLLOW_ROOM, handler), make_memory(), [], make_state(), send_turn,
            )
        assert exc.value.limit == 2
        assert send_turn.sent == ["0", "1"]

    @pytest.mark.asyncio
    async def test_handler_returning_false_is_not_an_error(self):
        async def handler(state, memory, options, send):
            return False

        created = await ActionRunner(HookBus()).run(
            Action(ActionKind.FOLLOW_ROOM, handler), make_memory(), [], make_state(), TurnRecorder(),
        )
        assert created == []


# ── Built-ins ────────────────────────────────────────────────────────────


class TestBuiltins:
    def test_ignore_suppresses_initial_message(self):
        action = ignore_action()
        assert action.kind is ActionKind.IGNORE
        assert action.suppress_initial_message

    @pytest.mark.asyncio
    async def test_continue_stops_on_blank(self):
        class Gen:
            async def generate(self, state, memory):
                return GeneratedContent("")

        class Composer:
            async def refresh(self, state):
                return state

        action = continue_action(Gen(), Composer())
        assert not action.suppress_initial_message
        send_turn = TurnRecorder()
        await ActionRunner(HookBus()).run(action, make_memory(), [], make_state(), send_turn)
        assert send_turn.sent == []

    @pytest.mark.asyncio
    async def test_continue_wraps_generation_errors(self):
        class Gen:
            async def generate(self, state, memory):
                raise TimeoutError("model timed out")

        class Composer:
            async def refresh(self, state):
                return state

        send_turn = TurnRecorder()
        with pytest.raises(GenerationFailure, match="model timed out") as exc_info:
            await ActionRunner(HookBus()).run(
                continue_action(Gen(), Composer()), make_memory(), [], make_state(), send_turn,
            )
        assert isinstance(exc_info.value.__cause__, TimeoutError)
        assert send_turn.sent == []
