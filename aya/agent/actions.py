"""Actions — follow-up behaviours the generated reply can ask for.

The set of action kinds is closed (``ActionKind``). Handlers are registered
against a kind and validated at registration, so a typo surfaces when the
plugin loads rather than when the model first names the action.

An action handler receives a ``send`` callback. Every call to it emits one
new outbound turn through ``ActionRunner``:

    before-action hook → send + persist + evaluate → after-action hook

A falsy before-action result stops the current and all later turns of that
invocation; a falsy after-action result stops later turns (the current one
is already out). Each invocation may emit at most ``max_continuations``
turns; going over raises ``ContinuationLimitExceeded``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TYPE_CHECKING

from loguru import logger

from aya.agent.evaluators import Evaluator, run_evaluators
from aya.agent.hooks import ContentContext, GenerationContext, HookBus, HookKind
from aya.errors import ActionRegistrationError, ContinuationLimitExceeded, GenerationFailure
from aya.providers.base import GeneratedContent

if TYPE_CHECKING:
    from aya.agent.state import ConversationState, StateComposer
    from aya.memory.models import Memory
    from aya.providers.base import Generator

DEFAULT_MAX_CONTINUATIONS = 8

# Follow-up rounds a single CONTINUE invocation may generate
MAX_CONTINUE_ROUNDS = 3


class ActionKind(str, Enum):
    NONE = "NONE"
    CONTINUE = "CONTINUE"
    IGNORE = "IGNORE"
    MUTE_ROOM = "MUTE_ROOM"
    UNMUTE_ROOM = "UNMUTE_ROOM"
    FOLLOW_ROOM = "FOLLOW_ROOM"
    UNFOLLOW_ROOM = "UNFOLLOW_ROOM"
    TIP_FOR_JOKE = "TIP_FOR_JOKE"
    CREATE_MEMECOIN = "CREATE_MEMECOIN"

    @classmethod
    def parse(cls, name: str | None) -> ActionKind | None:
        """Case-insensitive lookup; None for empty or unknown names."""
        if not name or not name.strip():
            return None
        try:
            return cls(name.strip().upper())
        except ValueError:
            return None


SendCallback = Callable[[GeneratedContent], Awaitable[list["Memory"]]]
ActionHandler = Callable[
    ["ConversationState", "Memory", dict[str, Any], SendCallback],
    Awaitable[bool],
]


@dataclass
class Action:
    kind: ActionKind
    handler: ActionHandler
    description: str = ""
    suppress_initial_message: bool = False

    @property
    def name(self) -> str:
        return self.kind.value


class ActionRegistry:
    """Registered actions keyed by kind."""

    def __init__(self) -> None:
        self._actions: dict[ActionKind, Action] = {}

    def register(self, action: Action) -> None:
        kind = action.kind
        if not isinstance(kind, ActionKind):
            parsed = ActionKind.parse(kind) if isinstance(kind, str) else None
            if parsed is None:
                raise ActionRegistrationError(f"Unknown action kind: {kind!r}")
            action.kind = kind = parsed
        if kind is ActionKind.NONE:
            raise ActionRegistrationError("NONE means 'no action' and cannot be registered")
        if not callable(action.handler):
            raise ActionRegistrationError(f"Action {kind.value} has no callable handler")
        if kind in self._actions:
            raise ActionRegistrationError(f"Action {kind.value} already registered")
        self._actions[kind] = action
        logger.info(f"Registered action: {kind.value}")

    def unregister(self, kind: ActionKind) -> Action | None:
        return self._actions.pop(kind, None)

    def get(self, kind: ActionKind) -> Action | None:
        return self._actions.get(kind)

    def resolve(self, name: str | None) -> Action | None:
        """Action the generated content names, or None if there is none."""
        kind = ActionKind.parse(name)
        if kind is None:
            if name and name.strip():
                logger.warning(f"Generated content named unknown action '{name}'")
            return None
        if kind is ActionKind.NONE:
            return None
        action = self._actions.get(kind)
        if action is None:
            logger.warning(f"Generated content named unregistered action '{kind.value}'")
        return action

    @property
    def kinds(self) -> list[ActionKind]:
        return list(self._actions)

    def __contains__(self, kind: object) -> bool:
        return kind in self._actions

    def __len__(self) -> int:
        return len(self._actions)


# ── Continuation loop ────────────────────────────────────────────────────


class ActionRunner:
    """Runs one action invocation and gates each turn it emits."""

    def __init__(
        self,
        hooks: HookBus,
        evaluators: list[Evaluator] | None = None,
        max_continuations: int = DEFAULT_MAX_CONTINUATIONS,
    ):
        self._hooks = hooks
        self._evaluators = evaluators if evaluators is not None else []
        self.max_continuations = max_continuations

    async def run(
        self,
        action: Action,
        memory: "Memory",
        responses: list["Memory"],
        state: "ConversationState",
        send_turn: Callable[[GeneratedContent], Awaitable["Memory"]],
    ) -> list["Memory"]:
        """Invoke ``action`` and return the memories its turns created.

        ``send_turn`` sends one turn over the channel and persists it
        (``in_reply_to`` = ``memory``). New memories are appended to
        ``responses`` as they are created, so later hooks see them.
        """
        created: list["Memory"] = []
        turns = 0
        stopped = False
        over_limit = False

        async def send(content: GeneratedContent) -> list["Memory"]:
            nonlocal turns, stopped, over_limit
            if stopped:
                logger.debug(f"Action {action.name}: continuation ignored (stopped)")
                return []

            turns += 1
            if turns > self.max_continuations:
                stopped = over_limit = True
                raise ContinuationLimitExceeded(action.name, self.max_continuations)

            pre = GenerationContext(memory=memory, responses=responses, state=state)
            if not await self._hooks.dispatch(HookKind.BEFORE_ACTION, pre):
                logger.info(f"Action {action.name}: before-action hook suppressed turn {turns}")
                stopped = True
                return []

            new_memory = await send_turn(content)
            created.append(new_memory)
            responses.append(new_memory)
            await run_evaluators(self._evaluators, new_memory, state, True)

            post = ContentContext(
                memory=memory, responses=responses, state=state, content=content,
            )
            if not await self._hooks.dispatch(HookKind.AFTER_ACTION, post):
                logger.info(f"Action {action.name}: after-action hook stopped further turns")
                stopped = True
            return [new_memory]

        options: dict[str, Any] = {"responses": list(responses)}
        handled = await action.handler(state, memory, options, send)

        if over_limit:
            # The handler may have swallowed the error; the cap still holds
            raise ContinuationLimitExceeded(action.name, self.max_continuations)
        if not handled:
            logger.info(f"Action {action.name} reported it did not handle memory {memory.id}")
        logger.debug(f"Action {action.name}: {len(created)} continuation turn(s)")
        return created


# ── Built-in actions ─────────────────────────────────────────────────────


def ignore_action() -> Action:
    """IGNORE: stay silent. The initial reply is not sent."""

    async def handler(state, memory, options, send) -> bool:
        logger.debug(f"IGNORE for memory {memory.id}")
        return True

    return Action(
        kind=ActionKind.IGNORE,
        handler=handler,
        description="Ignore the message and do not reply.",
        suppress_initial_message=True,
    )


def continue_action(
    generator: "Generator",
    composer: "StateComposer",
    max_rounds: int = MAX_CONTINUE_ROUNDS,
) -> Action:
    """CONTINUE: keep talking after the initial reply.

    Generates a follow-up turn, sends it, and goes again while the follow-up
    itself asks to CONTINUE, up to ``max_rounds`` rounds.
    """

    async def handler(state, memory, options, send) -> bool:
        for round_no in range(max_rounds):
            await composer.refresh(state)
            try:
                content = await generator.generate(state, memory)
            except Exception as e:
                raise GenerationFailure(
                    f"CONTINUE round {round_no + 1} failed for memory {memory.id}: {e}"
                ) from e
            if content is None or content.is_blank:
                break
            sent = await send(content)
            if not sent:
                break
            if ActionKind.parse(content.action) is not ActionKind.CONTINUE:
                break
            logger.debug(f"CONTINUE round {round_no + 1} asked for another round")
        return True

    return Action(
        kind=ActionKind.CONTINUE,
        handler=handler,
        description="Send a follow-up message after the initial reply.",
    )
