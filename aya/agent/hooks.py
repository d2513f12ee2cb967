"""Hook bus — suppressible checkpoints in the message pipeline.

Each hook kind has an ordered list of handlers. ``dispatch`` calls them in
registration order, awaiting each before the next, and stops at the first
handler that returns a falsy value. Handler exceptions are not caught here;
they abort the pipeline run that dispatched them.

Every kind has exactly one context type, so a handler never has to guess
which payload it received:

    message            → MessageReceived
    before-generation  → GenerationContext
    after-generation   → ContentContext   (adds the generated content)
    before-action      → GenerationContext
    after-action       → ContentContext   (adds the continuation content)

The bus is owned by one runtime instance; there is no module-level registry.
Dispatch iterates over a snapshot of the handler list, so handlers added or
removed while a dispatch is in flight only affect later dispatches.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, TYPE_CHECKING, Union

from loguru import logger

if TYPE_CHECKING:
    from aya.agent.state import ConversationState
    from aya.chat.identity import Identity
    from aya.memory.models import Memory
    from aya.providers.base import GeneratedContent


class HookKind(str, Enum):
    MESSAGE = "message"
    BEFORE_GENERATION = "before-generation"
    AFTER_GENERATION = "after-generation"
    BEFORE_ACTION = "before-action"
    AFTER_ACTION = "after-action"

    @classmethod
    def parse(cls, value: "HookKind | str") -> HookKind:
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown hook kind: {value!r}") from None


# ── Context variants ─────────────────────────────────────────────────────


@dataclass
class MessageReceived:
    """A validated inbound message, before anything is persisted."""

    text: str
    sender: "Identity"
    source: str
    timestamp: datetime


@dataclass
class GenerationContext:
    """Shared by reference with every handler of one dispatch."""

    memory: "Memory"
    responses: list["Memory"] = field(default_factory=list)
    state: "ConversationState | None" = None


@dataclass
class ContentContext(GenerationContext):
    content: "GeneratedContent | None" = None


HookContext = Union[MessageReceived, GenerationContext, ContentContext]
HookHandler = Callable[[Any], Union[bool, Awaitable[bool]]]

CONTEXT_TYPES: dict[HookKind, type] = {
    HookKind.MESSAGE: MessageReceived,
    HookKind.BEFORE_GENERATION: GenerationContext,
    HookKind.AFTER_GENERATION: ContentContext,
    HookKind.BEFORE_ACTION: GenerationContext,
    HookKind.AFTER_ACTION: ContentContext,
}


class HookBus:
    """Per-runtime registry of hook handlers."""

    def __init__(self) -> None:
        self._handlers: dict[HookKind, list[HookHandler]] = {k: [] for k in HookKind}

    def on(self, kind: HookKind | str, handler: HookHandler) -> None:
        """Append ``handler``. The same handler may be registered twice."""
        hook = HookKind.parse(kind)
        if not callable(handler):
            raise TypeError(f"Hook handler for {hook.value} is not callable")
        self._handlers[hook].append(handler)
        logger.debug(f"Hook registered: {hook.value} ({_handler_name(handler)})")

    def off(self, kind: HookKind | str, handler: HookHandler) -> int:
        """Remove every registration equal to ``handler``.

        Returns the number of entries removed (0 if it was never registered).
        """
        hook = HookKind.parse(kind)
        before = self._handlers[hook]
        kept = [h for h in before if h != handler]
        self._handlers[hook] = kept
        removed = len(before) - len(kept)
        if removed:
            logger.debug(f"Hook removed: {hook.value} ({_handler_name(handler)}) x{removed}")
        return removed

    def handlers(self, kind: HookKind | str) -> list[HookHandler]:
        return list(self._handlers[HookKind.parse(kind)])

    def count(self, kind: HookKind | str) -> int:
        return len(self._handlers[HookKind.parse(kind)])

    def clear(self) -> None:
        for hook in self._handlers:
            self._handlers[hook] = []

    async def dispatch(self, kind: HookKind | str, context: HookContext) -> bool:
        """Run handlers in order; False as soon as one returns falsy.

        Raises:
            TypeError: ``context`` is not the variant ``kind`` expects.
            Exception: whatever a handler raised, unchanged.
        """
        hook = HookKind.parse(kind)
        expected = CONTEXT_TYPES[hook]
        if not isinstance(context, expected):
            raise TypeError(
                f"Hook {hook.value} expects {expected.__name__}, "
                f"got {type(context).__name__}"
            )

        for handler in list(self._handlers[hook]):
            result = handler(context)
            if inspect.isawaitable(result):
                result = await result
            if not result:
                logger.info(f"Hook {hook.value} suppressed by {_handler_name(handler)}")
                return False
        return True


def _handler_name(handler: HookHandler) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__
