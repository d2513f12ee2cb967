"""Generator interface consumed by the message pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, TYPE_CHECKING, runtime_checkable

if TYPE_CHECKING:
    from aya.agent.state import ConversationState
    from aya.memory.models import Memory


@dataclass
class GeneratedContent:
    """What the model wants to say, and optionally which action to run."""

    text: str
    action: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_blank(self) -> bool:
        return not self.text or not self.text.strip()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GeneratedContent:
        text = d.get("text")
        action = d.get("action")
        return cls(
            text=text if isinstance(text, str) else "",
            action=action if isinstance(action, str) and action.strip() else None,
            extra={k: v for k, v in d.items() if k not in ("text", "action")},
        )


@runtime_checkable
class Generator(Protocol):
    async def generate(
        self, state: "ConversationState", memory: "Memory"
    ) -> GeneratedContent:
        """Produce a reply for ``memory`` given the composed state."""
        ...
