"""Data models for persisted conversation turns.

A Memory is the durable record of one turn. Its id is a pure function of
the canonical channel and the transport-assigned message id, so a redelivered
message maps onto the row that already exists instead of creating a new one.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from aya.chat.channel import Channel, encode_channel
from aya.chat.identity import Identity, encode_identity

# Fixed namespace for every id derived by the runtime
AYA_NAMESPACE = uuid.UUID("6f1c4b9e-3a57-5d1e-9c2a-8e0b7d4f2a61")

SOURCE_AGENTCOIN = "agentcoin"


def stable_uuid(key: str) -> str:
    """Deterministic UUID string for an arbitrary key."""
    return str(uuid.uuid5(AYA_NAMESPACE, key))


def room_id_for(channel: Channel) -> str:
    return stable_uuid(encode_channel(channel))


def user_id_for(identity: Identity) -> str:
    return stable_uuid(encode_identity(identity))


def memory_id_for(channel: Channel, message_id: int | str) -> str:
    """Memory id for a transport message (same inputs, same id)."""
    return stable_uuid(f"{encode_channel(channel)}:{message_id}")


@dataclass
class MemoryContent:
    """What was said, plus where it came from."""

    text: str
    source: str = SOURCE_AGENTCOIN
    in_reply_to: str | None = None
    action: str | None = None
    external_message_id: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"text": self.text, "source": self.source}
        if self.in_reply_to:
            d["inReplyTo"] = self.in_reply_to
        if self.action:
            d["action"] = self.action
        if self.external_message_id is not None:
            d["externalMessageId"] = self.external_message_id
        d.update(self.extra)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MemoryContent:
        known = {"text", "source", "inReplyTo", "action", "externalMessageId"}
        return cls(
            text=d.get("text", ""),
            source=d.get("source", SOURCE_AGENTCOIN),
            in_reply_to=d.get("inReplyTo"),
            action=d.get("action"),
            external_message_id=d.get("externalMessageId"),
            extra={k: v for k, v in d.items() if k not in known},
        )


@dataclass(frozen=True)
class Memory:
    """One persisted conversational turn. Never mutated after creation."""

    id: str
    agent_id: str
    user_id: str
    room_id: str
    content: MemoryContent
    created_at: float = field(default_factory=time.time)
    unique: bool = True

    @property
    def text(self) -> str:
        return self.content.text

    def is_from(self, user_id: str) -> bool:
        return self.user_id == user_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "userId": self.user_id,
            "roomId": self.room_id,
            "content": self.content.to_dict(),
            "createdAt": self.created_at,
            "unique": self.unique,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Memory:
        return cls(
            id=d["id"],
            agent_id=d["agentId"],
            user_id=d["userId"],
            room_id=d["roomId"],
            content=MemoryContent.from_dict(d.get("content", {})),
            created_at=d.get("createdAt", time.time()),
            unique=d.get("unique", True),
        )


@dataclass
class Account:
    """A chat participant known to the runtime (user-identity link)."""

    user_id: str
    identity: Identity
    username: str = ""
    name: str = ""
    bio: str | None = None
    source: str = SOURCE_AGENTCOIN


@dataclass
class SearchHit:
    """One ranked semantic search result."""

    id: str
    text: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)
