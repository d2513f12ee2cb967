"""Wire schemas for the agentcoin.fun chat API.

Inbound socket payloads are validated here before anything else touches
them. Field names follow the API's camelCase on the wire and snake_case in
Python (``populate_by_name``), and every model is frozen: a message is
immutable once the transport has assigned it an id.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    field_validator,
)

from aya.chat.channel import Channel, channel_from_wire, channel_to_wire
from aya.chat.identity import Identity, coerce_identity, encode_identity
from aya.errors import ValidationError as AyaValidationError


def _validate_identity(value: Any) -> Identity:
    try:
        return coerce_identity(value)
    except AyaValidationError as e:
        # pydantic only wraps ValueError / AssertionError into its own error
        raise ValueError(str(e)) from e


def _validate_channel(value: Any) -> Channel:
    try:
        return channel_from_wire(value)
    except AyaValidationError as e:
        raise ValueError(str(e)) from e


IdentityField = Annotated[
    Identity,
    PlainValidator(_validate_identity),
    PlainSerializer(encode_identity, return_type=str),
]

ChannelField = Annotated[
    Channel,
    PlainValidator(_validate_channel),
    PlainSerializer(channel_to_wire, return_type=dict),
]


class ChatStatus(str, Enum):
    """Out-of-band presence signal sent per channel."""

    IDLE = "idle"
    THINKING = "thinking"
    TYPING = "typing"


class WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Message(WireModel):
    id: int
    client_uuid: str = Field(alias="clientUuid")
    channel: ChannelField
    sender: IdentityField
    text: str
    open_graph_id: str | None = Field(default=None, alias="openGraphId")
    balance: int | None = None
    coin_address: IdentityField | None = Field(default=None, alias="coinAddress")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("balance", mode="before")
    @classmethod
    def _parse_balance(cls, v: Any) -> Any:
        # Balances arrive as decimal strings (bigints on the API side)
        if isinstance(v, str):
            return int(v)
        return v


class User(WireModel):
    id: int | None = None
    identity: IdentityField
    username: str = ""
    bio: str | None = None
    image: str | None = None


class OpenGraph(WireModel):
    id: str
    url: str
    kind: Literal["website", "image", "video", "tweet", "launch"] = "website"
    data: str = ""
    created_at: datetime | None = Field(default=None, alias="createdAt")


class HydratedMessage(WireModel):
    """A message together with what the API knows about its sender."""

    message: Message | None = None
    user: User | None = None
    open_graph: OpenGraph | None = Field(default=None, alias="openGraph")


class MessageEvent(WireModel):
    """Event delivered on the agent's ``user:{identity}`` topic."""

    kind: Literal["message", "status"]
    channel: ChannelField
    data: Any = None


class CreateMessage(WireModel):
    """Body of ``POST /api/chat/send``."""

    client_uuid: str = Field(alias="clientUuid")
    channel: ChannelField
    sender: IdentityField
    text: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class StatusUpdate(WireModel):
    """Body of ``POST /api/chat/status``."""

    channel: ChannelField
    status: ChatStatus

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
