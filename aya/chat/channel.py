"""Chat channels and their wire encodings.

Two kinds of channel exist:

    coin:{chainId}:{address}       token room on a chain
    dm:{first}:{second}            direct messages between two identities

DM channels store their identities sorted by canonical string, so the
channel between X and Y is the same value whoever opened it. The canonical
string doubles as the pub/sub topic name and as room-key material.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from aya.chat.identity import Identity, IdentityKind, coerce_identity, decode_identity
from aya.errors import InvalidChannelFormat, InvalidIdentityFormat


class ChannelKind(str, Enum):
    COIN = "coin"
    DM = "dm"


@dataclass(frozen=True)
class CoinChannel:
    """Token room: every holder of ``address`` on ``chain_id`` talks here."""

    chain_id: int
    address: Identity

    def __post_init__(self) -> None:
        if isinstance(self.chain_id, bool) or not isinstance(self.chain_id, int) or self.chain_id <= 0:
            raise InvalidChannelFormat(self.chain_id, "chain id must be a positive integer")
        if self.address.kind is not IdentityKind.ADDRESS:
            raise InvalidChannelFormat(str(self.address), "coin channel needs a token address")

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.COIN

    def __str__(self) -> str:
        return encode_channel(self)


@dataclass(frozen=True)
class DMChannel:
    """Direct-message channel. ``first`` <= ``second`` by canonical string."""

    first: Identity
    second: Identity

    def __post_init__(self) -> None:
        if self.second.value < self.first.value:
            first, second = self.second, self.first
            object.__setattr__(self, "first", first)
            object.__setattr__(self, "second", second)

    @property
    def kind(self) -> ChannelKind:
        return ChannelKind.DM

    def includes(self, identity: Identity) -> bool:
        """True if ``identity`` is one of the two participants."""
        return identity == self.first or identity == self.second

    def other(self, identity: Identity) -> Identity:
        """The participant that is not ``identity``."""
        return self.second if identity == self.first else self.first

    def __str__(self) -> str:
        return encode_channel(self)


Channel = Union[CoinChannel, DMChannel]


# ── Canonical string codec ───────────────────────────────────────────────


def encode_channel(channel: Channel) -> str:
    """Canonical string for a channel (pure, deterministic)."""
    if isinstance(channel, CoinChannel):
        return f"coin:{channel.chain_id}:{channel.address.value}"
    if isinstance(channel, DMChannel):
        return f"dm:{channel.first.value}:{channel.second.value}"
    raise InvalidChannelFormat(channel, "not a channel")


def _is_chain_id(text: str) -> bool:
    # str.isdigit() also accepts superscripts and other non-ASCII digits
    return text.isascii() and text.isdigit()


def decode_channel(value: str) -> Channel:
    """Parse a canonical channel string.

    Identity order in DM strings does not matter; the result is sorted.

    Raises:
        InvalidChannelFormat: wrong segment count, unknown prefix, bad chain
            id or bad identity.
    """
    if not isinstance(value, str):
        raise InvalidChannelFormat(value, "not a string")

    parts = value.strip().split(":")
    if len(parts) != 3:
        raise InvalidChannelFormat(value, f"expected 3 segments, got {len(parts)}")

    prefix, left, right = parts
    prefix = prefix.lower()
    try:
        if prefix == ChannelKind.COIN.value:
            if not _is_chain_id(left):
                raise InvalidChannelFormat(value, "chain id must be a positive integer")
            return CoinChannel(chain_id=int(left), address=decode_identity(right))
        if prefix == ChannelKind.DM.value:
            return DMChannel(decode_identity(left), decode_identity(right))
    except InvalidIdentityFormat as e:
        raise InvalidChannelFormat(value, str(e)) from e

    raise InvalidChannelFormat(value, f"unknown channel kind '{prefix}'")


# ── Wire (JSON object) form ──────────────────────────────────────────────


def channel_to_wire(channel: Channel) -> dict[str, Any]:
    """JSON object form used by the chat API."""
    if isinstance(channel, CoinChannel):
        return {
            "kind": ChannelKind.COIN.value,
            "chainId": channel.chain_id,
            "address": channel.address.value,
        }
    return {
        "kind": ChannelKind.DM.value,
        "firstIdentity": channel.first.value,
        "secondIdentity": channel.second.value,
    }


def channel_from_wire(value: Any) -> Channel:
    """Accept a Channel, its canonical string, or the JSON object form."""
    if isinstance(value, (CoinChannel, DMChannel)):
        return value
    if isinstance(value, str):
        return decode_channel(value)
    if not isinstance(value, dict):
        raise InvalidChannelFormat(value, "expected object or string")

    kind = str(value.get("kind", "")).lower()
    try:
        if kind == ChannelKind.COIN.value:
            chain_id = value.get("chainId", value.get("chain_id"))
            if isinstance(chain_id, str) and _is_chain_id(chain_id):
                chain_id = int(chain_id)
            return CoinChannel(chain_id=chain_id, address=coerce_identity(value.get("address")))
        if kind == ChannelKind.DM.value:
            first = value.get("firstIdentity", value.get("first"))
            second = value.get("secondIdentity", value.get("second"))
            return DMChannel(coerce_identity(first), coerce_identity(second))
    except InvalidIdentityFormat as e:
        raise InvalidChannelFormat(value, str(e)) from e

    raise InvalidChannelFormat(value, f"unknown channel kind '{kind}'")
