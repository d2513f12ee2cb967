"""Identities, channels and chat wire schemas."""

from aya.chat.channel import (
    Channel,
    ChannelKind,
    CoinChannel,
    DMChannel,
    channel_from_wire,
    channel_to_wire,
    decode_channel,
    encode_channel,
)
from aya.chat.identity import Identity, IdentityKind, decode_identity, encode_identity

__all__ = [
    "Channel",
    "ChannelKind",
    "CoinChannel",
    "DMChannel",
    "Identity",
    "IdentityKind",
    "channel_from_wire",
    "channel_to_wire",
    "decode_channel",
    "decode_identity",
    "encode_channel",
    "encode_identity",
]
