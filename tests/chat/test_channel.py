"""Tests for the channel codec (canonical strings + wire objects)."""

import pytest

from aya.chat.channel import (
    ChannelKind,
    CoinChannel,
    DMChannel,
    channel_from_wire,
    channel_to_wire,
    decode_channel,
    encode_channel,
)
from aya.chat.identity import Identity, decode_identity
from aya.errors import InvalidChannelFormat

ADDR_A = "0x" + "aa" * 20
ADDR_B = "0x" + "bb" * 20
TOKEN = "0x" + "cc" * 20


def coin(chain_id: int = 8453, address: str = TOKEN) -> CoinChannel:
    return CoinChannel(chain_id=chain_id, address=decode_identity(address))


# ── Coin channels ────────────────────────────────────────────────────────


class TestCoinChannel:
    def test_encode(self):
        assert encode_channel(coin()) == f"coin:8453:{TOKEN}"

    def test_decode(self):
        ch = decode_channel(f"coin:1:{TOKEN.upper().replace('0X', '0x')}")
        assert ch == coin(1)
        assert ch.kind is ChannelKind.COIN

    def test_round_trip(self):
        ch = coin(42161)
        assert decode_channel(encode_channel(ch)) == ch

    @pytest.mark.parametrize("chain_id", [0, -1, True])
    def test_rejects_bad_chain_id(self, chain_id):
        with pytest.raises(InvalidChannelFormat):
            CoinChannel(chain_id=chain_id, address=decode_identity(TOKEN))

    def test_rejects_agent_address(self):
        with pytest.raises(InvalidChannelFormat):
            CoinChannel(chain_id=1, address=decode_identity("agent-1"))


# ── DM channels ──────────────────────────────────────────────────────────


class TestDMChannel:
    def test_sorted_regardless_of_order(self):
        a, b = decode_identity(ADDR_A), decode_identity(ADDR_B)
        assert DMChannel(a, b) == DMChannel(b, a)
        assert encode_channel(DMChannel(b, a)) == f"dm:{ADDR_A}:{ADDR_B}"

    def test_decode_either_order(self):
        assert decode_channel(f"dm:{ADDR_B}:{ADDR_A}") == decode_channel(f"dm:{ADDR_A}:{ADDR_B}")

    def test_mixed_identity_kinds(self):
        ch = DMChannel(Identity.agent("bot"), decode_identity(ADDR_A))
        # "0x..." sorts before "agent-..."
        assert ch.first.value == ADDR_A
        assert decode_channel(encode_channel(ch)) == ch

    def test_includes_and_other(self):
        a, b = decode_identity(ADDR_A), decode_identity(ADDR_B)
        ch = DMChannel(a, b)
        assert ch.includes(a)
        assert not ch.includes(Identity.agent("z"))
        assert ch.other(a) == b
        assert ch.other(b) == a


# ── Malformed strings ────────────────────────────────────────────────────


@pytest.mark.parametrize("value", [
    "",
    "coin",
    "coin:8453",
    f"coin:8453:{TOKEN}:extra",
    f"room:8453:{TOKEN}",
    f"coin:abc:{TOKEN}",
    f"coin:-1:{TOKEN}",
    f"coin:²:{TOKEN}",
    f"coin:８４５３:{TOKEN}",
    "coin:8453:not-an-address",
    f"dm:{ADDR_A}:nobody",
])
def test_decode_rejects_malformed(value):
    with pytest.raises(InvalidChannelFormat):
        decode_channel(value)


def test_decode_rejects_non_string():
    with pytest.raises(InvalidChannelFormat):
        decode_channel(None)  # type: ignore[arg-type]


# ── Wire form ────────────────────────────────────────────────────────────


class TestWireForm:
    def test_coin_to_wire(self):
        assert channel_to_wire(coin()) == {"kind": "coin", "chainId": 8453, "address": TOKEN}

    def test_dm_to_wire(self):
        ch = decode_channel(f"dm:{ADDR_B}:{ADDR_A}")
        assert channel_to_wire(ch) == {
            "kind": "dm",
            "firstIdentity": ADDR_A,
            "secondIdentity": ADDR_B,
        }

    def test_from_wire_object(self):
        assert channel_from_wire({"kind": "coin", "chainId": 8453, "address": TOKEN}) == coin()

    def test_from_wire_string(self):
        assert channel_from_wire(f"coin:8453:{TOKEN}") == coin()

    def test_from_wire_channel_passthrough(self):
        ch = coin()
        assert channel_from_wire(ch) is ch

    def test_from_wire_unknown_kind(self):
        with pytest.raises(InvalidChannelFormat):
            channel_from_wire({"kind": "group"})

    def test_from_wire_bad_identity(self):
        with pytest.raises(InvalidChannelFormat):
            channel_from_wire({"kind": "dm", "firstIdentity": ADDR_A, "secondIdentity": "x"})

    def test_from_wire_non_ascii_chain_id(self):
        with pytest.raises(InvalidChannelFormat):
            channel_from_wire({"kind": "coin", "chainId": "²", "address": TOKEN})
