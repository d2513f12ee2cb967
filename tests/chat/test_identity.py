"""Tests for the identity codec."""

import pytest

from aya.chat.identity import (
    Identity,
    IdentityKind,
    coerce_identity,
    decode_identity,
    encode_identity,
)
from aya.errors import InvalidIdentityFormat, ValidationError

ADDR = "0x" + "ab" * 20


class TestDecodeIdentity:
    def test_address(self):
        ident = decode_identity(ADDR)
        assert ident.kind is IdentityKind.ADDRESS
        assert ident.value == ADDR

    def test_address_is_lowercased(self):
        ident = decode_identity(ADDR.upper().replace("0X", "0x"))
        assert ident.value == ADDR
        assert ident == decode_identity(ADDR)

    def test_agent(self):
        ident = decode_identity("agent-42")
        assert ident.kind is IdentityKind.AGENT
        assert ident.is_agent

    def test_agent_case_is_canonicalised(self):
        assert decode_identity("Agent-Bob_1").value == "agent-bob_1"

    @pytest.mark.parametrize("value", [
        "",
        "0x123",
        "0x" + "g" * 40,
        "0x" + "a" * 41,
        "agent-",
        "agent-has space",
        "bob",
        "user:0x" + "a" * 40,
    ])
    def test_rejects_malformed(self, value):
        with pytest.raises(InvalidIdentityFormat):
            decode_identity(value)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidIdentityFormat):
            decode_identity(42)  # type: ignore[arg-type]

    def test_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            decode_identity("nope")


class TestIdentityCodec:
    @pytest.mark.parametrize("value", [ADDR, "agent-x", "agent-a_b-c"])
    def test_round_trip(self, value):
        ident = decode_identity(value)
        assert decode_identity(encode_identity(ident)) == ident

    def test_encoding_is_stable_across_case(self):
        a = decode_identity("0x" + "AB" * 20)
        b = decode_identity("0x" + "ab" * 20)
        assert encode_identity(a) == encode_identity(b)
        assert hash(a) == hash(b)

    def test_address_constructor_rejects_agent(self):
        with pytest.raises(InvalidIdentityFormat):
            Identity.address("agent-1")

    def test_agent_constructor_adds_prefix(self):
        assert Identity.agent("7").value == "agent-7"
        assert Identity.agent("agent-7").value == "agent-7"

    def test_coerce_passes_identity_through(self):
        ident = decode_identity(ADDR)
        assert coerce_identity(ident) is ident
        assert coerce_identity(ADDR) == ident

    def test_str_is_canonical(self):
        assert str(decode_identity("AGENT-Z")) == "agent-z"
