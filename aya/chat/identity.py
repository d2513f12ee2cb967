"""Participant identities and their canonical string form.

An identity is either a wallet address (``0x`` + 40 hex digits) or an
opaque agent identifier (``agent-<id>``). The canonical form is lowercase,
so two identities compare equal iff their canonical strings do. The two
grammars share no prefix, which keeps the encoding collision-free.

Canonical strings are used as user-id material and inside channel keys,
so nothing here may depend on anything but the input value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from aya.errors import InvalidIdentityFormat

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-f]{40}$", re.IGNORECASE)
AGENT_PATTERN = re.compile(r"^agent-[a-z0-9_-]+$", re.IGNORECASE)

AGENT_PREFIX = "agent-"


class IdentityKind(str, Enum):
    ADDRESS = "address"
    AGENT = "agent"


@dataclass(frozen=True, order=True)
class Identity:
    """A chat participant. ``value`` is always the canonical string."""

    value: str
    kind: IdentityKind

    def __post_init__(self) -> None:
        # Normalise so that equality/hash follow the canonical form
        object.__setattr__(self, "value", self.value.lower())

    @classmethod
    def address(cls, value: str) -> Identity:
        """Build an address identity, validating the grammar."""
        identity = decode_identity(value)
        if identity.kind is not IdentityKind.ADDRESS:
            raise InvalidIdentityFormat(value)
        return identity

    @classmethod
    def agent(cls, agent_id: str) -> Identity:
        """Build an agent identity from a bare id or a prefixed one."""
        raw = agent_id if agent_id.lower().startswith(AGENT_PREFIX) else AGENT_PREFIX + agent_id
        identity = decode_identity(raw)
        if identity.kind is not IdentityKind.AGENT:
            raise InvalidIdentityFormat(agent_id)
        return identity

    @property
    def is_agent(self) -> bool:
        return self.kind is IdentityKind.AGENT

    def __str__(self) -> str:
        return self.value


def encode_identity(identity: Identity) -> str:
    """Canonical, lowercase string form of an identity."""
    return identity.value


def decode_identity(value: str) -> Identity:
    """Parse an identity string.

    Raises:
        InvalidIdentityFormat: if ``value`` matches neither grammar.
    """
    if not isinstance(value, str):
        raise InvalidIdentityFormat(value)
    text = value.strip()
    if ADDRESS_PATTERN.match(text):
        return Identity(text, IdentityKind.ADDRESS)
    if AGENT_PATTERN.match(text):
        return Identity(text, IdentityKind.AGENT)
    raise InvalidIdentityFormat(value)


def coerce_identity(value: object) -> Identity:
    """Accept an Identity or its string form (used by the wire schemas)."""
    if isinstance(value, Identity):
        return value
    return decode_identity(value)  # type: ignore[arg-type]
