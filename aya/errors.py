"""Error taxonomy for the aya runtime.

Validation errors are raised by the codecs and wire schemas and are dropped
(with a log line) at the transport boundary. The remaining failures abort the
pipeline for the message being processed and propagate to the caller.

Hook suppression is not an error: the pipeline reports it through
``PipelineResult.outcome``.
"""

from __future__ import annotations


class AyaError(Exception):
    """Base class for all aya errors."""


# ── Validation ───────────────────────────────────────────────────────────


class ValidationError(AyaError):
    """Malformed identity, channel or message payload."""


class InvalidIdentityFormat(ValidationError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid identity format: {value!r}")
        self.value = value


class InvalidChannelFormat(ValidationError):
    def __init__(self, value: object, reason: str = "") -> None:
        detail = f" ({reason})" if reason else ""
        super().__init__(f"Invalid channel format: {value!r}{detail}")
        self.value = value
        self.reason = reason


class InvalidMessagePayload(ValidationError):
    """Inbound transport payload did not match the message schema."""


# ── Pipeline failures ────────────────────────────────────────────────────


class GenerationFailure(AyaError):
    """The generation step raised; no reply was sent for this message."""


class EmbeddingFailure(AyaError):
    """The embedding backend failed or returned vectors of the wrong size."""


class PersistenceFailure(AyaError):
    """A memory or account write failed.

    When raised after an outbound send, the conversation history is missing
    a turn the channel already shows.
    """


class TransportSendFailure(AyaError):
    """Sending a message over the channel failed.

    Action chains are at-most-once with gaps: earlier continuations may have
    been sent and persisted, the failed one was neither.
    """


# ── Actions ──────────────────────────────────────────────────────────────


class ActionRegistrationError(AyaError):
    """Action rejected at registration time (unknown kind or duplicate)."""


class ContinuationLimitExceeded(AyaError):
    """An action emitted more continuation turns than allowed."""

    def __init__(self, action: str, limit: int) -> None:
        super().__init__(
            f"Action {action} exceeded {limit} continuation turns"
        )
        self.action = action
        self.limit = limit
