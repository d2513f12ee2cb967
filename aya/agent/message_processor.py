"""Single message processing, from receipt to idle.

The pipeline per inbound message:
    1. Drop empty payloads and the agent's own echoes
    2. "thinking" status
    3. message hook (gate)
    4. Ensure account/room, persist the inbound memory (idempotent id)
    5. Compose conversation state
    6. Evaluators over the inbound memory
    7. before-generation hook (gate)
    8. "typing" status, generation
    9. after-generation hook (gate)
   10. Blank reply → idle
   11. Send + persist the reply unless the named action suppresses it
   12. No action → idle
   13. Action continuation loop, then idle

Every gate that returns False emits "idle" and ends the run; nothing
scheduled after the gate happens, nothing before it is undone. Generation,
persistence and send failures are logged and re-raised. The processor never
retries; redelivery is the transport's business.

All collaborators live on AgentRuntime; MessageProcessor reaches them
through a back-reference (self._runtime).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from aya.agent.actions import ActionKind
from aya.agent.evaluators import run_evaluators
from aya.agent.hooks import ContentContext, GenerationContext, HookKind, MessageReceived
from aya.chat.channel import Channel
from aya.chat.models import ChatStatus, HydratedMessage, Message
from aya.errors import (
    AyaError,
    GenerationFailure,
    PersistenceFailure,
    TransportSendFailure,
)
from aya.memory.models import (
    Account,
    Memory,
    MemoryContent,
    memory_id_for,
    room_id_for,
    user_id_for,
)
from aya.providers.base import GeneratedContent

if TYPE_CHECKING:
    from aya.agent.runtime import AgentRuntime
    from aya.agent.state import ConversationState


class Outcome(str, Enum):
    IGNORED = "ignored"          # empty payload
    SELF_ECHO = "self_echo"      # the agent's own message came back
    SUPPRESSED = "suppressed"    # a hook returned False
    EMPTY_REPLY = "empty_reply"  # generation produced blank text
    REPLIED = "replied"          # reply handled, no action
    ACTED = "acted"              # action loop ran


@dataclass
class PipelineResult:
    outcome: Outcome
    inbound: Memory | None = None
    responses: list[Memory] = field(default_factory=list)
    continuations: list[Memory] = field(default_factory=list)
    content: GeneratedContent | None = None
    suppressed_at: HookKind | None = None

    @property
    def memories(self) -> list[Memory]:
        """Every memory written by this run, inbound first."""
        out = [self.inbound] if self.inbound else []
        return out + self.responses + self.continuations


class MessageProcessor:
    """Drives one inbound message from receipt to idle."""

    def __init__(self, runtime: "AgentRuntime") -> None:
        self._runtime = runtime

    # ── Public entry point ────────────────────────────────────────────

    async def process(
        self,
        hydrated: HydratedMessage,
        channel: Channel | None = None,
    ) -> PipelineResult:
        """Process one hydrated message.

        Args:
            hydrated: The first element of the transport payload.
            channel: Channel the event arrived on (defaults to the message's).
        """
        message = hydrated.message
        if message is None:
            logger.info("Received empty message, nothing to do")
            return PipelineResult(Outcome.IGNORED)

        rt = self._runtime
        channel = channel or message.channel

        if message.sender == rt.identity:
            return PipelineResult(Outcome.SELF_ECHO)

        preview = message.text[:80] + "..." if len(message.text) > 80 else message.text
        logger.info(f"Processing message {message.id} from {message.sender} in {channel}: {preview}")

        try:
            return await self._run(channel, hydrated, message)
        except AyaError as e:
            logger.error(f"Pipeline aborted for message {message.id} in {channel}: {e}")
            raise

    # ── Pipeline ──────────────────────────────────────────────────────

    async def _run(
        self, channel: Channel, hydrated: HydratedMessage, message: Message,
    ) -> PipelineResult:
        rt = self._runtime
        cfg = rt.config.pipeline

        await self._status(channel, ChatStatus.THINKING)

        inbound: Memory | None = None
        if cfg.persist_before_message_hook:
            inbound = await self._persist_inbound(channel, hydrated)

        event = MessageReceived(
            text=message.text,
            sender=message.sender,
            source=rt.source,
            timestamp=message.created_at or datetime.now(timezone.utc),
        )
        if not await rt.hooks.dispatch(HookKind.MESSAGE, event):
            return await self._suppressed(channel, HookKind.MESSAGE, inbound)

        if inbound is None:
            inbound = await self._persist_inbound(channel, hydrated)

        state = await rt.composer.compose(inbound, agent_name=rt.agent_name)
        await run_evaluators(rt.evaluators, inbound, state, False)

        # before-generation gate
        pre = GenerationContext(memory=inbound, responses=[], state=state)
        if not await rt.hooks.dispatch(HookKind.BEFORE_GENERATION, pre):
            return await self._suppressed(channel, HookKind.BEFORE_GENERATION, inbound)

        await self._status(channel, ChatStatus.TYPING)
        content = await self._generate(state, inbound)

        # after-generation gate
        post = ContentContext(memory=inbound, responses=[], state=state, content=content)
        if not await rt.hooks.dispatch(HookKind.AFTER_GENERATION, post):
            result = await self._suppressed(channel, HookKind.AFTER_GENERATION, inbound)
            result.content = content
            return result

        if content.is_blank:
            logger.info(f"Generated reply for message {message.id} is empty, staying silent")
            await self._status(channel, ChatStatus.IDLE)
            return PipelineResult(Outcome.EMPTY_REPLY, inbound=inbound, content=content)

        action = rt.actions.resolve(content.action)

        responses: list[Memory] = []
        if action is not None and action.suppress_initial_message:
            logger.info(f"Action {action.name} suppresses the initial reply to {message.id}")
        else:
            reply = await self.send_as_agent(
                channel, content.text, in_reply_to=inbound.id, action=content.action,
            )
            await run_evaluators(rt.evaluators, reply, state, True)
            responses.append(reply)
            state = await rt.composer.refresh(state)

        if action is None:
            logger.debug(f"No action for message {message.id}, done")
            await self._status(channel, ChatStatus.IDLE)
            return PipelineResult(
                Outcome.REPLIED, inbound=inbound, responses=responses, content=content,
            )

        if action.kind is not ActionKind.CONTINUE:
            await self._status(channel, ChatStatus.THINKING)

        initial = list(responses)

        async def send_turn(turn: GeneratedContent) -> Memory:
            return await self.send_as_agent(
                channel, turn.text, in_reply_to=inbound.id, action=turn.action,
            )

        continuations = await rt.runner.run(action, inbound, responses, state, send_turn)

        await self._status(channel, ChatStatus.IDLE)
        return PipelineResult(
            Outcome.ACTED,
            inbound=inbound,
            responses=initial,
            continuations=continuations,
            content=content,
        )

    # ── Steps ─────────────────────────────────────────────────────────

    async def _persist_inbound(self, channel: Channel, hydrated: HydratedMessage) -> Memory:
        rt = self._runtime
        message = hydrated.message
        user = hydrated.user

        account = Account(
            user_id=user_id_for(message.sender),
            identity=message.sender,
            username=user.username if user else "",
            name=user.username if user else "",
            bio=user.bio if user else None,
            source=rt.source,
        )
        try:
            await rt.store.ensure_connection(account, room_id_for(channel))
        except Exception as e:
            raise PersistenceFailure(
                f"ensure_connection failed for {message.sender} in {channel}: {e}"
            ) from e

        return await self.save_message(channel, message)

    async def _generate(self, state: "ConversationState", inbound: Memory) -> GeneratedContent:
        try:
            content = await self._runtime.generator.generate(state, inbound)
        except Exception as e:
            raise GenerationFailure(f"generation failed for memory {inbound.id}: {e}") from e
        if content is None:
            return GeneratedContent(text="")
        return content

    async def send_as_agent(
        self,
        channel: Channel,
        text: str,
        *,
        in_reply_to: str | None = None,
        action: str | None = None,
    ) -> Memory:
        """Send ``text`` as the agent and persist the server's copy."""
        rt = self._runtime
        try:
            sent = await rt.transport.send_message(channel, text, rt.identity)
        except Exception as e:
            raise TransportSendFailure(f"send to {channel} failed: {e}") from e

        return await self.save_message(channel, sent, in_reply_to=in_reply_to, action=action)

    async def save_message(
        self,
        channel: Channel,
        message: Message,
        *,
        in_reply_to: str | None = None,
        action: str | None = None,
    ) -> Memory:
        """Persist ``message`` under its deterministic memory id."""
        rt = self._runtime
        if message.sender == rt.identity:
            user_id = rt.agent_id
        else:
            user_id = user_id_for(message.sender)

        memory = Memory(
            id=memory_id_for(channel, message.id),
            agent_id=rt.agent_id,
            user_id=user_id,
            room_id=room_id_for(channel),
            content=MemoryContent(
                text=message.text,
                source=rt.source,
                in_reply_to=in_reply_to,
                action=action,
                external_message_id=message.id,
            ),
        )
        try:
            created = await rt.store.create_memory(memory)
        except Exception as e:
            raise PersistenceFailure(f"create_memory failed for {memory.id}: {e}") from e

        if not created:
            logger.info(f"Message {message.id} in {channel} already stored as {memory.id}")
            existing = await rt.store.get_memory(memory.id)
            return existing or memory

        await rt.index_memory(memory)
        return memory

    # ── Helpers ───────────────────────────────────────────────────────

    async def _suppressed(
        self, channel: Channel, kind: HookKind, inbound: Memory | None,
    ) -> PipelineResult:
        logger.info(f"Pipeline suppressed at {kind.value} hook in {channel}")
        await self._status(channel, ChatStatus.IDLE)
        return PipelineResult(Outcome.SUPPRESSED, inbound=inbound, suppressed_at=kind)

    async def _status(self, channel: Channel, status: ChatStatus) -> None:
        """Best-effort status signal; failures never abort the pipeline."""
        try:
            await self._runtime.transport.send_status(channel, status)
        except Exception as e:
            logger.warning(f"Failed to send '{status.value}' status to {channel}: {e}")
