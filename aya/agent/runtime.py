"""Agent runtime: owns the hook bus, actions, evaluators and the pipeline.

It:
1. Receives hydrated messages from attached channels
2. Serialises them per channel (optional)
3. Runs each through the MessageProcessor
4. Exposes the hook / action / evaluator registration API
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from loguru import logger

from aya.agent.actions import Action, ActionRegistry, ActionRunner, continue_action, ignore_action
from aya.agent.channel_queue import ChannelQueue
from aya.agent.evaluators import Evaluator
from aya.agent.hooks import HookBus, HookHandler, HookKind
from aya.agent.message_processor import MessageProcessor, PipelineResult
from aya.agent.state import RetrievalSettings, StateComposer
from aya.channels.base import BaseChannel, Transport
from aya.chat.channel import Channel, encode_channel
from aya.chat.identity import decode_identity
from aya.chat.models import HydratedMessage
from aya.config.schema import AyaConfig
from aya.memory.models import SOURCE_AGENTCOIN, Memory, user_id_for
from aya.memory.store import InMemoryStore, KnowledgeSearch, MemoryStore
from aya.providers.base import Generator


class AgentRuntime:
    """One agent, one identity, one hook bus."""

    def __init__(
        self,
        config: AyaConfig,
        *,
        transport: Transport,
        generator: Generator,
        store: MemoryStore | None = None,
        knowledge: KnowledgeSearch | None = None,
        memories: KnowledgeSearch | None = None,
        memory_index: Any = None,
        hooks: HookBus | None = None,
        evaluators: list[Evaluator] | None = None,
        actions: list[Action] | None = None,
        source: str = SOURCE_AGENTCOIN,
    ):
        self.config = config
        self.identity = decode_identity(config.agent.identity)
        self.agent_id = config.agent.agent_id or user_id_for(self.identity)
        self.agent_name = config.agent.name
        self.source = source

        self.transport = transport
        self.generator = generator
        if store is None:
            memory_dir = config.storage.memory_dir
            store = InMemoryStore(Path(memory_dir).expanduser() if memory_dir else None)
        self.store = store
        self.memory_index = memory_index

        self.hooks = hooks or HookBus()
        self.actions = ActionRegistry()
        self.evaluators: list[Evaluator] = list(evaluators or [])

        r = config.retrieval
        self.composer = StateComposer(
            self.store,
            agent_id=self.agent_id,
            agent_name=self.agent_name,
            knowledge=knowledge,
            memories=memories,
            settings=RetrievalSettings(
                conversation_length=r.conversation_length,
                knowledge_limit=r.knowledge_limit,
                knowledge_threshold=r.knowledge_threshold,
                memory_limit=r.memory_limit,
                memory_threshold=r.memory_threshold,
            ),
        )
        self.runner = ActionRunner(
            self.hooks, self.evaluators, config.pipeline.max_continuations,
        )
        self.processor = MessageProcessor(self)
        self.queue: ChannelQueue | None = (
            ChannelQueue(config.pipeline.channel_queue_limit)
            if config.pipeline.serialize_per_channel
            else None
        )
        self._channels: list[BaseChannel] = []

        if config.pipeline.builtin_actions:
            self.actions.register(ignore_action())
            self.actions.register(continue_action(self.generator, self.composer))
        for action in actions or []:
            self.actions.register(action)

        logger.info(f"Runtime ready: {self.agent_name} as {self.identity} ({self.agent_id})")

    # ── Registration API ──────────────────────────────────────────────

    def on(self, kind: HookKind | str, handler: HookHandler) -> None:
        self.hooks.on(kind, handler)

    def off(self, kind: HookKind | str, handler: HookHandler) -> int:
        return self.hooks.off(kind, handler)

    def register(self, kind: str, item: Any) -> None:
        """Register an ``action`` or an ``evaluator``."""
        if kind == "action":
            self.actions.register(item)
        elif kind == "evaluator":
            self.evaluators.append(item)
            logger.info(f"Registered evaluator: {getattr(item, 'name', item)}")
        else:
            raise ValueError(f"Unknown registration kind: {kind}")

    # ── Channels ──────────────────────────────────────────────────────

    def attach(self, channel: BaseChannel) -> None:
        """Route a channel's inbound messages into this runtime."""
        channel.set_handler(self.handle_inbound)
        self._channels.append(channel)

    async def start(self) -> None:
        for channel in self._channels:
            await channel.start()

    async def stop(self) -> None:
        for channel in self._channels:
            try:
                await channel.stop()
            except Exception as e:
                logger.warning(f"Error stopping channel {channel.name}: {e}")
        if self.queue is not None:
            await self.queue.close()

    # ── Inbound ───────────────────────────────────────────────────────

    async def handle_inbound(
        self, channel: Channel, hydrated: HydratedMessage,
    ) -> PipelineResult | None:
        """Process a message, behind earlier messages of the same channel."""
        if self.queue is None:
            return await self.processor.process(hydrated, channel)

        future = self.queue.submit(
            encode_channel(channel),
            lambda: self.processor.process(hydrated, channel),
        )
        try:
            return await future
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if future.cancelled() and not (task and task.cancelling()):
                logger.info(f"Message dropped from full queue for {channel}")
                return None
            raise

    # ── Episodic indexing ─────────────────────────────────────────────

    async def index_memory(self, memory: Memory) -> None:
        """Add a fresh memory to the episodic index, if one is configured."""
        if self.memory_index is None or not memory.text.strip():
            return
        try:
            await asyncio.to_thread(self.memory_index.add_memory, memory)
        except Exception as e:
            logger.warning(f"Failed to index memory {memory.id}: {e}")


def create_runtime(config: AyaConfig, **kwargs: Any) -> AgentRuntime:
    """Wire a production runtime from config.

    agentcoin HTTP channel as transport, LiteLLM for generation, and two
    ChromaDB indexes (knowledge + episodic memories) sharing one embedder.
    Keyword arguments are passed through to ``AgentRuntime``.
    """
    import chromadb

    from aya.channels.agentcoin import AgentcoinChannel
    from aya.memory.embeddings import Embeddings
    from aya.memory.vector_index import KNOWLEDGE_COLLECTION, MEMORY_COLLECTION, VectorIndex
    from aya.providers.litellm_provider import LiteLLMGenerator

    identity = decode_identity(config.agent.identity)
    agent_id = config.agent.agent_id or user_id_for(identity)

    embeddings = Embeddings(
        model=config.llm.embedding_model,
        api_key=config.llm.api_key,
        api_base=config.llm.api_base,
    )
    chroma_path = config.storage.chroma_path
    client = (
        chromadb.PersistentClient(path=str(Path(chroma_path).expanduser()))
        if chroma_path
        else chromadb.Client()
    )
    knowledge = VectorIndex(
        KNOWLEDGE_COLLECTION, client=client, embedding_fn=embeddings, agent_id=agent_id,
    )
    memories = VectorIndex(
        MEMORY_COLLECTION, client=client, embedding_fn=embeddings, agent_id=agent_id,
    )

    channel = AgentcoinChannel(identity, config.api)
    runtime = AgentRuntime(
        config,
        transport=channel,
        generator=LiteLLMGenerator.from_config(config.llm),
        knowledge=kwargs.pop("knowledge", knowledge),
        memories=kwargs.pop("memories", memories),
        memory_index=kwargs.pop("memory_index", memories),
        **kwargs,
    )
    runtime.attach(channel)
    return runtime
