"""Conversation state: what the model gets to see for one inbound message.

The composer merges three sources into one ``ConversationState``:

    1. recent room history (from the memory store)
    2. document knowledge  (semantic search, own threshold + limit)
    3. episodic memories   (semantic search, own threshold + limit)

Both searches are skipped when the triggering memory was authored by the
agent itself, and episodic hits that are the trigger or already sit in the
recent history are dropped. The state is never persisted; it lives for one
pipeline run and is refreshed after the agent's reply lands in history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from aya.memory.models import Memory, SearchHit
from aya.memory.store import KnowledgeSearch, MemoryStore


@dataclass
class RetrievalSettings:
    conversation_length: int = 32
    knowledge_limit: int = 5
    knowledge_threshold: float = 0.5
    memory_limit: int = 5
    memory_threshold: float = 0.5


@dataclass
class ConversationState:
    """Ephemeral per-message context. Hook handlers may mutate ``values``."""

    agent_id: str
    agent_name: str
    room_id: str
    sender_id: str
    recent_messages: list[Memory] = field(default_factory=list)
    knowledge: list[SearchHit] = field(default_factory=list)
    memories: list[SearchHit] = field(default_factory=list)
    values: dict[str, Any] = field(default_factory=dict)

    def format_recent_messages(self, names: dict[str, str] | None = None) -> str:
        """Render history as ``name: text`` lines, oldest first."""
        names = names or {}
        lines = []
        for m in self.recent_messages:
            if m.user_id == self.agent_id:
                author = self.agent_name
            else:
                author = names.get(m.user_id, m.user_id[:8])
            line = f"{author}: {m.text}"
            if m.content.action:
                line += f" ({m.content.action})"
            lines.append(line)
        return "\n".join(lines)

    def format_knowledge(self) -> str:
        if not self.knowledge:
            return ""
        return "\n".join(f"- {h.text}" for h in self.knowledge)

    def format_memories(self) -> str:
        if not self.memories:
            return ""
        return "\n".join(f"- {h.text}" for h in self.memories)


class StateComposer:
    """Builds and refreshes ConversationState for the pipeline."""

    def __init__(
        self,
        store: MemoryStore,
        *,
        agent_id: str,
        agent_name: str,
        knowledge: KnowledgeSearch | None = None,
        memories: KnowledgeSearch | None = None,
        settings: RetrievalSettings | None = None,
    ):
        self._store = store
        self._agent_id = agent_id
        self._agent_name = agent_name
        self._knowledge = knowledge
        self._memories = memories
        self.settings = settings or RetrievalSettings()

    async def compose(self, memory: Memory, **values: Any) -> ConversationState:
        """Compose state for ``memory`` (already persisted)."""
        s = self.settings
        state = ConversationState(
            agent_id=self._agent_id,
            agent_name=self._agent_name,
            room_id=memory.room_id,
            sender_id=memory.user_id,
            values=dict(values),
        )
        state.recent_messages = await self._store.get_recent(
            memory.room_id, s.conversation_length
        )

        # The agent's own turns never trigger retrieval
        if memory.is_from(self._agent_id) or not memory.text.strip():
            return state

        state.knowledge = await self._lookup(
            "knowledge", self._knowledge, memory.text,
            s.knowledge_limit, s.knowledge_threshold,
        )
        # Episodic hits never repeat the trigger or what is already in history
        seen = {memory.id} | {m.id for m in state.recent_messages}
        state.memories = await self._lookup(
            "memories", self._memories, memory.text,
            s.memory_limit, s.memory_threshold, exclude=seen,
        )
        logger.debug(
            f"Composed state for room {memory.room_id}: "
            f"{len(state.recent_messages)} recent, {len(state.knowledge)} knowledge, "
            f"{len(state.memories)} memories"
        )
        return state

    async def refresh(self, state: ConversationState) -> ConversationState:
        """Re-read recent history after the agent has spoken."""
        state.recent_messages = await self._store.get_recent(
            state.room_id, self.settings.conversation_length
        )
        return state

    @staticmethod
    async def _lookup(
        label: str,
        source: KnowledgeSearch | None,
        query: str,
        limit: int,
        threshold: float,
        exclude: set[str] | None = None,
    ) -> list[SearchHit]:
        if source is None or limit <= 0:
            return []
        exclude = exclude or set()
        hits = await source.search(
            query, limit=limit + len(exclude), match_threshold=threshold,
        )
        # Threshold and cap apply whatever the source returned
        kept = [h for h in hits if h.similarity > threshold and h.id not in exclude]
        if len(kept) != len(hits):
            logger.debug(
                f"Composer: dropped {len(hits) - len(kept)} {label} hits "
                f"(below {threshold} or already in context)"
            )
        return kept[:limit]
