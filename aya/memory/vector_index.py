"""VectorIndex — ChromaDB-backed semantic search.

One index per corpus: the runtime keeps one for document knowledge and one
for episodic memories. Collections use cosine space, so a hit's similarity
is ``1 - distance``. Hits at or below ``match_threshold`` are dropped and
the result is capped at ``limit``, best first.

The index is synchronous (ChromaDB is); ``search`` runs the query in a
worker thread so the event loop is not blocked.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Callable

from loguru import logger

from aya.memory.models import Memory, SearchHit

EmbeddingFn = Callable[[list[str]], list[list[float]]]

KNOWLEDGE_COLLECTION = "aya_knowledge"
MEMORY_COLLECTION = "aya_memories"


class VectorIndex:
    """A single ChromaDB collection exposed as a ``KnowledgeSearch``."""

    def __init__(
        self,
        collection: str = KNOWLEDGE_COLLECTION,
        *,
        client: Any = None,
        chroma_path: str | None = None,
        embedding_fn: EmbeddingFn | None = None,
        agent_id: str | None = None,
    ):
        import chromadb

        if client is None:
            client = (
                chromadb.PersistentClient(path=chroma_path)
                if chroma_path
                else chromadb.Client()
            )
        self._client = client
        self._embedding_fn = embedding_fn
        self._agent_id = agent_id
        self._collection = client.get_or_create_collection(
            name=collection,
            metadata={"hnsw:space": "cosine"},
            embedding_function=None,
        )

    # ── Writes ───────────────────────────────────────────────

    def add(
        self,
        text: str,
        *,
        item_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        embedding: list[float] | None = None,
    ) -> str:
        """Add one document. Re-adding an existing id overwrites it."""
        item_id = item_id or str(uuid.uuid4())
        meta: dict[str, Any] = {"created_at": time.time()}
        if self._agent_id:
            meta["agent_id"] = self._agent_id
        for key, value in (metadata or {}).items():
            # Chroma metadata only takes scalars
            if value is not None and isinstance(value, (str, int, float, bool)):
                meta[key] = value

        vector = embedding if embedding is not None else self._embed([text])[0]
        self._collection.upsert(
            ids=[item_id],
            documents=[text],
            metadatas=[meta],
            embeddings=[vector],
        )
        return item_id

    def add_memory(self, memory: Memory, embedding: list[float] | None = None) -> str:
        """Index a conversation memory for episodic recall."""
        return self.add(
            memory.text,
            item_id=memory.id,
            metadata={
                "room_id": memory.room_id,
                "user_id": memory.user_id,
                "source": memory.content.source,
            },
            embedding=embedding,
        )

    def delete(self, item_id: str) -> None:
        self._collection.delete(ids=[item_id])

    def count(self) -> int:
        return self._collection.count()

    # ── Search ───────────────────────────────────────────────

    async def search(
        self, query: str, limit: int, match_threshold: float
    ) -> list[SearchHit]:
        return await asyncio.to_thread(self.search_sync, query, limit, match_threshold)

    def search_sync(
        self,
        query: str,
        limit: int,
        match_threshold: float,
        *,
        query_embedding: list[float] | None = None,
    ) -> list[SearchHit]:
        if limit <= 0 or (not query.strip() and query_embedding is None):
            return []
        total = self._collection.count()
        if total == 0:
            return []

        vector = query_embedding if query_embedding is not None else self._embed([query])[0]
        kwargs: dict[str, Any] = {
            "query_embeddings": [vector],
            "n_results": min(limit, total),
            "include": ["documents", "metadatas", "distances"],
        }
        if self._agent_id:
            kwargs["where"] = {"agent_id": self._agent_id}

        result = self._collection.query(**kwargs)

        hits: list[SearchHit] = []
        ids = result.get("ids", [[]])[0]
        docs = result.get("documents", [[]])[0]
        metas = result.get("metadatas", [[]])[0]
        dists = result.get("distances", [[]])[0]
        for item_id, doc, meta, dist in zip(ids, docs, metas, dists):
            similarity = 1.0 - float(dist)
            if similarity <= match_threshold:
                continue
            hits.append(SearchHit(
                id=item_id,
                text=doc or "",
                similarity=similarity,
                metadata=dict(meta or {}),
            ))

        hits.sort(key=lambda h: h.similarity, reverse=True)
        logger.debug(
            f"VectorIndex: {len(hits)}/{len(ids)} hits above {match_threshold} "
            f"for '{query[:40]}'"
        )
        return hits[:limit]

    def _embed(self, texts: list[str]) -> list[list[float]]:
        if self._embedding_fn is None:
            raise RuntimeError("VectorIndex has no embedding function configured")
        return self._embedding_fn(texts)
