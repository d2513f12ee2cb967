"""Embedding function shared by the knowledge and episodic indexes.

A ChromaDB collection holds vectors of a single size, so the backend is
chosen once at construction and never switched mid-run:

    provider model (e.g. openai/text-embedding-3-small) → litellm.embedding()
    LOCAL_MODEL                                         → ChromaDB's bundled ONNX model

The first batch pins the dimension; a later batch of another size raises
``EmbeddingFailure`` instead of reaching the collection.
"""

from __future__ import annotations

from typing import Any

import litellm
from loguru import logger

from aya.errors import EmbeddingFailure

DEFAULT_MODEL = "openai/text-embedding-3-small"
LOCAL_MODEL = "chroma/default"


class Embeddings:
    """Callable ``texts -> vectors`` for ``VectorIndex``.

    Usage:
        emb = Embeddings(model="openai/text-embedding-3-small", api_key="...")
        vectors = emb(["gm", "wen moon"])
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        api_base: str | None = None,
        *,
        dimension: int | None = None,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self._dimension = dimension
        self._local = None
        if model == LOCAL_MODEL:
            from chromadb.utils.embedding_functions import DefaultEmbeddingFunction

            self._local = DefaultEmbeddingFunction()

    def __call__(self, texts: list[str]) -> list[list[float]]:
        return self.embed(texts)

    @property
    def is_local(self) -> bool:
        return self._local is not None

    @property
    def dimension(self) -> int | None:
        """Pinned vector size (None until the first batch unless given)."""
        return self._dimension

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts``, one vector per text.

        Raises:
            EmbeddingFailure: the backend failed, or a vector does not match
                the pinned dimension.
        """
        if not texts:
            return []

        try:
            raw = self._local(texts) if self._local is not None else self._remote(texts)
        except Exception as e:
            logger.error(f"Embedding via {self.model} failed: {e}")
            raise EmbeddingFailure(f"{self.model}: {e}") from e

        # numpy float32 from either backend; ChromaDB wants native floats
        vectors = [[float(x) for x in v] for v in raw]
        if len(vectors) != len(texts):
            raise EmbeddingFailure(
                f"{self.model} returned {len(vectors)} vectors for {len(texts)} texts"
            )
        self._check_dimension(vectors)
        return vectors

    def _remote(self, texts: list[str]) -> list[Any]:
        kwargs: dict[str, Any] = {"model": self.model, "input": texts}
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        response = litellm.embedding(**kwargs)
        return [item["embedding"] for item in response.data]

    def _check_dimension(self, vectors: list[list[float]]) -> None:
        for v in vectors:
            if self._dimension is None:
                self._dimension = len(v)
                logger.info(f"Embedding dimension pinned at {self._dimension} ({self.model})")
            elif len(v) != self._dimension:
                raise EmbeddingFailure(
                    f"{self.model} returned a {len(v)}-dim vector, "
                    f"index expects {self._dimension}"
                )
