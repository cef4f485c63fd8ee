"""Embedding generation for ingestion and queries.

Handles:
- Query-time caching keyed on the exact question text
- Bounded concurrent embedding of chunks during ingestion
"""
import asyncio
import threading
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

import structlog

from docchat import config
from docchat.llm_client import OllamaClient, ollama_client

logger = structlog.get_logger()


class EmbeddingCache:
    """Thread-safe text -> vector cache with optional LRU bound."""

    def __init__(self, capacity: Optional[int] = None):
        """Initialize the cache.

        Args:
            capacity: Maximum number of entries; None or 0 keeps every entry
                for the life of the process
        """
        if capacity is not None and capacity < 0:
            raise ValueError(f"Cache capacity must be >= 0, got {capacity}")

        self.capacity = capacity or None
        self._entries: "OrderedDict[str, List[float]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[List[float]]:
        with self._lock:
            vector = self._entries.get(key)
            if vector is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return vector

    def put(self, key: str, vector: List[float]) -> None:
        with self._lock:
            self._entries[key] = vector
            self._entries.move_to_end(key)
            if self.capacity is not None:
                while len(self._entries) > self.capacity:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("embedding_cache_evicted", key_length=len(evicted))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class Embedder:
    """Turns text into vectors through the Ollama embedding endpoint."""

    def __init__(
        self,
        client: OllamaClient = None,
        model: str = None,
        cache: Optional[EmbeddingCache] = None,
    ):
        """Initialize the embedder.

        Args:
            client: Ollama client (default: shared module client)
            model: Embedding model name (default from config)
            cache: Query cache (default: sized from config.EMBED_CACHE_SIZE)
        """
        self.client = client or ollama_client
        self.model = model or config.EMBEDDING_MODEL
        self.cache = cache if cache is not None else EmbeddingCache(config.EMBED_CACHE_SIZE)

    async def embed(self, text: str) -> List[float]:
        """Embed one text without touching the cache."""
        return await self.client.embed(text, model=self.model)

    async def embed_query(self, text: str) -> List[float]:
        """Embed a question, reusing the vector of an identical earlier question."""
        cached = self.cache.get(text)
        if cached is not None:
            logger.debug("embedding_cache_hit", query_length=len(text))
            return cached

        embedding = await self.embed(text)
        self.cache.put(text, embedding)
        return embedding

    async def embed_many(
        self, texts: Sequence[str], concurrency: int = None
    ) -> List[List[float]]:
        """Embed many texts concurrently.

        Args:
            texts: Texts to embed
            concurrency: Maximum in-flight requests (default from config)

        Returns:
            One vector per text, in the order of ``texts``

        Raises:
            The first embedding error; remaining requests are cancelled
        """
        if not texts:
            return []

        limit = max(1, concurrency or config.EMBED_CONCURRENCY)
        semaphore = asyncio.Semaphore(limit)
        results: Dict[int, List[float]] = {}

        async def embed_at(position: int, text: str) -> None:
            async with semaphore:
                results[position] = await self.embed(text)

        tasks = [
            asyncio.ensure_future(embed_at(position, text))
            for position, text in enumerate(texts)
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        logger.debug(
            "embeddings_batch_generated",
            count=len(texts),
            concurrency=limit,
        )

        return [results[position] for position in range(len(texts))]
