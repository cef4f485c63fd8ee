"""Retriever for semantic search over the local index.

Handles:
- Query embedding generation (cached)
- Index loading
- Cosine ranking
- Context formatting for the generation prompt
"""
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass
import structlog

from docchat import config
from docchat.rag.embedder import Embedder
from docchat.rag.ranker import CosineRanker, Ranker
from docchat.rag.store import IndexStore

logger = structlog.get_logger()

CONTEXT_SEPARATOR = "\n\n"


@dataclass
class RetrievalResult:
    """A single retrieved fragment with its score."""

    id: str
    content: str
    source: str
    chunk: int
    score: float

    def to_source_document(self) -> Dict[str, Any]:
        """Shape used in the chat API response."""
        return {
            "pageContent": self.content,
            "metadata": {
                "source": self.source,
                "chunk": self.chunk,
            },
        }


def format_context(results: List[RetrievalResult]) -> str:
    """Join fragment texts in ranked order, separated by a blank line."""
    return CONTEXT_SEPARATOR.join(result.content for result in results)


class Retriever:
    """Semantic retriever for RAG pipeline."""

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        store: Optional[IndexStore] = None,
        ranker: Optional[Ranker] = None,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            embedder: Query embedder (default: Embedder with config defaults)
            store: Index store (default: store at config.INDEX_PATH)
            ranker: Ranking strategy (default: exact cosine scan)
            top_k: Number of results to retrieve (default from config)
        """
        self.embedder = embedder or Embedder()
        self.store = store or IndexStore()
        self.ranker = ranker or CosineRanker()
        self.top_k = top_k if top_k is not None else config.RETRIEVAL_TOP_K

        logger.info(
            "retriever_initialized",
            embedding_model=self.embedder.model,
            index_path=str(self.store.path),
            top_k=self.top_k,
        )

    async def retrieve(
        self,
        question: str,
        top_k: Optional[int] = None,
    ) -> List[RetrievalResult]:
        """Retrieve the fragments most similar to a question.

        Args:
            question: User question text
            top_k: Number of results to return (overrides default)

        Returns:
            List of RetrievalResult objects, best first

        Raises:
            IndexNotFound, CorruptIndex: From the index store
            UnreachableService, ServiceError, MalformedResponse: From embedding
        """
        if top_k is None:
            top_k = self.top_k

        logger.info("retrieval_started", query_length=len(question), top_k=top_k)

        query_embedding = await self.embedder.embed_query(question)
        index = self.store.load()

        if index.embedding_model != self.embedder.model:
            logger.warning(
                "embedding_model_mismatch",
                index_model=index.embedding_model,
                query_model=self.embedder.model,
            )

        ranked = self.ranker.rank(index, query_embedding, top_k)

        results = [
            RetrievalResult(
                id=scored.record.id,
                content=scored.record.metadata.text,
                source=scored.record.metadata.source,
                chunk=scored.record.metadata.chunk,
                score=scored.score,
            )
            for scored in ranked
        ]

        logger.info(
            "retrieval_completed",
            query_length=len(question),
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    async def answer_context(
        self,
        question: str,
        top_k: Optional[int] = None,
    ) -> Tuple[List[RetrievalResult], str]:
        """Retrieve fragments and format them into a context block.

        Args:
            question: User question text
            top_k: Number of results to retrieve

        Returns:
            Tuple of (ranked results, context string)
        """
        results = await self.retrieve(question, top_k=top_k)
        context = format_context(results)

        logger.debug(
            "context_formatted",
            num_chunks=len(results),
            total_chars=len(context),
        )

        return results, context
