"""Exact cosine-similarity ranking over the local index.

Every query scans every record. Callers that need approximate search can
supply another ``Ranker`` to the retriever.
"""
from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence

import numpy as np
import structlog

from docchat import config
from docchat.rag.models import IndexRecord, LocalIndex

logger = structlog.get_logger()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    The dot product runs over the shared prefix when the lengths differ;
    magnitudes use each full vector. A zero-magnitude vector scores 0.0.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    mag_a = float(np.linalg.norm(va))
    mag_b = float(np.linalg.norm(vb))
    if not mag_a or not mag_b:
        return 0.0

    size = min(va.size, vb.size)
    # Clip rounding noise (e.g. 1.0000000000000002 for identical vectors)
    return float(np.clip(np.dot(va[:size], vb[:size]) / (mag_a * mag_b), -1.0, 1.0))


def cosine_scores(
    query_vector: Sequence[float], embeddings: Sequence[Sequence[float]]
) -> np.ndarray:
    """Cosine similarity of the query against every embedding.

    Rows are scored one matrix per distinct length, so a consistent index
    is a single matrix-vector product. Same prefix and zero-magnitude
    rules as ``cosine_similarity``.
    """
    query = np.asarray(query_vector, dtype=np.float64)
    query_norm = float(np.linalg.norm(query))
    scores = np.zeros(len(embeddings), dtype=np.float64)

    if not query_norm:
        return scores

    rows_by_length: Dict[int, List[int]] = {}
    for position, embedding in enumerate(embeddings):
        rows_by_length.setdefault(len(embedding), []).append(position)

    for length, positions in rows_by_length.items():
        if not length:
            continue
        matrix = np.array([embeddings[i] for i in positions], dtype=np.float64)
        size = min(length, query.size)
        dots = matrix[:, :size] @ query[:size]
        norms = np.linalg.norm(matrix, axis=1) * query_norm
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = np.where(norms > 0, dots / norms, 0.0)
        scores[positions] = np.clip(similarity, -1.0, 1.0)

    return scores


@dataclass(frozen=True)
class ScoredRecord:
    """An index record with its similarity to the query."""

    record: IndexRecord
    score: float


class Ranker(Protocol):
    """Anything that orders index records against a query vector."""

    def rank(
        self, index: LocalIndex, query_vector: Sequence[float], top_k: int = ...
    ) -> List[ScoredRecord]:
        ...


class CosineRanker:
    """Linear-scan ranker using cosine similarity."""

    def rank(
        self,
        index: LocalIndex,
        query_vector: Sequence[float],
        top_k: int = None,
    ) -> List[ScoredRecord]:
        """Return the top_k records, highest similarity first.

        Args:
            index: Index to search
            query_vector: Embedding of the question
            top_k: Maximum number of records (default from config)

        Returns:
            At most min(top_k, len(index.items)) scored records; ties keep
            their index order
        """
        if top_k is None:
            top_k = config.RETRIEVAL_TOP_K

        if top_k <= 0 or not index.items:
            return []

        scores = cosine_scores(query_vector, [item.embedding for item in index.items])
        order = np.argsort(-scores, kind="stable")[:top_k]

        ranked = [ScoredRecord(index.items[i], float(scores[i])) for i in order]

        logger.debug(
            "ranking_completed",
            candidates=len(index.items),
            top_k=top_k,
            top_score=ranked[0].score,
        )

        return ranked
