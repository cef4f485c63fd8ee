"""Index record construction for the ingest pipeline."""
import hashlib
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import structlog

from docchat.errors import EmptyCorpus, MalformedResponse
from docchat.rag.models import IndexRecord, LocalIndex, RecordMetadata

logger = structlog.get_logger()


def vector_id(source: str, chunk_index: int) -> str:
    """Deterministic record id for a (source, chunk position) pair.

    The id depends on position only, so an edited document keeps its ids
    as long as its path and chunk count are unchanged.
    """
    return hashlib.sha1(f"{source}:{chunk_index}".encode("utf-8")).hexdigest()


def build_records(
    source: str,
    chunks: Sequence[str],
    embeddings: Sequence[Sequence[float]],
) -> List[IndexRecord]:
    """Bundle each chunk of one source with its embedding.

    Args:
        source: Identifier of the originating document
        chunks: Chunk texts in document order
        embeddings: One vector per chunk, same order

    Returns:
        One IndexRecord per chunk

    Raises:
        ValueError: If chunks and embeddings differ in length
    """
    if len(chunks) != len(embeddings):
        raise ValueError(
            f"Got {len(embeddings)} embeddings for {len(chunks)} chunks of {source}"
        )

    return [
        IndexRecord(
            id=vector_id(source, chunk_index),
            embedding=list(embedding),
            metadata=RecordMetadata(text=text, source=source, chunk=chunk_index),
        )
        for chunk_index, (text, embedding) in enumerate(zip(chunks, embeddings))
    ]


class IndexBuilder:
    """Accumulates records from every source of one ingestion run."""

    def __init__(self, embedding_model: str):
        self.embedding_model = embedding_model
        self.records: List[IndexRecord] = []
        self.sources: List[str] = []
        self.dimension: Optional[int] = None

    def add_source(
        self,
        source: str,
        chunks: Sequence[str],
        embeddings: Sequence[Sequence[float]],
    ) -> List[IndexRecord]:
        """Add all chunks of one source and return the new records.

        The first vector fixes the index dimension.

        Raises:
            MalformedResponse: If a vector's length differs from that dimension
        """
        records = build_records(source, chunks, embeddings)

        for record in records:
            if self.dimension is None:
                self.dimension = len(record.embedding)
            elif len(record.embedding) != self.dimension:
                logger.error(
                    "embedding_dimension_mismatch",
                    source=source,
                    chunk=record.metadata.chunk,
                    dimension=len(record.embedding),
                    expected=self.dimension,
                )
                raise MalformedResponse(
                    f"Embedding for {source}#{record.metadata.chunk} has dimension "
                    f"{len(record.embedding)}, expected {self.dimension}"
                )

        self.records.extend(records)
        self.sources.append(source)
        return records

    def build(self) -> LocalIndex:
        """Produce the index for everything added so far.

        Raises:
            EmptyCorpus: If no source produced any record
        """
        if not self.records:
            logger.error("empty_corpus", sources=len(self.sources))
            raise EmptyCorpus(
                f"No text chunks were extracted from {len(self.sources)} document(s). "
                "Add one or more supported documents and run ingestion again."
            )

        index = LocalIndex(
            embedding_model=self.embedding_model,
            dimension=self.dimension,
            created_at=datetime.now(timezone.utc),
            items=list(self.records),
        )

        logger.info(
            "index_built",
            records=len(index.items),
            sources=len(self.sources),
            dimension=index.dimension,
            embedding_model=self.embedding_model,
        )

        return index
