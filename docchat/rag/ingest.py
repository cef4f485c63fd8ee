"""Ingest pipeline for building the local index.

Orchestrates:
- Document discovery
- Text extraction
- Text chunking
- Concurrent embedding generation
- Record building and atomic index persistence
"""
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import structlog
from pypdf.errors import PyPdfError

from docchat import config
from docchat.rag.chunker import TextChunker
from docchat.rag.embedder import Embedder
from docchat.rag.loaders import discover_documents, extract_text
from docchat.rag.records import IndexBuilder
from docchat.rag.store import IndexStore

logger = structlog.get_logger()

ProgressCallback = Callable[[int, int, Path], None]


def source_id(path: Path) -> str:
    """Identifier stored with each record: path relative to the working directory."""
    resolved = Path(path).resolve()
    try:
        return resolved.relative_to(Path.cwd().resolve()).as_posix()
    except ValueError:
        return resolved.as_posix()


class IngestPipeline:
    """Pipeline for ingesting a document directory into the local index."""

    def __init__(
        self,
        docs_dir: Path = None,
        store: Optional[IndexStore] = None,
        embedder: Optional[Embedder] = None,
        chunk_size: int = None,
        chunk_overlap: int = None,
        concurrency: int = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            docs_dir: Directory containing source documents (default from config)
            store: Index store to write (default: store at config.INDEX_PATH)
            embedder: Embedder for chunk vectors (default from config)
            chunk_size: Chunk size in characters (default from config)
            chunk_overlap: Chunk overlap in characters (default from config)
            concurrency: Embedding requests in flight per document
        """
        self.docs_dir = Path(docs_dir) if docs_dir is not None else config.DOCS_DIR
        self.store = store or IndexStore()
        self.embedder = embedder or Embedder()
        self.concurrency = concurrency or config.EMBED_CONCURRENCY

        self.chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
        self.builder = IndexBuilder(self.embedder.model)
        self.stats = self._empty_stats()

        logger.info(
            "ingest_pipeline_initialized",
            docs_dir=str(self.docs_dir),
            index_path=str(self.store.path),
            embedding_model=self.embedder.model,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
            concurrency=self.concurrency,
        )

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            "files_processed": 0,
            "files_failed": 0,
            "chunks_created": 0,
            "embeddings_generated": 0,
        }

    def discover_documents(self) -> List[Path]:
        """Discover all supported documents, creating the directory if missing."""
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        return discover_documents(self.docs_dir)

    async def ingest_file(self, file_path: Path) -> int:
        """Ingest a single document into the pending index.

        Extraction failures are logged and counted; embedding failures
        propagate and abort the run.

        Args:
            file_path: Path to the document

        Returns:
            Number of chunks created
        """
        source = source_id(file_path)
        logger.info("ingesting_file", path=str(file_path), source=source)

        try:
            text = extract_text(file_path)
        except (OSError, ValueError, PyPdfError) as e:
            logger.error(
                "file_extraction_failed",
                path=str(file_path),
                error=str(e),
                error_type=type(e).__name__,
            )
            self.stats["files_failed"] += 1
            return 0

        chunks = self.chunker.chunk_text(text)

        if not chunks:
            logger.warning("no_chunks_created", path=str(file_path))
        else:
            chunk_texts = [chunk.content for chunk in chunks]
            embeddings = await self.embedder.embed_many(
                chunk_texts, concurrency=self.concurrency
            )
            self.builder.add_source(source, chunk_texts, embeddings)
            self.stats["embeddings_generated"] += len(embeddings)

        self.stats["chunks_created"] += len(chunks)
        self.stats["files_processed"] += 1

        logger.info(
            "file_ingested",
            path=str(file_path),
            **self.chunker.get_chunk_stats(chunks),
        )

        return len(chunks)

    async def ingest_all(
        self, progress_callback: Optional[ProgressCallback] = None
    ) -> Dict[str, Any]:
        """Rebuild the index from every document in the docs directory.

        Args:
            progress_callback: Optional callback function(current, total, file_path)

        Returns:
            Dictionary with ingestion statistics

        Raises:
            EmptyCorpus: If no document produced any chunk
            UnreachableService, ServiceError, MalformedResponse: From embedding
        """
        logger.info("starting_ingest_all", docs_dir=str(self.docs_dir))

        self.stats = self._empty_stats()
        self.builder = IndexBuilder(self.embedder.model)

        documents = self.discover_documents()

        if not documents:
            logger.warning("no_documents_found", docs_dir=str(self.docs_dir))

        for idx, file_path in enumerate(documents, 1):
            if progress_callback:
                progress_callback(idx, len(documents), file_path)
            await self.ingest_file(file_path)

        index = self.builder.build()
        self.store.save(index)

        self.stats["index_path"] = str(self.store.path)
        self.stats["dimension"] = index.dimension

        logger.info("ingest_all_completed", stats=self.stats)

        return self.stats


async def ingest_documents(docs_dir: Path = None) -> Dict[str, Any]:
    """Rebuild the local index with default settings (convenience function).

    Args:
        docs_dir: Directory to ingest (default from config)

    Returns:
        Ingestion statistics
    """
    pipeline = IngestPipeline(docs_dir=docs_dir)
    return await pipeline.ingest_all()
