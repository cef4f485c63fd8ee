#!/usr/bin/env python
"""Build the local index from the documents directory.

Every run is a full rebuild: the previous index is replaced atomically
once the new one is complete.

Usage:
    python scripts/ingest.py                      # Ingest ./docs
    python scripts/ingest.py --docs-dir manuals   # Ingest another directory
    python scripts/ingest.py --verbose            # Show detailed progress
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from docchat import config
from docchat.errors import DocChatError, EmptyCorpus
from docchat.rag.ingest import IngestPipeline
from docchat.rag.loaders import SUPPORTED_SUFFIXES
from docchat.rag.store import IndexStore
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, file_path: Path):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        file_name = file_path.name
        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {file_name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: dict):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingestion Complete!")
        print(f"{'=' * 60}\n")
        print(f"  Files processed:      {stats['files_processed']}")
        print(f"  Files failed:         {stats['files_failed']}")
        print(f"  Chunks created:       {stats['chunks_created']}")
        print(f"  Embeddings generated: {stats['embeddings_generated']}")
        print(f"  Vector dimension:     {stats['dimension']}")
        print(f"  Time elapsed:         {elapsed_seconds:.1f}s")

        if stats["chunks_created"] > 0 and elapsed_seconds > 0:
            rate = stats["chunks_created"] / elapsed_seconds
            print(f"  Indexing rate:        {rate:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        if stats["files_failed"] > 0:
            print(f"Warning: {stats['files_failed']} file(s) failed to extract.")
            print("   Check logs for details.\n")

        print(f"Index ready at: {stats['index_path']}\n")


async def main():
    """Main entry point for ingest script."""
    parser = argparse.ArgumentParser(
        description="Build the local index from a documents directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ingest.py
  python scripts/ingest.py --docs-dir manuals
  python scripts/ingest.py --index-path /tmp/index.json --verbose
        """,
    )

    parser.add_argument(
        "--docs-dir",
        type=Path,
        default=None,
        help=f"Documents directory (default: {config.DOCS_DIR})",
    )

    parser.add_argument(
        "--index-path",
        type=Path,
        default=None,
        help=f"Index file to write (default: {config.INDEX_PATH})",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if args.verbose else logging.WARNING
        ),
    )

    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\nConfiguration:")
        print(f"   Documents directory: {args.docs_dir or config.DOCS_DIR}")
        print(f"   Document types:      {', '.join(sorted(SUPPORTED_SUFFIXES))}")
        print(f"   Index path:          {args.index_path or config.INDEX_PATH}")
        print(f"   Ollama URL:          {config.OLLAMA_BASE_URL}")
        print(f"   Embedding model:     {config.EMBEDDING_MODEL}")
        print(f"   Chunk size:          {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:       {config.CHUNK_OVERLAP} chars")

        progress.start("Ingesting Documents")

        pipeline = IngestPipeline(
            docs_dir=args.docs_dir,
            store=IndexStore(args.index_path),
        )

        stats = await pipeline.ingest_all(progress_callback=progress.update)

        progress.finish(stats)

        if stats["files_failed"] > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nIngestion cancelled by user. The previous index is unchanged.\n")
        sys.exit(1)

    except EmptyCorpus as e:
        print(f"\nError: {e}\n")
        sys.exit(1)

    except DocChatError as e:
        print(f"\nError: {e}\n")
        logger.error("ingest_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
