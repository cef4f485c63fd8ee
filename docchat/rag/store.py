"""JSON vector store for the local index.

Handles:
- Atomic persistence of the full index (temp file + rename)
- Loading with shape and dimension validation
- Store statistics for health checks and the ingest CLI
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from pydantic import ValidationError

from docchat import config
from docchat.errors import CorruptIndex, IndexNotFound
from docchat.rag.models import LocalIndex

logger = structlog.get_logger()


class IndexStore:
    """Reads and writes the single-file JSON index."""

    def __init__(self, path: Optional[Path] = None):
        """Initialize the store.

        Args:
            path: Location of the index artifact (default: config.INDEX_PATH)
        """
        self.path = Path(path) if path is not None else config.INDEX_PATH

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, index: LocalIndex) -> None:
        """Replace the artifact with ``index``.

        Readers see either the previous complete file or the new one, never
        a partial write.
        """
        folder = self.path.parent
        folder.mkdir(parents=True, exist_ok=True)

        payload = index.model_dump(mode="json", by_alias=True)

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                suffix=".json", dir=folder, prefix=f".{self.path.stem}_tmp_",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except Exception as e:
            logger.error("index_save_failed", path=str(self.path), error=str(e))
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
            raise

        logger.info(
            "index_saved",
            path=str(self.path),
            records=len(index.items),
            dimension=index.dimension,
        )

    def load(self) -> LocalIndex:
        """Load and validate the index.

        Raises:
            IndexNotFound: If the artifact does not exist
            CorruptIndex: If it cannot be read or parsed, has the wrong shape, or holds
                a vector whose length differs from the recorded dimension
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise IndexNotFound(self.path) from e
        except (UnicodeDecodeError, OSError) as e:
            raise CorruptIndex(self.path, f"unreadable ({e})") from e

        try:
            index = LocalIndex.model_validate(json.loads(content))
        except json.JSONDecodeError as e:
            raise CorruptIndex(self.path, f"invalid JSON ({e})") from e
        except ValidationError as e:
            raise CorruptIndex(
                self.path, f"unexpected shape ({e.error_count()} error(s))"
            ) from e

        for position, item in enumerate(index.items):
            if len(item.embedding) != index.dimension:
                raise CorruptIndex(
                    self.path,
                    f"record {position} ({item.metadata.source}#{item.metadata.chunk}) "
                    f"has dimension {len(item.embedding)}, index declares {index.dimension}",
                )

        logger.debug(
            "index_loaded",
            path=str(self.path),
            records=len(index.items),
            dimension=index.dimension,
            embedding_model=index.embedding_model,
        )

        return index

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the stored index.

        Returns:
            Dictionary with store statistics
        """
        if not self.exists():
            return {
                "exists": False,
                "path": str(self.path),
                "records": 0,
                "dimension": None,
            }

        index = self.load()
        return {
            "exists": True,
            "path": str(self.path),
            "records": len(index.items),
            "dimension": index.dimension,
            "embedding_model": index.embedding_model,
            "created_at": index.created_at.isoformat(),
            "sources": len({item.metadata.source for item in index.items}),
        }
