"""Document discovery and text extraction.

Handles:
- Recursive discovery of supported documents
- PDF text extraction (pypdf)
- Plain text and markdown (YAML frontmatter stripped)
"""
import io
import re
from pathlib import Path
from typing import List

import structlog
from pypdf import PdfReader

logger = structlog.get_logger()

PDF_SUFFIXES = {".pdf"}
TEXT_SUFFIXES = {".md", ".markdown", ".txt"}
SUPPORTED_SUFFIXES = PDF_SUFFIXES | TEXT_SUFFIXES

# YAML frontmatter (must be at start of file)
FRONTMATTER_PATTERN = re.compile(r"\A---\s*\n(.*?)\n---\s*(\n|\Z)", re.DOTALL)


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_SUFFIXES


def discover_documents(root: Path) -> List[Path]:
    """Find every supported document under ``root``, recursively.

    Unsupported files are ignored. The result is sorted so ingestion order
    (and therefore index order) is reproducible.

    Raises:
        FileNotFoundError: If ``root`` does not exist
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Documents directory not found: {root}")

    documents = sorted(
        path for path in root.rglob("*") if path.is_file() and is_supported(path)
    )

    logger.info("documents_discovered", count=len(documents), docs_dir=str(root))

    return documents


def extract_pdf_text(data: bytes) -> str:
    """Extract the text of every page of a PDF, pages separated by a blank line."""
    reader = PdfReader(io.BytesIO(data))
    return "\n\n".join(page.extract_text() or "" for page in reader.pages)


def strip_frontmatter(text: str) -> str:
    return FRONTMATTER_PATTERN.sub("", text, count=1)


def extract_text(path: Path) -> str:
    """Extract plain text from a supported document.

    Raises:
        ValueError: If the file type is not supported
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix in PDF_SUFFIXES:
        text = extract_pdf_text(path.read_bytes())
    elif suffix in TEXT_SUFFIXES:
        text = path.read_text(encoding="utf-8")
        if suffix != ".txt":
            text = strip_frontmatter(text)
    else:
        raise ValueError(f"Unsupported document type: {path}")

    logger.debug("document_extracted", path=str(path), text_length=len(text))

    return text
