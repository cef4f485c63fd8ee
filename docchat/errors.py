"""Error kinds raised by the retrieval engine and the Ollama client.

The core never retries; every error carries enough detail (endpoint,
status, truncated body, index path) to diagnose the failure from the log
line or the API response alone.
"""
from pathlib import Path
from typing import Optional

# Upstream response bodies are cut to this many characters in error messages
BODY_PREVIEW_CHARS = 300


class DocChatError(Exception):
    """Base class for docchat errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class UnreachableService(DocChatError):
    """Raised when the Ollama endpoint cannot be contacted at all."""

    def __init__(self, base_url: str, detail: Optional[str] = None):
        self.base_url = base_url
        self.detail = detail
        message = (
            f"Could not connect to Ollama at {base_url}. "
            "Start Ollama and ensure the URL is correct"
        )
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ServiceError(DocChatError):
    """Raised when Ollama answers with a non-success status."""

    def __init__(self, operation: str, status_code: int, body: str = ""):
        self.operation = operation
        self.status_code = status_code
        self.body = body[:BODY_PREVIEW_CHARS]
        super().__init__(f"Ollama {operation} failed ({status_code}): {self.body}")


class MalformedResponse(DocChatError):
    """Raised when a success response carries no usable payload."""


class IndexNotFound(DocChatError):
    """Raised when the index artifact has not been built yet."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(
            f"Local index not found at {self.path}. "
            "Run `python scripts/ingest.py` first."
        )


class CorruptIndex(DocChatError):
    """Raised when the index artifact exists but cannot be used."""

    def __init__(self, path: Path, detail: str):
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"Local index at {self.path} is corrupt: {detail}")


class EmptyCorpus(DocChatError):
    """Raised when an ingestion run produced no fragments at all."""
