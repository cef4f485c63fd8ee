"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths (relative paths resolve against the working directory, like the ingest source ids)
DOCS_DIR = Path(os.getenv("DOCS_DIR", "docs"))
INDEX_PATH = Path(os.getenv("INDEX_PATH", str(Path("data") / "local-index.json")))

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")
CHAT_MODEL = os.getenv("OLLAMA_CHAT_MODEL", "llama3.1:8b")
EMBEDDING_MODEL = os.getenv("OLLAMA_EMBED_MODEL", "nomic-embed-text")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "120.0"))

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "4"))

# Embedding throughput and query cache (0 = unbounded)
EMBED_CONCURRENCY = int(os.getenv("EMBED_CONCURRENCY", "4"))
EMBED_CACHE_SIZE = int(os.getenv("EMBED_CACHE_SIZE", "0"))

# Request limits
MAX_QUESTION_LENGTH = int(os.getenv("MAX_QUESTION_LENGTH", "2000"))
