"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document discovery and text extraction
- Document chunking with overlap
- Embedding generation and query caching
- JSON index persistence
- Cosine similarity ranking and retrieval
"""
