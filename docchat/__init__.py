"""docchat - ask questions about a local document collection."""
