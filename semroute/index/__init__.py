"""Index module - route index port and backends."""

from typing import Any, Optional

from semroute.config import get_config
from semroute.index.ports import Index
from semroute.index.adapters import MemoryIndex, PgVectorIndex, QdrantIndex


def build_index(config: Optional[Any] = None) -> Index:
    """Create the index backend selected by ``router_index_backend``."""
    config = config or get_config()
    backend = config.router_index_backend
    if backend == "qdrant":
        return QdrantIndex(config=config)
    if backend == "pgvector":
        return PgVectorIndex(config=config)
    return MemoryIndex()


__all__ = [
    # Ports
    "Index",
    # Adapters
    "MemoryIndex",
    "PgVectorIndex",
    "QdrantIndex",
    "build_index",
]
