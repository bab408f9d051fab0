"""Index adapters - concrete vector index backends."""

from semroute.index.adapters.memory_index import MemoryIndex
from semroute.index.adapters.pgvector_index import PgVectorIndex
from semroute.index.adapters.qdrant_index import QdrantIndex

__all__ = [
    "MemoryIndex",
    "PgVectorIndex",
    "QdrantIndex",
]
