"""Semantic route layer: pick a named route for an utterance by embedding similarity."""

from semroute.contracts import AggregationMethod, Route, RouteMatch
from semroute.embedding import Embedder, LangChainEmbedder
from semroute.errors import (
    EmbeddingError,
    IndexNotInitialized,
    IndexOperationError,
    InvalidConfiguration,
    MissingEmbedder,
    MissingEmbedding,
    MissingIndex,
    MissingLLM,
    RouterIndexError,
    SemanticRouterError,
)
from semroute.index import Index, MemoryIndex, PgVectorIndex, QdrantIndex
from semroute.router import RouteLayer, RouteLayerBuilder, RouterBuilder, load_routes

__version__ = "0.1.0"

__all__ = [
    # Contracts
    "AggregationMethod",
    "Route",
    "RouteMatch",
    # Builders
    "RouterBuilder",
    "RouteLayerBuilder",
    "RouteLayer",
    "load_routes",
    # Embedding
    "Embedder",
    "LangChainEmbedder",
    # Index
    "Index",
    "MemoryIndex",
    "PgVectorIndex",
    "QdrantIndex",
    # Errors
    "SemanticRouterError",
    "InvalidConfiguration",
    "MissingEmbedder",
    "MissingLLM",
    "MissingIndex",
    "EmbeddingError",
    "RouterIndexError",
    "MissingEmbedding",
    "IndexOperationError",
    "IndexNotInitialized",
]
