"""Exceptions raised by the semantic router."""

from __future__ import annotations


class SemanticRouterError(Exception):
    """Base class for every error raised by semroute."""


class InvalidConfiguration(SemanticRouterError, ValueError):
    """Raised when routes or the route layer are configured inconsistently."""


class MissingEmbedder(InvalidConfiguration):
    """Raised when a route layer is built without an embedder."""

    def __init__(self) -> None:
        super().__init__("Route layer should have an embedder")


class MissingLLM(InvalidConfiguration):
    """Reserved for layers that require an LLM collaborator."""

    def __init__(self) -> None:
        super().__init__("Route layer should have an LLM")


class MissingIndex(InvalidConfiguration):
    """Raised when a route layer is built without an index."""

    def __init__(self) -> None:
        super().__init__("Route layer should have an index")


class EmbeddingError(SemanticRouterError):
    """Raised when the embedder fails or violates its contract."""


class RouterIndexError(SemanticRouterError):
    """Base class for index failures."""


class MissingEmbedding(RouterIndexError):
    """Raised when a route without embeddings is added to an index."""

    def __init__(self, route_name: str) -> None:
        super().__init__(f"No embedding on route: {route_name}")
        self.route_name = route_name


class IndexOperationError(RouterIndexError):
    """Raised for backend-specific index faults."""


class IndexNotInitialized(RouterIndexError):
    """Raised when an index is used after delete_index() and before initialize()."""

    def __init__(self, index_name: str) -> None:
        super().__init__(f"Index {index_name} is not initialized")
        self.index_name = index_name
