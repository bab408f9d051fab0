"""Port interface for route index backends."""

from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

from semroute.contracts import Route


class Index(ABC):
    """Store of ``(route_name, utterance_embedding)`` pairs searchable by cosine similarity.

    Vectors handed to ``add`` and ``query`` are expected to be unit length; backends
    store them as given so that a dot product (or the backend's cosine operator)
    yields the cosine similarity.
    """

    name: str = "index"
    # Clients are tied to the event loop that created them (asyncpg, Qdrant).
    loop_bound: bool = False

    @abstractmethod
    async def initialize(self, dimension: int) -> None:
        """
        Prepare backend storage for vectors of the given dimension.

        Idempotent. Also re-enables an index torn down by ``delete_index``.

        Args:
            dimension: Embedding dimension pinned for this index.
        """
        ...

    @abstractmethod
    async def add(self, routes: Sequence[Route]) -> None:
        """
        Add every embedding of the given routes.

        Re-adding an existing route name replaces its entries.

        Args:
            routes: Routes with ``embeddings`` populated.

        Raises:
            MissingEmbedding: If a route has no embeddings.
        """
        ...

    @abstractmethod
    async def delete(self, route_name: str) -> None:
        """
        Remove all entries of a route. Unknown names succeed silently.

        Args:
            route_name: Route to remove.
        """
        ...

    @abstractmethod
    async def query(self, vector: Sequence[float], top_k: int) -> List[Tuple[str, float]]:
        """
        Find the entries most similar to a vector.

        Args:
            vector: Unit-length query vector.
            top_k: Maximum number of entries to return (>= 1).

        Returns:
            Up to ``top_k`` ``(route_name, score)`` pairs sorted by descending
            score, ties broken by insertion order.
        """
        ...

    @abstractmethod
    async def get_routes(self) -> List[Route]:
        """Return the committed routes with their stored vectors."""
        ...

    @abstractmethod
    async def delete_index(self) -> None:
        """Tear the index down. Later operations fail until ``initialize``."""
        ...

    async def close(self) -> None:
        """Release backend resources."""
        return None
