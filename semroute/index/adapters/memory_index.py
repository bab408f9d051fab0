"""In-memory route index using a copy-on-write snapshot."""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from semroute.contracts import Route
from semroute.errors import IndexNotInitialized, IndexOperationError, MissingEmbedding
from semroute.index.ports import Index
from semroute.utils.vectors import clamp_scores, normalize, normalize_rows


@dataclass(frozen=True)
class _RouteEntries:
    route: Route
    matrix: np.ndarray


class MemoryIndex(Index):
    """
    Route index held in process memory.

    Writers are serialized by an asyncio lock and publish a new snapshot;
    queries read whichever snapshot is current when they start and never block.
    A query racing ``delete_index`` therefore completes against the old snapshot.
    """

    name = "memory"

    def __init__(self) -> None:
        self._snapshot: Dict[str, _RouteEntries] = {}
        self._dimension: Optional[int] = None
        self._initialized = True
        self._lock = asyncio.Lock()

    @property
    def dimension(self) -> Optional[int]:
        """Pinned vector dimension, or None while the index is empty."""
        return self._dimension

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise IndexNotInitialized(self.name)

    async def initialize(self, dimension: int) -> None:
        """Enable the index and pin its dimension."""
        async with self._lock:
            if self._initialized and self._snapshot and self._dimension != dimension:
                raise IndexOperationError(
                    f"Index already holds vectors of dimension {self._dimension}, got {dimension}"
                )
            self._dimension = dimension
            self._initialized = True
            logger.debug(f"Memory index initialized with dimension {dimension}")

    async def add(self, routes: Sequence[Route]) -> None:
        """Add or replace routes. Either every route is published or none is."""
        self._ensure_initialized()
        if not routes:
            return

        prepared: List[_RouteEntries] = []
        for route in routes:
            if not route.embeddings:
                raise MissingEmbedding(route.name)
            prepared.append(_RouteEntries(route=route, matrix=normalize_rows(route.embeddings)))

        async with self._lock:
            dimension = self._dimension
            for entries in prepared:
                width = entries.matrix.shape[1]
                if dimension is None:
                    dimension = width
                elif width != dimension:
                    raise IndexOperationError(
                        f"Route '{entries.route.name}' has dimension {width}, index expects {dimension}"
                    )

            snapshot = dict(self._snapshot)
            for entries in prepared:
                if entries.route.name in snapshot:
                    logger.warning(f"Route {entries.route.name} already exists in the index")
                    del snapshot[entries.route.name]
                snapshot[entries.route.name] = entries

            self._snapshot = snapshot
            self._dimension = dimension

        logger.debug(f"Added {len(prepared)} routes to memory index")

    async def delete(self, route_name: str) -> None:
        """Remove a route if present."""
        self._ensure_initialized()
        async with self._lock:
            if route_name not in self._snapshot:
                logger.warning(f"Route {route_name} not found in the index")
                return
            snapshot = dict(self._snapshot)
            del snapshot[route_name]
            self._snapshot = snapshot

    async def query(self, vector: Sequence[float], top_k: int) -> List[Tuple[str, float]]:
        """Linear scan over every stored utterance vector."""
        self._ensure_initialized()
        if top_k < 1:
            raise IndexOperationError(f"top_k must be >= 1, got {top_k}")

        snapshot = self._snapshot
        if not snapshot:
            return []

        names: List[str] = []
        for route_name, entries in snapshot.items():
            names.extend([route_name] * entries.matrix.shape[0])
        matrix = np.vstack([entries.matrix for entries in snapshot.values()])

        query_vector = normalize(vector)
        if query_vector.shape != (matrix.shape[1],):
            raise IndexOperationError(
                f"Query vector has dimension {query_vector.size}, index expects {matrix.shape[1]}"
            )

        scores = clamp_scores(matrix @ query_vector)
        # stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [(names[i], float(scores[i])) for i in order]

    async def get_routes(self) -> List[Route]:
        """Return stored routes in insertion order."""
        self._ensure_initialized()
        return [entries.route for entries in self._snapshot.values()]

    async def delete_index(self) -> None:
        """Drop every entry and mark the index uninitialized."""
        async with self._lock:
            self._snapshot = {}
            self._dimension = None
            self._initialized = False
        logger.info("Memory index deleted")
