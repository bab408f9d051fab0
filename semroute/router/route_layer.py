"""Runtime route layer: embeds a query and picks at most one route."""

import asyncio
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from semroute.contracts import AggregationMethod, Route, RouteMatch
from semroute.embedding import Embedder
from semroute.errors import (
    EmbeddingError,
    IndexOperationError,
    InvalidConfiguration,
    RouterIndexError,
)
from semroute.index import Index
from semroute.utils.logging import latency_log
from semroute.utils.sync import get_sync_loop, run_sync
from semroute.utils.vectors import normalize, normalize_rows


async def _embed_utterances(embedder: Embedder, route: Route) -> List[List[float]]:
    """Embed a route's utterances, enforcing the embedder contract."""
    try:
        vectors = await embedder.embed_documents(list(route.utterances))
    except Exception as e:
        logger.error(f"Embedding utterances of route {route.name} failed: {e}")
        raise EmbeddingError(f"Failed to embed utterances of route '{route.name}': {e}") from e

    if len(vectors) != len(route.utterances):
        raise EmbeddingError(
            f"Embedder returned {len(vectors)} vectors for {len(route.utterances)} "
            f"utterances of route '{route.name}'"
        )
    widths = {len(vector) for vector in vectors}
    if len(widths) != 1 or 0 in widths:
        raise EmbeddingError(f"Embedder returned vectors of inconsistent widths for route '{route.name}'")
    return [list(vector) for vector in vectors]


async def _embedder_dimension(embedder: Embedder, text: str) -> int:
    """Width of the embedder's query vectors."""
    try:
        vector = await embedder.embed_query(text)
    except Exception as e:
        logger.error(f"Embedding sample query failed: {e}")
        raise EmbeddingError(f"Failed to embed query: {e}") from e
    if vector is None or len(vector) == 0:
        raise EmbeddingError("Embedder returned an empty query vector")
    return len(vector)


async def materialize_routes(
    routes: Sequence[Route],
    embedder: Embedder,
    dimension: Optional[int] = None,
) -> Tuple[List[Route], Optional[int]]:
    """
    Attach unit-length embeddings to every route.

    Routes without embeddings are embedded from their utterances. Every
    resulting vector must share one dimension (``dimension`` when given).
    When every route brings precomputed embeddings, one query is embedded so
    that the dimension is checked against what ``route`` will produce.

    Returns:
        Tuple of (routes with normalized embeddings, dimension).

    Raises:
        EmbeddingError: If the embedder fails.
        InvalidConfiguration: If routes disagree on the dimension, or with
            the embedder.
    """
    prepared: List[Route] = []
    embedded = False
    for route in routes:
        if route.embeddings is None:
            embeddings = await _embed_utterances(embedder, route)
            embedded = True
        else:
            embeddings = route.embeddings

        matrix = normalize_rows(embeddings)
        width = matrix.shape[1]
        if dimension is None:
            dimension = width
        elif width != dimension:
            raise InvalidConfiguration(
                f"Route '{route.name}' has embeddings of dimension {width}, expected {dimension}"
            )
        prepared.append(route.with_embeddings(matrix.tolist()))

    if prepared and not embedded:
        sample = next((route.utterances[0] for route in prepared if route.utterances), "")
        query_dimension = await _embedder_dimension(embedder, sample)
        if query_dimension != dimension:
            raise InvalidConfiguration(
                f"Precomputed embeddings have dimension {dimension}, "
                f"but the embedder produces {query_dimension}"
            )
    return prepared, dimension


class RouteLayer:
    """
    Classifies utterances into named routes.

    Built by ``RouteLayerBuilder``; by then every route is embedded and the
    index is populated. Routes are read-only while queries run; ``add_routes``
    and ``delete_route`` publish a new route map after the index is updated.
    """

    def __init__(
        self,
        routes: Sequence[Route],
        embedder: Embedder,
        index: Index,
        threshold: float,
        top_k: int = 5,
        aggregation: AggregationMethod = AggregationMethod.MEAN,
        llm: Optional[Any] = None,
        dimension: Optional[int] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        self._routes: Dict[str, Route] = {route.name: route for route in routes}
        self._embedder = embedder
        self._index = index
        self._threshold = threshold
        self._top_k = top_k
        self._aggregation = aggregation
        self._llm = llm
        self._dimension = dimension
        self._lock = asyncio.Lock()
        # loop the index clients were created on
        self._loop = loop

    @property
    def routes(self) -> Mapping[str, Route]:
        return MappingProxyType(self._routes)

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    @property
    def index(self) -> Index:
        return self._index

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def top_k(self) -> int:
        return self._top_k

    @property
    def aggregation(self) -> AggregationMethod:
        return self._aggregation

    @property
    def llm(self) -> Optional[Any]:
        """LLM kept for callers' fallback policy; the layer never calls it."""
        return self._llm

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    async def route(self, text: str) -> Optional[RouteMatch]:
        """Route an input text.

        Args:
            text: User input. Empty strings are passed to the embedder as is.

        Returns:
            The winning route, or None when no route reaches its threshold.

        Raises:
            EmbeddingError: If the query cannot be embedded.
            RouterIndexError: If the index query fails.
        """
        with latency_log("route query"):
            try:
                vector = await self._embedder.embed_query(text)
            except Exception as e:
                logger.error(f"Embedding query failed: {e}")
                raise EmbeddingError(f"Failed to embed query: {e}") from e
            if vector is None or len(vector) == 0:
                raise EmbeddingError("Embedder returned an empty query vector")
            return await self.route_embedding(vector)

    async def route_embedding(self, vector: Sequence[float]) -> Optional[RouteMatch]:
        """Route a precomputed query embedding."""
        query_vector = normalize(vector).tolist()
        try:
            hits = await self._index.query(query_vector, self._top_k)
        except RouterIndexError:
            raise
        except Exception as e:
            logger.error(f"Index query failed: {e}")
            raise IndexOperationError(f"Index query failed: {e}") from e
        return self._select(hits)

    def route_sync(self, text: str) -> Optional[RouteMatch]:
        """
        Blocking wrapper for ``route``, run on the shared background loop.

        Raises:
            InvalidConfiguration: If the index holds clients bound to another
                event loop; build such layers with ``build_sync()``.
        """
        loop = get_sync_loop()
        if self._index.loop_bound and self._loop is not loop:
            raise InvalidConfiguration(
                f"Index {self._index.name} is bound to the event loop that built the layer; "
                "build the layer with RouteLayerBuilder.build_sync() to use route_sync()"
            )
        return run_sync(self.route(text))

    def close_sync(self) -> None:
        """Blocking wrapper for ``close``."""
        run_sync(self.close())

    def _select(self, hits: Sequence[Tuple[str, float]]) -> Optional[RouteMatch]:
        """Aggregate top-k hits per route, apply thresholds and pick one winner."""
        routes = self._routes
        scores_by_route: Dict[str, List[float]] = {}
        for route_name, score in hits:
            if route_name not in routes:
                logger.warning(f"Index returned unknown route {route_name}, ignoring")
                continue
            scores_by_route.setdefault(route_name, []).append(score)

        position = {route_name: i for i, route_name in enumerate(routes)}
        candidates: List[Tuple[float, int, int, str]] = []
        for route_name, scores in scores_by_route.items():
            aggregated = self._aggregation.aggregate(scores)
            route = routes[route_name]
            threshold = route.threshold if route.threshold is not None else self._threshold
            if aggregated < threshold:
                logger.debug(f"Route {route_name} scored {aggregated:.4f} below threshold {threshold}")
                continue
            candidates.append((aggregated, len(scores), -position[route_name], route_name))

        if not candidates:
            logger.debug("No route matched")
            return None

        score, hit_count, _, route_name = max(candidates)
        route = routes[route_name]
        logger.debug(f"Routed to {route_name} (score={score:.4f}, hits={hit_count})")
        return RouteMatch(
            name=route_name,
            score=score,
            hits=hit_count,
            description=route.description,
            metadata=route.metadata,
        )

    async def add_routes(self, routes: Sequence[Route]) -> None:
        """Embed, index and register routes. Existing names are replaced."""
        names = [route.name for route in routes]
        if len(names) != len(set(names)):
            raise InvalidConfiguration(f"Duplicate route names in {names}")

        async with self._lock:
            prepared, dimension = await materialize_routes(routes, self._embedder, self._dimension)
            if not prepared:
                return
            try:
                if self._dimension is None:
                    await self._index.initialize(dimension)
                await self._index.add(prepared)
            except RouterIndexError:
                raise
            except Exception as e:
                raise IndexOperationError(f"Failed to add routes: {e}") from e

            updated = dict(self._routes)
            for route in prepared:
                updated[route.name] = route
            self._routes = updated
            self._dimension = dimension
        logger.info(f"Added routes {names}")

    async def delete_route(self, route_name: str) -> None:
        """Remove a route from the index and the layer."""
        async with self._lock:
            try:
                await self._index.delete(route_name)
            except RouterIndexError:
                raise
            except Exception as e:
                raise IndexOperationError(f"Failed to delete route {route_name}: {e}") from e

            if route_name in self._routes:
                updated = dict(self._routes)
                del updated[route_name]
                self._routes = updated
        logger.info(f"Deleted route {route_name}")

    async def get_routes(self) -> List[Route]:
        """Routes as committed in the index."""
        return await self._index.get_routes()

    async def close(self) -> None:
        """Release index resources."""
        await self._index.close()
