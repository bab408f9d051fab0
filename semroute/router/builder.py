"""Builder that validates, embeds and indexes routes into a RouteLayer."""

import asyncio
from typing import Any, Iterable, List, Optional

from loguru import logger

from semroute.config import get_config
from semroute.contracts import AggregationMethod, Route
from semroute.embedding import Embedder, build_openai_embedder, ensure_embedder
from semroute.errors import (
    IndexOperationError,
    InvalidConfiguration,
    MissingEmbedder,
    MissingIndex,
    RouterIndexError,
)
from semroute.index import Index, build_index
from semroute.router.loader import load_routes
from semroute.router.route_layer import RouteLayer, materialize_routes
from semroute.utils.logging import latency_log
from semroute.utils.sync import run_sync

DEFAULT_THRESHOLD = 0.82
DEFAULT_TOP_K = 5


class RouteLayerBuilder:
    """
    Collects routes and collaborators, then builds a ready ``RouteLayer``.

    Example:
        layer = await (
            RouteLayerBuilder()
            .embedder(OpenAIEmbeddings())
            .index(MemoryIndex())
            .threshold(0.7)
            .add_route(politics)
            .add_route(chitchat)
            .build()
        )
    """

    def __init__(self) -> None:
        self._routes: List[Route] = []
        self._embedder: Optional[Embedder] = None
        self._index: Optional[Index] = None
        self._threshold: float = DEFAULT_THRESHOLD
        self._top_k: int = DEFAULT_TOP_K
        self._aggregation: AggregationMethod = AggregationMethod.MEAN
        self._llm: Optional[Any] = None

    @classmethod
    def from_config(cls, config: Optional[Any] = None) -> "RouteLayerBuilder":
        """Pre-populate a builder from configuration.

        Uses the OpenAI embedder, the configured index backend and, when
        ``routes_file`` is set, the routes defined in that file.
        """
        config = config or get_config()
        builder = (
            cls()
            .embedder(build_openai_embedder(config))
            .index(build_index(config))
            .threshold(config.router_threshold)
            .top_k(config.router_top_k)
            .aggregation(config.router_aggregation)
        )
        if config.routes_file:
            builder.routes(load_routes(config.routes_file))
        return builder

    def add_route(self, route: Route) -> "RouteLayerBuilder":
        self._routes.append(route)
        return self

    def routes(self, routes: Iterable[Route]) -> "RouteLayerBuilder":
        self._routes.extend(routes)
        return self

    def embedder(self, embedder: Any) -> "RouteLayerBuilder":
        """Set the embedder. LangChain ``Embeddings`` are wrapped automatically."""
        self._embedder = ensure_embedder(embedder)
        return self

    def index(self, index: Index) -> "RouteLayerBuilder":
        self._index = index
        return self

    def threshold(self, threshold: float) -> "RouteLayerBuilder":
        self._threshold = threshold
        return self

    def top_k(self, top_k: int) -> "RouteLayerBuilder":
        self._top_k = top_k
        return self

    def aggregation(self, aggregation: AggregationMethod | str) -> "RouteLayerBuilder":
        try:
            self._aggregation = AggregationMethod(aggregation)
        except ValueError as e:
            raise InvalidConfiguration(f"Unknown aggregation method: {aggregation}") from e
        return self

    def llm(self, llm: Any) -> "RouteLayerBuilder":
        self._llm = llm
        return self

    def _validate(self) -> None:
        if self._embedder is None:
            raise MissingEmbedder()
        if self._index is None:
            raise MissingIndex()
        if not self._routes:
            raise InvalidConfiguration("Route layer needs at least one route")
        if self._top_k < 1:
            raise InvalidConfiguration(f"top_k must be >= 1, got {self._top_k}")
        if not -1.0 <= self._threshold <= 1.0:
            raise InvalidConfiguration(f"threshold must be within [-1, 1], got {self._threshold}")

        seen = set()
        for route in self._routes:
            if route.name in seen:
                raise InvalidConfiguration(f"Duplicate route name: {route.name}")
            seen.add(route.name)

    async def build(self) -> RouteLayer:
        """
        Embed missing utterances, populate the index and return the layer.

        Raises:
            MissingEmbedder: If no embedder was set.
            MissingIndex: If no index was set.
            InvalidConfiguration: If routes or parameters are invalid.
            EmbeddingError: If the embedder fails.
            RouterIndexError: If the index cannot be initialized or populated.
        """
        self._validate()

        with latency_log("route layer build", level="INFO", extra={"routes": len(self._routes)}):
            routes, dimension = await materialize_routes(self._routes, self._embedder)
            try:
                await self._index.initialize(dimension)
                await self._index.add(routes)
            except RouterIndexError:
                raise
            except Exception as e:
                logger.error(f"Failed to populate index {self._index.name}: {e}")
                raise IndexOperationError(f"Failed to populate index: {e}") from e

        logger.info(
            f"Built route layer with {len(routes)} routes "
            f"(index={self._index.name}, dim={dimension}, top_k={self._top_k}, "
            f"aggregation={self._aggregation.value})"
        )
        return RouteLayer(
            routes=routes,
            embedder=self._embedder,
            index=self._index,
            threshold=self._threshold,
            top_k=self._top_k,
            aggregation=self._aggregation,
            llm=self._llm,
            dimension=dimension,
            loop=asyncio.get_running_loop(),
        )

    def build_sync(self) -> RouteLayer:
        """
        Blocking ``build`` run on the shared background loop.

        Layers backed by Qdrant or pgvector must be built this way to be used
        with ``RouteLayer.route_sync``.
        """
        return run_sync(self.build())
