"""
Qdrant adapter for the route index.

One collection holds every utterance vector of a layer, one point per utterance,
with cosine distance configured on the collection.
"""

import asyncio
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    MatchValue,
    PayloadSchemaType,
    PointStruct,
    VectorParams,
)

from semroute.config import get_config
from semroute.contracts import Route
from semroute.errors import IndexNotInitialized, IndexOperationError, MissingEmbedding
from semroute.index.ports import Index
from semroute.utils.vectors import normalize, normalize_rows

_POINT_NAMESPACE = uuid.UUID("6f1c3f52-8d1e-4c4b-9a55-0f3d2c9e7b10")
_SCROLL_BATCH = 256
# Extra points fetched so that ties at the top_k boundary can be reordered by seq.
_TIE_SLACK = 16


def _route_filter(route_name: str) -> Filter:
    return Filter(
        must=[
            FieldCondition(
                key="route_name",
                match=MatchValue(value=route_name),
            )
        ]
    )


class QdrantIndex(Index):
    """
    Qdrant-backed route index.

    Ties between equal scores are broken by the ``seq`` payload written at add
    time, so ordering follows the order in which entries were added. Qdrant
    itself picks which tied points it returns, so ``query`` fetches
    ``top_k + 16`` points before reordering; a tie group reaching past that
    window may still lose older entries to newer ones.
    """

    name = "qdrant"
    loop_bound = True

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        collection_name: str | None = None,
        prefer_grpc: bool | None = None,
        client: Optional[AsyncQdrantClient] = None,
        config: Optional[Any] = None,
    ):
        """
        Initialize Qdrant index.

        Args:
            url: Qdrant server URL. Defaults to config.
            api_key: Qdrant API key. Defaults to config.
            collection_name: Collection name. Defaults to config.
            prefer_grpc: Use gRPC transport. Defaults to config.
            client: Pre-built async client (mainly for testing).
            config: Configuration object. If None, uses get_config().
        """
        self.config = config or get_config()
        self._url = url or self.config.qdrant_url
        self._api_key = api_key or self.config.qdrant_api_key
        self._collection = collection_name or self.config.qdrant_route_collection
        self._prefer_grpc = self.config.qdrant_grpc if prefer_grpc is None else prefer_grpc
        self._client: Optional[AsyncQdrantClient] = client
        self._init_lock = asyncio.Lock()
        self._deleted = False

    @property
    def collection_name(self) -> str:
        return self._collection

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create async Qdrant client."""
        if self._client is None:
            self._client = AsyncQdrantClient(
                url=self._url,
                api_key=self._api_key,
                prefer_grpc=self._prefer_grpc,
            )
            logger.info(f"Initialized Qdrant client: {self._url}")
        return self._client

    def _ensure_initialized(self) -> None:
        if self._deleted:
            raise IndexNotInitialized(self.name)

    def _point_id(self, route_name: str, position: int) -> str:
        return str(uuid.uuid5(_POINT_NAMESPACE, f"{self._collection}:{route_name}:{position}"))

    async def _check_dimension(self, client: AsyncQdrantClient, dimension: int) -> None:
        info = await client.get_collection(self._collection)
        size = getattr(info.config.params.vectors, "size", None)
        if size != dimension:
            logger.error(f"Collection {self._collection} has vector size {size}, expected {dimension}")
            raise IndexOperationError(
                f"Qdrant collection {self._collection} stores vectors of size {size}, got {dimension}"
            )

    async def initialize(self, dimension: int) -> None:
        """Create the collection if it doesn't exist.

        Another process may create the collection between the existence check
        and the create call; that case is detected and accepted.
        An existing collection must store vectors of the requested size.
        """
        async with self._init_lock:
            client = await self._get_client()
            try:
                if await client.collection_exists(self._collection):
                    logger.info(f"Collection {self._collection} already exists")
                    await self._check_dimension(client, dimension)
                else:
                    try:
                        await client.create_collection(
                            collection_name=self._collection,
                            vectors_config=VectorParams(
                                size=dimension,
                                distance=Distance.COSINE,
                            ),
                        )
                        await client.create_payload_index(
                            collection_name=self._collection,
                            field_name="route_name",
                            field_schema=PayloadSchemaType.KEYWORD,
                        )
                        logger.info(f"Created collection {self._collection} (dim={dimension})")
                    except Exception:
                        if not await client.collection_exists(self._collection):
                            raise
                        logger.info(f"Collection {self._collection} was created concurrently")
                        await self._check_dimension(client, dimension)
            except IndexOperationError:
                raise
            except Exception as e:
                logger.error(f"Failed to initialize collection {self._collection}: {e}")
                raise IndexOperationError(f"Failed to initialize Qdrant collection: {e}") from e
            self._deleted = False

    async def add(self, routes: Sequence[Route]) -> None:
        """Upsert one point per utterance, replacing earlier entries of each route."""
        self._ensure_initialized()
        for route in routes:
            if not route.embeddings:
                raise MissingEmbedding(route.name)
        if not routes:
            return

        client = await self._get_client()
        seq = time.time_ns()
        try:
            for route in routes:
                await client.delete(
                    collection_name=self._collection,
                    points_selector=FilterSelector(filter=_route_filter(route.name)),
                    wait=True,
                )
                points: List[PointStruct] = []
                for position, vector in enumerate(normalize_rows(route.embeddings)):
                    points.append(
                        PointStruct(
                            id=self._point_id(route.name, position),
                            vector=vector.tolist(),
                            payload={
                                "route_name": route.name,
                                "utterance": route.utterances[position] if route.utterances else None,
                                "position": position,
                                "seq": seq,
                                "route_threshold": route.threshold,
                                "route_description": route.description,
                                "route_metadata": route.metadata,
                            },
                        )
                    )
                    seq += 1
                await client.upsert(
                    collection_name=self._collection,
                    points=points,
                    wait=True,
                )
                logger.debug(f"Upserted {len(points)} points for route {route.name}")
        except Exception as e:
            logger.error(f"Upsert failed: {e}")
            raise IndexOperationError(f"Failed to add routes to Qdrant: {e}") from e

    async def delete(self, route_name: str) -> None:
        """Delete every point whose payload names the route."""
        self._ensure_initialized()
        client = await self._get_client()
        try:
            await client.delete(
                collection_name=self._collection,
                points_selector=FilterSelector(filter=_route_filter(route_name)),
                wait=True,
            )
            logger.info(f"Deleted route {route_name} from {self._collection}")
        except Exception as e:
            logger.error(f"Delete failed: {e}")
            raise IndexOperationError(f"Failed to delete route {route_name}: {e}") from e

    async def query(self, vector: Sequence[float], top_k: int) -> List[Tuple[str, float]]:
        """Search the collection for the nearest utterances."""
        self._ensure_initialized()
        if top_k < 1:
            raise IndexOperationError(f"top_k must be >= 1, got {top_k}")

        client = await self._get_client()
        try:
            response = await client.query_points(
                collection_name=self._collection,
                query=normalize(vector).tolist(),
                limit=top_k + _TIE_SLACK,
                with_payload=True,
            )
        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise IndexOperationError(f"Failed to query Qdrant: {e}") from e

        ranked = sorted(
            response.points,
            key=lambda point: (-point.score, (point.payload or {}).get("seq", 0)),
        )
        results: List[Tuple[str, float]] = []
        for point in ranked[:top_k]:
            payload = point.payload or {}
            score = min(1.0, max(-1.0, float(point.score)))
            results.append((payload.get("route_name", ""), score))
        return results

    async def get_routes(self) -> List[Route]:
        """Scroll the whole collection and rebuild routes from point payloads."""
        self._ensure_initialized()
        client = await self._get_client()

        grouped: Dict[str, List[Any]] = {}
        offset = None
        try:
            while True:
                points, offset = await client.scroll(
                    collection_name=self._collection,
                    limit=_SCROLL_BATCH,
                    offset=offset,
                    with_payload=True,
                    with_vectors=True,
                )
                for point in points:
                    payload = point.payload or {}
                    grouped.setdefault(payload.get("route_name", ""), []).append(point)
                if offset is None:
                    break
        except Exception as e:
            logger.error(f"Scroll failed: {e}")
            raise IndexOperationError(f"Failed to read routes from Qdrant: {e}") from e

        routes: List[Route] = []
        ordered = sorted(grouped.items(), key=lambda item: min(p.payload.get("seq", 0) for p in item[1]))
        for route_name, points in ordered:
            points.sort(key=lambda p: p.payload.get("position", 0))
            first = points[0].payload
            utterances = [p.payload.get("utterance") for p in points]
            routes.append(
                Route(
                    name=route_name,
                    utterances=utterances if all(u is not None for u in utterances) else [],
                    embeddings=[list(p.vector) for p in points],
                    threshold=first.get("route_threshold"),
                    description=first.get("route_description"),
                    metadata=first.get("route_metadata") or {},
                )
            )
        return routes

    async def delete_index(self) -> None:
        """Drop the collection."""
        client = await self._get_client()
        try:
            await client.delete_collection(collection_name=self._collection)
        except Exception as e:
            logger.error(f"Failed to delete collection {self._collection}: {e}")
            raise IndexOperationError(f"Failed to delete Qdrant collection: {e}") from e
        self._deleted = True
        logger.info(f"Deleted collection {self._collection}")

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> "QdrantIndex":
        """Context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        await self.close()
