"""
PostgreSQL + pgvector adapter for the route index.

Schema:
    <collection_table>(uuid, name, dimension, cmetadata)       one row per layer
    <embedding_table>(id, collection_id, route_name, position,
                      utterance, embedding VECTOR(d), cmetadata)  one row per utterance

DDL runs in a single transaction and each step takes a transaction-scoped
advisory lock, so several processes can initialize against the same database.
"""

import json
import re
import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

import asyncpg
from loguru import logger

from semroute.config import get_config
from semroute.contracts import Route
from semroute.errors import (
    IndexNotInitialized,
    IndexOperationError,
    InvalidConfiguration,
    MissingEmbedding,
    RouterIndexError,
)
from semroute.index.ports import Index
from semroute.utils.vectors import normalize, normalize_rows

# The same value represents the same lock in every process.
PG_LOCK_ID_EMBEDDING_TABLE = 1573678846307946494
PG_LOCK_ID_COLLECTION_TABLE = 1573678846307946495
# Shared with the python langchain pgvector store so both serialize extension installs.
PG_LOCK_ID_EXTENSION = 1573678846307946496

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(value: str) -> str:
    if not _IDENTIFIER_RE.match(value):
        raise InvalidConfiguration(f"Invalid SQL identifier: {value!r}")
    return value


def to_vector_literal(vector: Sequence[float]) -> str:
    """Render a vector in pgvector's text input format."""
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


def parse_vector_literal(text: str) -> List[float]:
    """Parse pgvector's text output format."""
    return [float(x) for x in json.loads(text)]


class PgVectorIndex(Index):
    """
    Route index stored in PostgreSQL with the pgvector extension.

    Scores are ``1 - (embedding <=> query)``, the cosine similarity. Equal
    distances are ordered by the serial id, i.e. insertion order.
    ``delete_index`` removes this layer's collection row (its embeddings go
    with it through ON DELETE CASCADE); the tables stay for other collections.
    """

    name = "pgvector"
    loop_bound = True

    def __init__(
        self,
        connection_string: str | None = None,
        collection_name: str | None = None,
        collection_table: str | None = None,
        embedding_table: str | None = None,
        pre_delete_collection: bool | None = None,
        pool: Optional[asyncpg.Pool] = None,
        config: Optional[Any] = None,
    ):
        """
        Initialize pgvector index.

        Args:
            connection_string: PostgreSQL DSN. Defaults to config.
            collection_name: Logical collection for this layer. Defaults to config.
            collection_table: Collection table name. Defaults to config.
            embedding_table: Embedding table name. Defaults to config.
            pre_delete_collection: Drop the collection's entries on initialize.
            pool: Pre-built asyncpg pool (mainly for testing).
            config: Configuration object. If None, uses get_config().
        """
        self.config = config or get_config()
        self._dsn = connection_string or self.config.pgvector_connection_string
        self._collection_name = collection_name or self.config.pgvector_collection_name
        self._collection_table = _check_identifier(collection_table or self.config.pgvector_collection_table)
        self._embedding_table = _check_identifier(embedding_table or self.config.pgvector_embedding_table)
        self._pre_delete = (
            self.config.pgvector_pre_delete_collection if pre_delete_collection is None else pre_delete_collection
        )
        self._pool: Optional[asyncpg.Pool] = pool
        self._collection_id: Optional[str] = None

    async def _get_pool(self) -> asyncpg.Pool:
        """Get or create the connection pool."""
        if self._pool is None:
            if not self._dsn:
                raise IndexOperationError(
                    "PGVECTOR_CONNECTION_STRING is not set and no connection string was provided"
                )
            try:
                self._pool = await asyncpg.create_pool(self._dsn)
            except Exception as e:
                raise IndexOperationError(f"Failed to create a connection pool: {e}") from e
            logger.info("Initialized pgvector connection pool")
        return self._pool

    def _require_collection(self) -> str:
        if self._collection_id is None:
            raise IndexNotInitialized(self.name)
        return self._collection_id

    async def initialize(self, dimension: int) -> None:
        """Create extension, tables and the collection row under advisory locks."""
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute("SELECT pg_advisory_xact_lock($1)", PG_LOCK_ID_EXTENSION)
                    await conn.execute("CREATE EXTENSION IF NOT EXISTS vector")

                    await conn.execute("SELECT pg_advisory_xact_lock($1)", PG_LOCK_ID_COLLECTION_TABLE)
                    await conn.execute(
                        f"""CREATE TABLE IF NOT EXISTS {self._collection_table} (
                            "uuid" TEXT PRIMARY KEY,
                            name VARCHAR NOT NULL UNIQUE,
                            dimension INTEGER NOT NULL,
                            cmetadata JSON
                        )"""
                    )

                    await conn.execute("SELECT pg_advisory_xact_lock($1)", PG_LOCK_ID_EMBEDDING_TABLE)
                    await conn.execute(
                        f"""CREATE TABLE IF NOT EXISTS {self._embedding_table} (
                            id BIGSERIAL PRIMARY KEY,
                            collection_id TEXT NOT NULL
                                REFERENCES {self._collection_table}("uuid") ON DELETE CASCADE,
                            route_name TEXT NOT NULL,
                            position INTEGER NOT NULL,
                            utterance TEXT,
                            embedding VECTOR({int(dimension)}) NOT NULL,
                            cmetadata JSON
                        )"""
                    )
                    # shared by every collection; CREATE TABLE IF NOT EXISTS keeps an older VECTOR(d)
                    stored = await conn.fetchval(
                        "SELECT atttypmod FROM pg_attribute "
                        "WHERE attrelid = $1::regclass AND attname = 'embedding'",
                        self._embedding_table,
                    )
                    if stored != dimension:
                        raise IndexOperationError(
                            f"Table {self._embedding_table} stores vectors of dimension {stored}, got {dimension}"
                        )
                    await conn.execute(
                        f"CREATE INDEX IF NOT EXISTS {self._embedding_table}_collection_route "
                        f"ON {self._embedding_table} (collection_id, route_name)"
                    )

                    if self._pre_delete:
                        await conn.execute(
                            f"DELETE FROM {self._collection_table} WHERE name = $1",
                            self._collection_name,
                        )

                    row = await conn.fetchrow(
                        f"""INSERT INTO {self._collection_table} ("uuid", name, dimension, cmetadata)
                        VALUES ($1, $2, $3, $4::json)
                        ON CONFLICT (name) DO UPDATE SET name = EXCLUDED.name
                        RETURNING "uuid", dimension""",
                        str(uuid.uuid4()),
                        self._collection_name,
                        int(dimension),
                        json.dumps({}),
                    )
                    if row["dimension"] != dimension:
                        raise IndexOperationError(
                            f"Collection {self._collection_name} is pinned to dimension "
                            f"{row['dimension']}, got {dimension}"
                        )
        except RouterIndexError:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize pgvector collection {self._collection_name}: {e}")
            raise IndexOperationError(f"Failed to initialize pgvector index: {e}") from e

        self._collection_id = row["uuid"]
        logger.info(f"pgvector collection {self._collection_name} ready (dim={dimension})")

    async def add(self, routes: Sequence[Route]) -> None:
        """Replace each route's rows inside one transaction."""
        collection_id = self._require_collection()
        for route in routes:
            if not route.embeddings:
                raise MissingEmbedding(route.name)
        if not routes:
            return

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    for route in routes:
                        await conn.execute(
                            f"DELETE FROM {self._embedding_table} WHERE collection_id = $1 AND route_name = $2",
                            collection_id,
                            route.name,
                        )
                        route_metadata = json.dumps({
                            "threshold": route.threshold,
                            "description": route.description,
                            "metadata": route.metadata,
                        })
                        rows = [
                            (
                                collection_id,
                                route.name,
                                position,
                                route.utterances[position] if route.utterances else None,
                                to_vector_literal(vector),
                                route_metadata,
                            )
                            for position, vector in enumerate(normalize_rows(route.embeddings))
                        ]
                        await conn.executemany(
                            f"""INSERT INTO {self._embedding_table}
                            (collection_id, route_name, position, utterance, embedding, cmetadata)
                            VALUES ($1, $2, $3, $4, $5::vector, $6::json)""",
                            rows,
                        )
        except Exception as e:
            logger.error(f"Insert failed: {e}")
            raise IndexOperationError(f"Failed to add routes to pgvector: {e}") from e
        logger.debug(f"Added {len(routes)} routes to {self._embedding_table}")

    async def delete(self, route_name: str) -> None:
        """Delete every row of the route."""
        collection_id = self._require_collection()
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    f"DELETE FROM {self._embedding_table} WHERE collection_id = $1 AND route_name = $2",
                    collection_id,
                    route_name,
                )
        except Exception as e:
            logger.error(f"Delete failed: {e}")
            raise IndexOperationError(f"Failed to delete route {route_name}: {e}") from e

    async def query(self, vector: Sequence[float], top_k: int) -> List[Tuple[str, float]]:
        """Order by cosine distance using pgvector's ``<=>`` operator."""
        collection_id = self._require_collection()
        if top_k < 1:
            raise IndexOperationError(f"top_k must be >= 1, got {top_k}")

        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                records = await conn.fetch(
                    f"""SELECT route_name, 1 - (embedding <=> $2::vector) AS score
                    FROM {self._embedding_table}
                    WHERE collection_id = $1
                    ORDER BY embedding <=> $2::vector, id
                    LIMIT $3""",
                    collection_id,
                    to_vector_literal(normalize(vector)),
                    top_k,
                )
        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise IndexOperationError(f"Failed to query pgvector: {e}") from e

        results: List[Tuple[str, float]] = []
        for record in records:
            score = record["score"]
            score = 0.0 if score is None or score != score else min(1.0, max(-1.0, float(score)))
            results.append((record["route_name"], score))
        # stable: rows arrive in id order among equal distances
        results.sort(key=lambda item: -item[1])
        return results

    async def get_routes(self) -> List[Route]:
        """Rebuild routes from stored rows in insertion order."""
        collection_id = self._require_collection()
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                records = await conn.fetch(
                    f"""SELECT route_name, position, utterance,
                        embedding::text AS embedding, cmetadata::text AS cmetadata
                    FROM {self._embedding_table}
                    WHERE collection_id = $1
                    ORDER BY id""",
                    collection_id,
                )
        except Exception as e:
            logger.error(f"Fetch failed: {e}")
            raise IndexOperationError(f"Failed to read routes from pgvector: {e}") from e

        grouped: Dict[str, List[Any]] = {}
        for record in records:
            grouped.setdefault(record["route_name"], []).append(record)

        routes: List[Route] = []
        for route_name, rows in grouped.items():
            rows.sort(key=lambda r: r["position"])
            extra = json.loads(rows[0]["cmetadata"] or "{}")
            utterances = [r["utterance"] for r in rows]
            routes.append(
                Route(
                    name=route_name,
                    utterances=utterances if all(u is not None for u in utterances) else [],
                    embeddings=[parse_vector_literal(r["embedding"]) for r in rows],
                    threshold=extra.get("threshold"),
                    description=extra.get("description"),
                    metadata=extra.get("metadata") or {},
                )
            )
        return routes

    async def delete_index(self) -> None:
        """Remove the collection row and, by cascade, its embeddings."""
        collection_id = self._require_collection()
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    f'DELETE FROM {self._collection_table} WHERE "uuid" = $1',
                    collection_id,
                )
        except Exception as e:
            logger.error(f"Failed to delete collection {self._collection_name}: {e}")
            raise IndexOperationError(f"Failed to delete pgvector collection: {e}") from e
        self._collection_id = None
        logger.info(f"Deleted pgvector collection {self._collection_name}")

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
