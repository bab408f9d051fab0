"""Tests for embedder adapters."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from langchain_core.embeddings import DeterministicFakeEmbedding

from semroute.embedding import LangChainEmbedder, build_openai_embedder, ensure_embedder
from semroute.index import MemoryIndex
from semroute.router import RouteLayerBuilder, RouterBuilder

from tests.fakes import ConstantEmbedder


@pytest.mark.asyncio
async def test_langchain_embedder():
    embedder = LangChainEmbedder(DeterministicFakeEmbedding(size=8))

    query = await embedder.embed_query("hello")
    documents = await embedder.embed_documents(["hello", "world"])

    assert len(query) == 8
    assert len(documents) == 2
    assert documents[0] == query


@pytest.mark.asyncio
async def test_langchain_embedder_delegates_async_calls():
    embeddings = MagicMock()
    embeddings.aembed_query = AsyncMock(return_value=(0.1, 0.2))
    embeddings.aembed_documents = AsyncMock(return_value=[(0.1, 0.2)])
    embedder = LangChainEmbedder(embeddings)

    assert await embedder.embed_query("hi") == [0.1, 0.2]
    assert await embedder.embed_documents(["hi"]) == [[0.1, 0.2]]
    embeddings.aembed_documents.assert_awaited_once_with(["hi"])


def test_ensure_embedder():
    native = ConstantEmbedder([1.0])
    assert ensure_embedder(native) is native

    wrapped = ensure_embedder(DeterministicFakeEmbedding(size=4))
    assert isinstance(wrapped, LangChainEmbedder)

    with pytest.raises(TypeError):
        ensure_embedder("text-embedding-3-small")


def test_build_openai_embedder():
    config = MagicMock()
    config.embedding_model = "text-embedding-3-small"
    config.openai_api_key = "test-api-key"
    config.embedding_dimension = 256

    with patch("semroute.embedding.adapters.langchain_embedder.OpenAIEmbeddings") as openai_cls:
        embedder = build_openai_embedder(config)

    openai_cls.assert_called_once_with(
        model="text-embedding-3-small",
        api_key="test-api-key",
        dimensions=256,
    )
    assert embedder.embeddings is openai_cls.return_value


@pytest.mark.asyncio
async def test_layer_with_langchain_embeddings():
    layer = await (
        RouteLayerBuilder()
        .embedder(DeterministicFakeEmbedding(size=16))
        .index(MemoryIndex())
        .threshold(0.99)
        .add_route(RouterBuilder("greeting").utterances(["hello there"]).build())
        .add_route(RouterBuilder("farewell").utterances(["goodbye for now"]).build())
        .build()
    )

    match = await layer.route("goodbye for now")

    assert match.name == "farewell"
    assert layer.dimension == 16
