"""Adapter exposing LangChain embedding models through the Embedder port."""

from typing import Any, List, Optional

from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings
from loguru import logger

from semroute.config import get_config
from semroute.embedding.ports import Embedder


class LangChainEmbedder(Embedder):
    """Embedder backed by any ``langchain_core`` ``Embeddings`` implementation."""

    def __init__(self, embeddings: Embeddings):
        """Initialize the adapter.

        Args:
            embeddings: LangChain embeddings model instance.
        """
        self.embeddings = embeddings

    async def embed_query(self, text: str) -> List[float]:
        """Embed a query string.

        Args:
            text: The query text.

        Returns:
            Embedding vector.
        """
        return list(await self.embeddings.aembed_query(text))

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Embed a list of utterances.

        Args:
            texts: Utterance texts.

        Returns:
            List of embedding vectors.
        """
        vectors = await self.embeddings.aembed_documents(list(texts))
        return [list(vector) for vector in vectors]


def build_openai_embedder(config: Optional[Any] = None) -> LangChainEmbedder:
    """Create an OpenAI embedder from configuration.

    Args:
        config: Configuration object. If None, uses get_config().

    Returns:
        LangChainEmbedder wrapping OpenAIEmbeddings.
    """
    config = config or get_config()
    embeddings = OpenAIEmbeddings(
        model=config.embedding_model,
        api_key=config.openai_api_key or None,
        dimensions=config.embedding_dimension,
    )
    logger.info(f"Initialized OpenAI embedder: {config.embedding_model}")
    return LangChainEmbedder(embeddings)


def ensure_embedder(embedder: Any) -> Embedder:
    """Wrap LangChain embeddings so both kinds satisfy the Embedder port."""
    if isinstance(embedder, Embedder):
        return embedder
    if isinstance(embedder, Embeddings):
        return LangChainEmbedder(embedder)
    raise TypeError(f"Unsupported embedder type: {type(embedder).__name__}")
