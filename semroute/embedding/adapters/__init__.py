"""Embedding adapters."""

from semroute.embedding.adapters.langchain_embedder import (
    LangChainEmbedder,
    build_openai_embedder,
    ensure_embedder,
)

__all__ = [
    "LangChainEmbedder",
    "build_openai_embedder",
    "ensure_embedder",
]
