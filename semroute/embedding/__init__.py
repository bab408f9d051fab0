"""Embedding module - embedder port and adapters."""

from semroute.embedding.ports import Embedder
from semroute.embedding.adapters import LangChainEmbedder, build_openai_embedder, ensure_embedder

__all__ = [
    # Ports
    "Embedder",
    # Adapters
    "LangChainEmbedder",
    "build_openai_embedder",
    "ensure_embedder",
]
