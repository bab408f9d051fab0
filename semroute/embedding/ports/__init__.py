"""Embedding ports - interfaces for embedding providers."""

from semroute.embedding.ports.embedder_port import Embedder

__all__ = [
    "Embedder",
]
