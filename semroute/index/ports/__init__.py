"""Index ports - interfaces for vector index backends."""

from semroute.index.ports.index_port import Index

__all__ = [
    "Index",
]
