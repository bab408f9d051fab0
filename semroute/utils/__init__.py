"""Utility modules for logging, blocking calls and vector math."""

from .logging import LatencyLogger, latency_log, setup_logging
from .sync import get_sync_loop, run_sync
from .vectors import (
    clamp_scores,
    combine_embeddings,
    cosine_similarity,
    normalize,
    normalize_rows,
    sum_vectors,
)

__all__ = [
    # Logging
    "LatencyLogger",
    "latency_log",
    "setup_logging",
    # Sync
    "get_sync_loop",
    "run_sync",
    # Vectors
    "clamp_scores",
    "combine_embeddings",
    "cosine_similarity",
    "normalize",
    "normalize_rows",
    "sum_vectors",
]
