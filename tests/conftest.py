"""Pytest configuration and fixtures."""

import pytest

from semroute.config import reload_config
from semroute.contracts import Route
from semroute.router import RouterBuilder

from tests.fakes import (
    CHITCHAT_UTTERANCES,
    OFF_TOPIC_QUERY,
    POLITICS_UTTERANCES,
    BagOfWordsEmbedder,
)


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch) -> None:
    """Set up test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-api-key")
    monkeypatch.setenv("QDRANT_URL", "http://localhost:6333")
    monkeypatch.delenv("ROUTES_FILE", raising=False)
    monkeypatch.delenv("ROUTER_INDEX_BACKEND", raising=False)
    reload_config()


@pytest.fixture
def bow_embedder() -> BagOfWordsEmbedder:
    """Bag-of-words embedder over every text used by the routing scenarios."""
    return BagOfWordsEmbedder(POLITICS_UTTERANCES + CHITCHAT_UTTERANCES + [OFF_TOPIC_QUERY])


@pytest.fixture
def politics_route() -> Route:
    return RouterBuilder("politics").utterances(POLITICS_UTTERANCES).build()


@pytest.fixture
def chitchat_route() -> Route:
    return RouterBuilder("chitchat").utterances(CHITCHAT_UTTERANCES).build()
