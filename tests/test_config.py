"""Tests for configuration and configuration-driven construction."""

import sys

import pytest
from loguru import logger
from pydantic import ValidationError
from unittest.mock import patch

from semroute.config import Config, get_config, reload_config
from semroute.contracts import AggregationMethod
from semroute.index import MemoryIndex, PgVectorIndex, QdrantIndex, build_index
from semroute.router import RouteLayerBuilder
from semroute.utils import latency_log, setup_logging

from tests.fakes import ConstantEmbedder


ROUTES_YAML = """
routes:
  - name: politics
    threshold: 0.9
    utterances:
      - isn't politics the best thing ever
  - name: chitchat
    utterances:
      - lovely weather today
"""


def test_defaults():
    config = Config()

    assert config.router_threshold == 0.82
    assert config.embedding_dimension is None
    assert config.router_top_k == 5
    assert config.router_aggregation == "mean"
    assert config.router_index_backend == "memory"
    assert config.routes_file is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("ROUTER_THRESHOLD", "0.7")
    monkeypatch.setenv("ROUTER_AGGREGATION", "MAX")
    monkeypatch.setenv("ROUTER_INDEX_BACKEND", "Qdrant")

    config = reload_config()

    assert config.router_threshold == 0.7
    assert config.router_aggregation == "max"
    assert config.router_index_backend == "qdrant"


def test_invalid_values(monkeypatch):
    monkeypatch.setenv("ROUTER_TOP_K", "0")

    with pytest.raises(ValidationError):
        Config()


def test_get_config_is_singleton():
    assert get_config() is get_config()
    assert reload_config() is get_config()


@pytest.mark.parametrize(
    "backend, expected",
    [("memory", MemoryIndex), ("qdrant", QdrantIndex), ("pgvector", PgVectorIndex)],
)
def test_build_index(backend, expected):
    config = Config(router_index_backend=backend)

    assert isinstance(build_index(config), expected)


@pytest.mark.asyncio
async def test_builder_from_config(tmp_path):
    routes_file = tmp_path / "routes.yaml"
    routes_file.write_text(ROUTES_YAML)
    config = Config(
        routes_file=str(routes_file),
        router_threshold=0.6,
        router_top_k=3,
        router_aggregation="max",
    )

    with patch("semroute.router.builder.build_openai_embedder") as build_embedder:
        build_embedder.return_value = ConstantEmbedder([1.0, 0.0])
        layer = await RouteLayerBuilder.from_config(config).build()

    build_embedder.assert_called_once_with(config)
    assert list(layer.routes) == ["politics", "chitchat"]
    assert layer.routes["politics"].threshold == 0.9
    assert layer.threshold == 0.6
    assert layer.top_k == 3
    assert layer.aggregation is AggregationMethod.MAX
    assert isinstance(layer.index, MemoryIndex)


class TestLogging:
    """Test cases for logging helpers."""

    @pytest.fixture(autouse=True)
    def restore_logger(self):
        yield
        logger.remove()
        logger.add(sys.stderr)

    def test_setup_logging(self, capsys):
        setup_logging("DEBUG", colorize=False)
        logger.debug("routing ready")

        out = capsys.readouterr().out
        assert "Logging initialized at level: DEBUG" in out
        assert "routing ready" in out

    def test_latency_log(self, capsys):
        setup_logging("DEBUG", colorize=False)

        with latency_log("route query") as timer:
            pass

        assert timer.elapsed_ms >= 0
        assert "route query completed in" in capsys.readouterr().out

    def test_latency_log_failure(self, capsys):
        setup_logging("DEBUG", colorize=False)

        with pytest.raises(RuntimeError):
            with latency_log("route layer build"):
                raise RuntimeError("boom")

        assert "route layer build failed after" in capsys.readouterr().out
