"""Tests for route schemas and the route builder."""

import pytest
from pydantic import ValidationError

from semroute.contracts import AggregationMethod, Route, RouteMatch
from semroute.errors import InvalidConfiguration
from semroute.router import RouterBuilder


class TestAggregationMethod:
    """Test cases for AggregationMethod."""

    def test_mean(self):
        assert AggregationMethod.MEAN.aggregate([0.9, 0.2]) == pytest.approx(0.55)

    def test_max(self):
        assert AggregationMethod.MAX.aggregate([0.9, 0.2]) == pytest.approx(0.9)

    def test_sum(self):
        assert AggregationMethod.SUM.aggregate([0.9, 0.2]) == pytest.approx(1.1)

    def test_single_score_mean_equals_max(self):
        assert AggregationMethod.MEAN.aggregate([0.42]) == AggregationMethod.MAX.aggregate([0.42])

    def test_empty_scores(self):
        with pytest.raises(ValueError):
            AggregationMethod.MEAN.aggregate([])

    def test_from_string(self):
        assert AggregationMethod("sum") is AggregationMethod.SUM


class TestRoute:
    """Test cases for Route validation."""

    def test_utterances_only(self):
        route = Route(name="politics", utterances=["vote for me"])

        assert route.embeddings is None
        assert route.dimension is None
        assert route.threshold is None

    def test_embeddings_only(self):
        route = Route(name="vectors", embeddings=[[0.1, 0.2], [0.3, 0.4]])

        assert route.utterances == []
        assert route.dimension == 2

    def test_needs_utterances_or_embeddings(self):
        with pytest.raises(ValidationError):
            Route(name="empty")

    def test_blank_name(self):
        with pytest.raises(ValidationError):
            Route(name="  ", utterances=["hi"])

    def test_embedding_count_must_match_utterances(self):
        with pytest.raises(ValidationError):
            Route(name="r", utterances=["a", "b"], embeddings=[[1.0, 0.0]])

    def test_inconsistent_widths(self):
        with pytest.raises(ValidationError):
            Route(name="r", embeddings=[[1.0, 0.0], [1.0]])

    def test_empty_embedding_matrix(self):
        with pytest.raises(ValidationError):
            Route(name="r", embeddings=[])

    def test_threshold_range(self):
        with pytest.raises(ValidationError):
            Route(name="r", utterances=["a"], threshold=1.5)

    def test_frozen(self):
        route = Route(name="r", utterances=["a"])

        with pytest.raises(ValidationError):
            route.name = "other"

    def test_with_embeddings_returns_validated_copy(self):
        route = Route(name="r", utterances=["a"], description="d", metadata={"k": 1})

        embedded = route.with_embeddings([[1.0, 0.0]])

        assert embedded.embeddings == [[1.0, 0.0]]
        assert embedded.description == "d"
        assert embedded.metadata == {"k": 1}
        assert route.embeddings is None
        with pytest.raises(ValidationError):
            route.with_embeddings([[1.0], [0.0]])


class TestRouterBuilder:
    """Test cases for RouterBuilder."""

    def test_build(self):
        route = (
            RouterBuilder("politics")
            .utterances(["isn't politics the best thing ever", "they will save the country!"])
            .threshold(0.8)
            .description("Political talk")
            .metadata({"handler": "politics"})
            .build()
        )

        assert route.name == "politics"
        assert len(route.utterances) == 2
        assert route.threshold == 0.8
        assert route.description == "Political talk"
        assert route.metadata == {"handler": "politics"}

    def test_embedding_rows_are_floats(self):
        route = RouterBuilder("ints").embedding([[1, 2], [3, 4]]).build()

        assert route.embeddings == [[1.0, 2.0], [3.0, 4.0]]

    def test_neither_utterances_nor_embeddings(self):
        with pytest.raises(InvalidConfiguration):
            RouterBuilder("empty").build()

    def test_mismatched_shapes(self):
        with pytest.raises(InvalidConfiguration):
            RouterBuilder("r").utterances(["a", "b"]).embedding([[1.0, 0.0]]).build()

    def test_invalid_configuration_is_value_error(self):
        with pytest.raises(ValueError):
            RouterBuilder("").utterances(["a"]).build()


def test_route_match():
    match = RouteMatch(name="politics", score=0.76, hits=2)

    assert match.metadata == {}
    with pytest.raises(ValidationError):
        RouteMatch(name="politics", score=0.76, hits=0)
