"""Fluent builder for Route definitions."""

from typing import Any, Iterable, Optional, Sequence

from pydantic import ValidationError

from semroute.contracts import Route
from semroute.errors import InvalidConfiguration


class RouterBuilder:
    """Builds a validated ``Route``.

    Example:
        politics = (
            RouterBuilder("politics")
            .utterances([
                "isn't politics the best thing ever",
                "they will save the country!",
            ])
            .threshold(0.8)
            .build()
        )
    """

    def __init__(self, name: str):
        self._name = name
        self._utterances: list[str] = []
        self._embeddings: Optional[list[list[float]]] = None
        self._threshold: Optional[float] = None
        self._description: Optional[str] = None
        self._metadata: dict[str, Any] = {}

    def utterances(self, utterances: Iterable[str]) -> "RouterBuilder":
        self._utterances = list(utterances)
        return self

    def embedding(self, embeddings: Optional[Sequence[Sequence[float]]]) -> "RouterBuilder":
        """Attach precomputed embeddings, one row per utterance."""
        if embeddings is None:
            self._embeddings = None
        else:
            self._embeddings = [[float(x) for x in row] for row in embeddings]
        return self

    def threshold(self, threshold: Optional[float]) -> "RouterBuilder":
        self._threshold = threshold
        return self

    def description(self, description: Optional[str]) -> "RouterBuilder":
        self._description = description
        return self

    def metadata(self, metadata: Optional[dict[str, Any]]) -> "RouterBuilder":
        self._metadata = dict(metadata or {})
        return self

    def build(self) -> Route:
        """Validate and return the route.

        Raises:
            InvalidConfiguration: If the route has neither utterances nor
                embeddings, or the embedding matrix is malformed.
        """
        try:
            return Route(
                name=self._name,
                utterances=self._utterances,
                embeddings=self._embeddings,
                threshold=self._threshold,
                description=self._description,
                metadata=self._metadata,
            )
        except ValidationError as e:
            raise InvalidConfiguration(f"Invalid route configuration for '{self._name}': {e}") from e
