"""Pydantic schemas for routes and routing results."""

from enum import Enum
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Aggregation
# =============================================================================


class AggregationMethod(str, Enum):
    """How the top-k scores that belong to one route collapse into one score."""

    MEAN = "mean"
    MAX = "max"
    SUM = "sum"

    def aggregate(self, scores: Sequence[float]) -> float:
        """Collapse a non-empty list of scores."""
        if not scores:
            raise ValueError("Cannot aggregate an empty list of scores")
        if self is AggregationMethod.SUM:
            return float(sum(scores))
        if self is AggregationMethod.MAX:
            return float(max(scores))
        return float(sum(scores) / len(scores))


# =============================================================================
# Route
# =============================================================================


class Route(BaseModel):
    """A named intent described by example utterances and their embeddings."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique route identifier within a layer.")
    utterances: list[str] = Field(
        default_factory=list,
        description="Example texts characteristic of the route.",
    )
    embeddings: Optional[list[list[float]]] = Field(
        default=None,
        description="One embedding row per utterance (or standalone rows when utterances are empty).",
    )
    threshold: Optional[float] = Field(
        default=None,
        ge=-1.0,
        le=1.0,
        description="Per-route acceptance threshold overriding the layer default.",
    )
    description: Optional[str] = Field(
        default=None,
        description="Human-readable description of the route's intent.",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        """Ensure the route name is not blank."""
        if not v or not v.strip():
            raise ValueError("Route name cannot be empty")
        return v

    @model_validator(mode="after")
    def check_embedding_shape(self) -> "Route":
        """Ensure utterances and embeddings describe the same entries."""
        if not self.utterances and self.embeddings is None:
            raise ValueError(
                f"Route '{self.name}' needs at least one utterance or a precomputed embedding"
            )
        if self.embeddings is not None:
            if not self.embeddings:
                raise ValueError(f"Route '{self.name}' has an empty embedding matrix")
            widths = {len(row) for row in self.embeddings}
            if len(widths) > 1:
                raise ValueError(
                    f"Route '{self.name}' has embedding rows of inconsistent widths: {sorted(widths)}"
                )
            if 0 in widths:
                raise ValueError(f"Route '{self.name}' has zero-width embedding rows")
            if self.utterances and len(self.utterances) != len(self.embeddings):
                raise ValueError(
                    f"Route '{self.name}' has {len(self.utterances)} utterances "
                    f"but {len(self.embeddings)} embedding rows"
                )
        return self

    @property
    def dimension(self) -> Optional[int]:
        """Embedding width, or None before embeddings are attached."""
        if not self.embeddings:
            return None
        return len(self.embeddings[0])

    def with_embeddings(self, embeddings: list[list[float]]) -> "Route":
        """Return a validated copy of the route carrying the given embeddings."""
        data = self.model_dump(exclude={"embeddings"})
        return type(self)(**data, embeddings=embeddings)


# =============================================================================
# Routing result
# =============================================================================


class RouteMatch(BaseModel):
    """The winning route for a query."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Name of the winning route.")
    score: float = Field(..., description="Aggregated similarity score of the route.")
    hits: int = Field(..., ge=1, description="Number of top-k entries that belonged to the route.")
    description: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
