"""Data contracts shared by the router, index and embedding modules."""

from semroute.contracts.schemas import AggregationMethod, Route, RouteMatch

__all__ = [
    "AggregationMethod",
    "Route",
    "RouteMatch",
]
