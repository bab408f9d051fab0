"""Router module - route definitions, the layer builder and the route layer."""

from semroute.router.route_builder import RouterBuilder
from semroute.router.loader import load_routes
from semroute.router.route_layer import RouteLayer, materialize_routes
from semroute.router.builder import RouteLayerBuilder

__all__ = [
    # Routes
    "RouterBuilder",
    "load_routes",
    # Layer
    "RouteLayer",
    "RouteLayerBuilder",
    "materialize_routes",
]
