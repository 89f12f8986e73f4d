"""Exception types raised by the router core and its collaborators."""

from __future__ import annotations


class RouterError(Exception):
    """Base class for router failures."""


class ConfigError(RouterError):
    """Router configuration could not be loaded or is inconsistent."""


class StorageUnavailable(RouterError):
    """The durable store could not be reached."""


class UnknownModelKey(RouterError):
    def __init__(self, model_key: str, route_type: str = "") -> None:
        self.model_key = model_key
        self.route_type = route_type
        where = f" {route_type}" if route_type else ""
        super().__init__(f"Unknown{where} model key: {model_key}")


class BackendUnavailable(RouterError):
    """A local or cloud backend failed, timed out or was unreachable."""


class RoutingDeterminationFailed(RouterError):
    """Classification or rule matching failed unexpectedly."""
