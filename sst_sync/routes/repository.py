"""
Route storage interface and its in-memory implementation.

Routes are never deleted; there is no remove operation.
"""

import itertools

from sst_sync.core.errors import RouteNotFound, TransitionFailure
from sst_sync.core.models import Route, RouteStatus


class RouteRepository:
    """Storage contract used by the route state machine."""

    def add(self, route: Route) -> Route:
        """Persist a new route and return it with its assigned id."""
        raise NotImplementedError

    def get(self, route_id: int) -> Route:
        """Return the route or raise RouteNotFound."""
        raise NotImplementedError

    def save(self, route: Route, expected_status: RouteStatus | None = None) -> Route:
        """
        Overwrite an existing route.

        When ``expected_status`` is given the write only happens if the
        stored route still has that status; otherwise TransitionFailure.
        """
        raise NotImplementedError

    def list(self, status: RouteStatus | None = None) -> list[Route]:
        raise NotImplementedError


class InMemoryRouteRepository(RouteRepository):
    def __init__(self) -> None:
        self._routes: dict[int, Route] = {}
        self._ids = itertools.count(1)

    def add(self, route: Route) -> Route:
        stored = route.model_copy(update={"route_id": next(self._ids)})
        self._routes[stored.route_id] = stored
        return stored

    def get(self, route_id: int) -> Route:
        try:
            return self._routes[route_id]
        except KeyError:
            raise RouteNotFound(route_id) from None

    def save(self, route: Route, expected_status: RouteStatus | None = None) -> Route:
        current = self.get(route.route_id)
        if expected_status is not None and current.status is not RouteStatus(expected_status):
            raise TransitionFailure(current.status.value, route.status.value)
        self._routes[route.route_id] = route
        return route

    def list(self, status: RouteStatus | None = None) -> list[Route]:
        routes = sorted(self._routes.values(), key=lambda r: r.route_id)
        if status is not None:
            routes = [r for r in routes if r.status is RouteStatus(status)]
        return routes
