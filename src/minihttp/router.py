"""Exact-match request router.

Routes are kept in registration order and matched on (method, path) with
plain string equality: no prefixes, wildcards or path parameters. The first
matching route wins. When nothing matches, the fallback handler runs.

A router is filled in at startup and then frozen; from that point on it is
shared read-only by every connection, so no locking is needed.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Union

from .request import Request
from .response import Response


logger = logging.getLogger(__name__)

HandlerResult = Union[int, None]
Handler = Callable[[Request, Response], Union[HandlerResult, Awaitable[HandlerResult]]]


class RouteTableFrozenError(RuntimeError):
    """Raised when a route is added after the router was frozen."""
    pass


@dataclass(frozen=True, slots=True)
class Route:
    method: str
    path: str
    handler: Handler

    def matches(self, method: str, path: str) -> bool:
        return self.method == method and self.path == path


def route_not_found(_req: Request, resp: Response) -> int:
    # 400 with a "Not Found" reason is kept for wire compatibility.
    resp.set_text("Route Not Found", status_code=400, status_message="Not Found")
    return 400


class Router:
    """
    Ordered table of routes.

    Handlers may be plain functions or coroutine functions taking
    ``(request, response)``; they populate the response in place.
    """

    def __init__(self, *, fallback: Handler = route_not_found):
        self._routes: list[Route] = []
        self._fallback = fallback
        self._frozen = False

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add_route(self, method: str, path: str, handler: Handler) -> Route:
        if self._frozen:
            raise RouteTableFrozenError(f"cannot add {method} {path}: route table is frozen")
        route = Route(method=method, path=path, handler=handler)
        self._routes.append(route)
        return route

    def route(self, method: str, path: str) -> Callable[[Handler], Handler]:
        """Decorator form of [`Router.add_route()`](src/minihttp/router.py:1)."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(method, path, handler)
            return handler
        return decorator

    def freeze(self) -> None:
        self._frozen = True

    def match(self, method: str, path: str) -> Route | None:
        for route in self._routes:
            if route.matches(method, path):
                return route
        return None

    async def dispatch(self, request: Request) -> tuple[Response, HandlerResult]:
        """
        Run the handler for ``request`` against a fresh, empty response.

        Returns the populated response and whatever the handler returned.
        Handler exceptions propagate to the caller.
        """
        route = self.match(request.method, request.path)
        if route is None:
            logger.debug("no route for %s %s, using fallback", request.method, request.path)
            handler = self._fallback
        else:
            handler = route.handler

        response = Response()
        result = handler(request, response)
        if inspect.isawaitable(result):
            result = await result
        return response, result
