"""Minimal keep-alive HTTP/1.1 server with exact-match routing, built on AnyIO."""

from .config import ServerConfig
from .connection import Connection, ConnectionState
from .handlers import default_router, hello
from .request import Request, RequestParseError, parse_request, trim
from .response import Response, serialize_response
from .router import Handler, Route, Router, RouteTableFrozenError, route_not_found
from .server import HttpServer, ServerStartupError

__all__ = [
    # Messages
    "Request",
    "RequestParseError",
    "Response",
    "parse_request",
    "serialize_response",
    "trim",
    # Routing
    "Handler",
    "Route",
    "Router",
    "RouteTableFrozenError",
    "route_not_found",
    "default_router",
    "hello",
    # Serving
    "Connection",
    "ConnectionState",
    "HttpServer",
    "ServerConfig",
    "ServerStartupError",
]
