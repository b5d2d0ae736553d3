"""Built-in demo handlers and the default route table."""

from __future__ import annotations

from .request import Request
from .response import Response
from .router import Router


def hello(_req: Request, resp: Response) -> int:
    resp.set_text("HELLO WORLD!!!!!!", status_code=200, status_message="OK")
    return 200


def default_router() -> Router:
    """Build the router the server runs with when none is given."""
    router = Router()
    router.add_route("GET", "/hello", hello)
    return router
