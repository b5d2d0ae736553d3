"""HTTP response model and serializer."""

from __future__ import annotations

from dataclasses import dataclass, field

from .config import WIRE_ENCODING, WIRE_ERRORS


HeaderMap = dict[str, str]

HTTP_VERSION = "HTTP/1.1"

STATUS_TEXT: dict[int, str] = {
    200: "OK",
    204: "No Content",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
}


@dataclass(slots=True)
class Response:
    """
    Mutable response populated in place by a route handler.

    ``status_message`` may be left empty, in which case the standard reason
    phrase for ``status_code`` is used on the wire. Nothing is added to the
    headers automatically; handlers set ``Content-Length`` themselves, or use
    [`Response.set_text()`](src/minihttp/response.py:1).
    """
    status_code: int | str = 200
    status_message: str = ""
    headers: HeaderMap = field(default_factory=dict)
    body: str = ""

    def set_text(
        self,
        body: str,
        *,
        status_code: int | str = 200,
        status_message: str = "",
        keep_alive: bool = True,
    ) -> None:
        """Fill in a plain-text body with matching Content-Type/Content-Length."""
        self.body = body
        self.headers["Content-Type"] = "text/plain"
        self.headers["Content-Length"] = str(len(body.encode(WIRE_ENCODING, WIRE_ERRORS)))
        self.headers["Connection"] = "keep-alive" if keep_alive else "close"
        self.status_code = status_code
        self.status_message = status_message


def _status_line(response: Response) -> str:
    message = response.status_message
    # Only an empty message is filled in; an explicit one is written as given.
    if not message:
        try:
            message = STATUS_TEXT.get(int(response.status_code), "")
        except ValueError:
            message = ""
    return f"{HTTP_VERSION} {response.status_code} {message}\r\n"


def serialize_response(response: Response) -> bytes:
    """
    Render a response to wire bytes.

    Layout is the status line, one ``key: value`` line per header in the
    header dict's order, a blank line, then the body unchanged.
    """
    head = "".join(f"{k}: {v}\r\n" for k, v in response.headers.items())
    text = _status_line(response) + head + "\r\n" + response.body
    return text.encode(WIRE_ENCODING, WIRE_ERRORS)
