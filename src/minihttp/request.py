"""HTTP request model and parser.

The parser is string-search based rather than a real tokenizer: it looks for
the first ``/`` to find the method, the first ``HTTP`` token to find the end of
the target, and then walks CRLF-delimited header lines until the first blank
one. Whatever follows the blank line is the body.

Only three things are treated as fatal and reported with
[`RequestParseError`](src/minihttp/request.py:1):
- no ``/`` anywhere in the message
- no ``HTTP`` token after the target
- no CRLF terminating the request line

Everything else is accepted on a best-effort basis.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .config import WIRE_ENCODING, WIRE_ERRORS


ArgMap = dict[str, str]
HeaderMap = dict[str, str]

# Same set as C's isspace() in the "C" locale.
_WHITESPACE = " \t\n\r\x0b\x0c"
_CRLF = "\r\n"


class RequestParseError(ValueError):
    """Raised when a message is too broken to yield a method and path."""
    pass


@dataclass(frozen=True, slots=True)
class Request:
    method: str
    path: str
    args: ArgMap = field(default_factory=dict)
    headers: HeaderMap = field(default_factory=dict)
    body: str = ""


def trim(value: str) -> str:
    """Strip leading and trailing ASCII whitespace."""
    return value.strip(_WHITESPACE)


def decode_request(data: bytes) -> str:
    return data.decode(WIRE_ENCODING, WIRE_ERRORS)


def _split_pair(text: str, sep: str) -> tuple[str, str]:
    # A missing separator yields the whole text as key and an empty value.
    key, _, value = text.partition(sep)
    return trim(key), trim(value)


def _parse_args(query: str) -> ArgMap:
    args: ArgMap = {}
    for pair in query.split("&"):
        key, value = _split_pair(pair, "=")
        args[key] = value
    return args


def _parse_headers(lines: str) -> tuple[HeaderMap, str]:
    """Consume header lines, returning the headers and the unconsumed rest."""
    headers: HeaderMap = {}
    rest = lines
    while True:
        end = rest.find(_CRLF)
        if end == -1:
            line, remainder = rest, ""
        else:
            line, remainder = rest[:end], rest[end + len(_CRLF):]

        if not trim(line):
            return headers, rest

        key, value = _split_pair(line, ":")
        headers[key] = value
        rest = remainder


def parse_request(raw: str | bytes) -> Request:
    """
    Parse one complete HTTP message into a [`Request`](src/minihttp/request.py:1).

    Repeated query arguments and headers keep the last value seen. Header
    names keep their original case.

    Raises:
        RequestParseError: if the request line cannot be located.
    """
    text = decode_request(raw) if isinstance(raw, bytes) else raw

    slash = text.find("/")
    if slash == -1:
        raise RequestParseError("missing request target")
    method = trim(text[:slash])
    rest = text[slash:]

    version = rest.find("HTTP")
    if version == -1:
        raise RequestParseError("missing HTTP version token")
    head = rest[:version]

    args: ArgMap = {}
    if "?" in head:
        target, _, query = head.partition("?")
        path = trim(target)
        args = _parse_args(query)
    else:
        path = trim(head)

    line_end = rest.find(_CRLF)
    if line_end == -1:
        raise RequestParseError("unterminated request line")

    headers, rest = _parse_headers(rest[line_end + len(_CRLF):])

    return Request(
        method=method,
        path=path,
        args=args,
        headers=headers,
        body=trim(rest),
    )
