"""Per-connection worker.

Each accepted connection runs a small state machine:

    WAITING_FOR_DATA -> PROCESSING -> WAITING_FOR_DATA -> ... -> CLOSED

While waiting, a single receive of up to ``receive_buffer_size`` bytes is
bounded by ``idle_timeout``. Whatever one receive returns is treated as one
complete request message: it is parsed, routed, serialized and written back,
then the worker waits again. The connection is closed on idle timeout, end of
stream, a transport error, or a handler crash.
"""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Any

import anyio
from anyio.abc import SocketAttribute, SocketStream

from .config import DEFAULT_IDLE_TIMEOUT, DEFAULT_RECEIVE_BUFFER_SIZE
from .request import RequestParseError, parse_request
from .response import Response, serialize_response
from .router import Router


logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (
    anyio.EndOfStream,
    anyio.BrokenResourceError,
    anyio.ClosedResourceError,
    OSError,
)


class ConnectionState(Enum):
    WAITING_FOR_DATA = auto()
    PROCESSING = auto()
    CLOSED = auto()


def bad_request(resp: Response, reason: str) -> None:
    resp.set_text(f"Bad Request: {reason}", status_code=400, status_message="Bad Request")


class Connection:
    """
    Serves requests on one accepted stream until it goes idle or breaks.

    The connection owns its stream and closes it on exit. It never sees the
    listening socket.
    """

    def __init__(
        self,
        stream: SocketStream,
        router: Router,
        *,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        receive_buffer_size: int = DEFAULT_RECEIVE_BUFFER_SIZE,
    ):
        self._stream = stream
        self._router = router
        self._idle_timeout = idle_timeout
        self._receive_buffer_size = receive_buffer_size
        self.state = ConnectionState.WAITING_FOR_DATA
        self.requests_served = 0
        self.peer: Any = stream.extra(SocketAttribute.remote_address, None)

    async def run(self) -> None:
        async with self._stream:
            logger.info("client connected: %s", self.peer)
            try:
                while self.state is not ConnectionState.CLOSED:
                    data = await self._wait_for_data()
                    if not data:
                        break

                    self.state = ConnectionState.PROCESSING
                    if not await self._process(data):
                        break
                    self.state = ConnectionState.WAITING_FOR_DATA
            finally:
                self.state = ConnectionState.CLOSED
                logger.info(
                    "client disconnected: %s (%d requests)", self.peer, self.requests_served
                )

    async def _wait_for_data(self) -> bytes | None:
        with anyio.move_on_after(self._idle_timeout):
            try:
                return await self._stream.receive(self._receive_buffer_size)
            except _TRANSPORT_ERRORS as e:
                logger.debug("receive from %s ended: %r", self.peer, e)
                return None
        logger.info("closing idle connection %s after %ss", self.peer, self._idle_timeout)
        return None

    async def _process(self, data: bytes) -> bool:
        """Answer one message. Returns False when the connection must close."""
        try:
            request = parse_request(data)
        except RequestParseError as e:
            logger.warning("malformed request from %s: %s", self.peer, e)
            response = Response()
            bad_request(response, str(e))
        else:
            logger.debug(
                "%s %s args=%r headers=%r body=%r",
                request.method,
                request.path,
                request.args,
                request.headers,
                request.body,
            )
            try:
                response, _ = await self._router.dispatch(request)
            except Exception:
                logger.exception(
                    "handler for %s %s failed; closing %s", request.method, request.path, self.peer
                )
                return False

        payload = serialize_response(response)
        logger.debug("-> %s %s %s", self.peer, response.status_code, response.status_message)

        # A response that has started going out is finished even during shutdown,
        # but a peer that stops reading only gets idle_timeout to drain it.
        with anyio.move_on_after(self._idle_timeout, shield=True) as scope:
            try:
                await self._stream.send(payload)
            except _TRANSPORT_ERRORS as e:
                logger.debug("send to %s failed: %r", self.peer, e)
                return False
        if scope.cancelled_caught:
            logger.info("send to %s stalled for %ss, closing", self.peer, self._idle_timeout)
            return False

        self.requests_served += 1
        return True
