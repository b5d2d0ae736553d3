"""Tests for the per-connection worker, driven by an in-memory stream."""

from __future__ import annotations

import anyio
import pytest

from minihttp import Connection, ConnectionState, Router, default_router


HELLO = b"GET /hello HTTP/1.1\r\nHost: x\r\n\r\n"
HELLO_RESPONSE_BODY = b"\r\n\r\nHELLO WORLD!!!!!!"


class FakeStream:
    """Minimal stand-in for an AnyIO SocketStream."""

    def __init__(
        self,
        chunks: list[bytes],
        *,
        idle_after: bool = False,
        fail_send: bool = False,
        stall_send: bool = False,
    ):
        self._chunks = list(chunks)
        self._idle_after = idle_after
        self._fail_send = fail_send
        self._stall_send = stall_send
        self.sent: list[bytes] = []
        self.receive_sizes: list[int] = []
        self.closed = False

    def extra(self, attribute, default=None):
        return ("127.0.0.1", 50000)

    async def receive(self, max_bytes: int = 65536) -> bytes:
        self.receive_sizes.append(max_bytes)
        if self._chunks:
            return self._chunks.pop(0)
        if self._idle_after:
            await anyio.sleep_forever()
        raise anyio.EndOfStream

    async def send(self, item: bytes) -> None:
        if self._fail_send:
            raise anyio.BrokenResourceError
        if self._stall_send:
            await anyio.sleep_forever()
        self.sent.append(item)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True


class TestConnection:
    """Test the WaitingForData/Processing/Closed loop."""

    async def test_serves_until_end_of_stream(self):
        stream = FakeStream([HELLO, HELLO])
        conn = Connection(stream, default_router())  # type: ignore[arg-type]

        await conn.run()

        assert len(stream.sent) == 2
        assert all(s.startswith(b"HTTP/1.1 200 OK\r\n") for s in stream.sent)
        assert all(s.endswith(HELLO_RESPONSE_BODY) for s in stream.sent)
        assert conn.requests_served == 2
        assert conn.state is ConnectionState.CLOSED
        assert stream.closed

    async def test_peer_address(self):
        conn = Connection(FakeStream([]), default_router())  # type: ignore[arg-type]
        assert conn.peer == ("127.0.0.1", 50000)
        assert conn.state is ConnectionState.WAITING_FOR_DATA

    async def test_receive_buffer_size(self):
        stream = FakeStream([HELLO])
        conn = Connection(stream, default_router(), receive_buffer_size=1024)  # type: ignore[arg-type]
        await conn.run()
        assert stream.receive_sizes == [1024, 1024]

    async def test_unmatched_route(self):
        stream = FakeStream([b"GET /missing HTTP/1.1\r\n\r\n"])
        await Connection(stream, default_router()).run()  # type: ignore[arg-type]
        assert stream.sent[0].startswith(b"HTTP/1.1 400 Not Found\r\n")
        assert stream.sent[0].endswith(b"\r\n\r\nRoute Not Found")

    async def test_malformed_request_gets_bad_request(self):
        """Test a parse error is answered and the connection keeps going."""
        stream = FakeStream([b"complete nonsense", HELLO])
        conn = Connection(stream, default_router())  # type: ignore[arg-type]
        await conn.run()

        assert len(stream.sent) == 2
        assert stream.sent[0].startswith(b"HTTP/1.1 400 Bad Request\r\n")
        assert stream.sent[0].endswith(b"\r\n\r\nBad Request: missing request target")
        assert stream.sent[1].startswith(b"HTTP/1.1 200 OK\r\n")

    async def test_idle_timeout_closes(self):
        stream = FakeStream([HELLO], idle_after=True)
        conn = Connection(stream, default_router(), idle_timeout=0.05)  # type: ignore[arg-type]

        with anyio.fail_after(2):
            await conn.run()

        assert conn.requests_served == 1
        assert conn.state is ConnectionState.CLOSED
        assert stream.closed

    async def test_send_failure_closes(self):
        stream = FakeStream([HELLO, HELLO], fail_send=True)
        conn = Connection(stream, default_router())  # type: ignore[arg-type]
        await conn.run()

        assert conn.requests_served == 0
        assert stream.receive_sizes == [1024]
        assert stream.closed

    async def test_handler_crash_closes(self):
        router = Router()

        @router.route("GET", "/boom")
        def boom(_req, _resp):
            raise RuntimeError("boom")

        stream = FakeStream([b"GET /boom HTTP/1.1\r\n\r\n", HELLO])
        conn = Connection(stream, router)  # type: ignore[arg-type]
        await conn.run()

        assert stream.sent == []
        assert conn.state is ConnectionState.CLOSED
        assert stream.closed

    async def test_async_handler(self):
        router = Router()

        @router.route("POST", "/echo")
        async def echo(req, resp):
            await anyio.sleep(0)
            resp.set_text(req.body)

        stream = FakeStream([b"POST /echo HTTP/1.1\r\nContent-Length: 4\r\n\r\nping"])
        await Connection(stream, router).run()  # type: ignore[arg-type]
        assert stream.sent[0].endswith(b"\r\n\r\nping")

    async def test_cancel_while_idle(self):
        stream = FakeStream([], idle_after=True)
        conn = Connection(stream, default_router())  # type: ignore[arg-type]

        async with anyio.create_task_group() as tg:
            tg.start_soon(conn.run)
            await anyio.sleep(0.05)
            tg.cancel_scope.cancel()

        assert conn.state is ConnectionState.CLOSED
        assert stream.closed

    @pytest.mark.parametrize("error", [anyio.BrokenResourceError, ConnectionResetError])
    async def test_receive_error_closes(self, error):
        class BrokenStream(FakeStream):
            async def receive(self, max_bytes: int = 65536) -> bytes:
                raise error

        stream = BrokenStream([])
        conn = Connection(stream, default_router())  # type: ignore[arg-type]
        await conn.run()
        assert stream.closed
        assert stream.sent == []

    async def test_echo_passes_bytes_through(self):
        """Test request bytes a handler echoes come back unchanged."""
        router = Router()

        @router.route("POST", "/echo")
        def echo(req, resp):
            resp.set_text(req.body)

        body = "café".encode("utf-8") + b"\xff\xfe"
        stream = FakeStream([b"POST /echo HTTP/1.1\r\n\r\n" + body])
        await Connection(stream, router).run()  # type: ignore[arg-type]

        assert stream.sent[0].endswith(b"\r\n\r\n" + body)
        assert f"Content-Length: {len(body)}\r\n".encode() in stream.sent[0]

    async def test_stalled_send_gives_up(self):
        """Test a peer that never drains the response is dropped after idle_timeout."""
        stream = FakeStream([HELLO, HELLO], stall_send=True)
        conn = Connection(stream, default_router(), idle_timeout=0.1)  # type: ignore[arg-type]

        with anyio.fail_after(2):
            await conn.run()

        assert conn.requests_served == 0
        assert conn.state is ConnectionState.CLOSED
        assert stream.closed

    async def test_cancel_during_stalled_send(self):
        """Test cancelling the enclosing scope cannot hang on a shielded send."""
        stream = FakeStream([HELLO], stall_send=True)
        conn = Connection(stream, default_router(), idle_timeout=0.2)  # type: ignore[arg-type]

        with anyio.fail_after(2):
            async with anyio.create_task_group() as tg:
                tg.start_soon(conn.run)
                await anyio.sleep(0.05)
                tg.cancel_scope.cancel()

        assert conn.state is ConnectionState.CLOSED
        assert stream.closed
