"""TCP listener.

[`HttpServer`](src/minihttp/server.py:1) binds the listening socket, accepts
connections and starts one [`Connection`](src/minihttp/connection.py:1) task
per accepted stream inside its own TaskGroup. The listening socket never leaves
[`HttpServer.serve()`](src/minihttp/server.py:1); workers only get their stream
and the (frozen) router.

Typical use, with structured concurrency:

    async with anyio.create_task_group() as tg:
        port = await tg.start(server.serve)
        ...
        server.shutdown()
"""

from __future__ import annotations

import logging

import anyio
from anyio.abc import SocketAttribute, SocketListener, TaskGroup, TaskStatus

from .config import ServerConfig
from .connection import Connection
from .handlers import default_router
from .router import Router


logger = logging.getLogger(__name__)

# Pause after a failed accept so a persistent error (e.g. EMFILE) cannot spin.
ACCEPT_ERROR_BACKOFF = 0.01


class ServerStartupError(OSError):
    """Raised when the listening socket cannot be created, bound or listened on."""
    pass


class HttpServer:
    """
    HTTP/1.1 server.

    - Freezes its router, then binds and listens in serve()
    - Accepts forever; failed accepts are logged and skipped
    - Runs every connection as a task in the server's TaskGroup, so
      shutdown() cancels the accept loops and all open connections together
    """

    def __init__(self, router: Router | None = None, config: ServerConfig | None = None):
        self._router = router if router is not None else default_router()
        self._config = config or ServerConfig()
        self._cancel_scope: anyio.CancelScope | None = None
        self._connections: set[Connection] = set()
        self._port: int | None = None

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def router(self) -> Router:
        return self._router

    @property
    def port(self) -> int | None:
        """Port actually bound, once serving."""
        return self._port

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    async def serve(self, *, task_status: TaskStatus[int] = anyio.TASK_STATUS_IGNORED) -> None:
        """
        Listen and serve until cancelled or shut down.

        Reports the bound port through ``task_status`` so callers can use
        ``await task_group.start(server.serve)``.

        Raises:
            ServerStartupError: if the listening socket cannot be set up.
        """
        self._router.freeze()
        host, port = self._config.host, self._config.port

        try:
            listener = await anyio.create_tcp_listener(local_host=host, local_port=port)
        except OSError as e:
            message = f"cannot listen on {host}:{port}: {e.strerror or e}"
            if e.errno is None:
                raise ServerStartupError(message) from e
            raise ServerStartupError(e.errno, message) from e

        async with listener:
            self._port = listener.extra(SocketAttribute.local_port)
            logger.info("listening on %s:%s", host, self._port)

            async with anyio.create_task_group() as tg:
                self._cancel_scope = tg.cancel_scope
                for sub in listener.listeners:
                    tg.start_soon(self._accept_loop, sub, tg)
                task_status.started(self._port)

        self._cancel_scope = None
        logger.info("server on port %s stopped", self._port)

    def shutdown(self) -> None:
        """Stop accepting and cancel every open connection."""
        if self._cancel_scope is not None:
            logger.info("shutting down server on port %s", self._port)
            self._cancel_scope.cancel()

    async def _accept_loop(self, listener: SocketListener, tg: TaskGroup) -> None:
        while True:
            try:
                stream = await listener.accept()
            except anyio.ClosedResourceError:
                return
            except OSError as e:
                logger.warning("accept failed, skipping: %s", e)
                await anyio.sleep(ACCEPT_ERROR_BACKOFF)
                continue

            conn = Connection(
                stream,
                self._router,
                idle_timeout=self._config.idle_timeout,
                receive_buffer_size=self._config.receive_buffer_size,
            )
            tg.start_soon(self._run_connection, conn, name=f"minihttp connection {conn.peer}")

    async def _run_connection(self, conn: Connection) -> None:
        self._connections.add(conn)
        try:
            await conn.run()
        except Exception:
            logger.exception("connection %s crashed", conn.peer)
        finally:
            self._connections.discard(conn)
