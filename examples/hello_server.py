"""
HTTP Server Example

Runs the keep-alive server with the demo route plus a couple of extra ones.

- Each TCP connection is served by its own task in the server's TaskGroup.
- Each message on a connection is parsed, routed by exact (method, path) and answered.
- Connections stay open until they have been idle for 10 seconds.

Run:
  python examples/hello_server.py

Then try:
  curl -i http://127.0.0.1:8081/hello
  curl -i "http://127.0.0.1:8081/greet?name=ada"
  curl -i -X POST http://127.0.0.1:8081/echo -d 'hello there'
"""

from __future__ import annotations

import logging

import anyio

from minihttp import HttpServer, Request, Response, ServerConfig, default_router


router = default_router()


@router.route("GET", "/greet")
def greet(req: Request, resp: Response) -> int:
    resp.set_text(f"hello, {req.args.get('name', 'stranger')}\n")
    return 200


@router.route("POST", "/echo")
async def echo(req: Request, resp: Response) -> int:
    # Echo the request body back.
    await anyio.sleep(0)
    resp.set_text(req.body)
    return 200


async def main() -> None:
    server = HttpServer(router, ServerConfig(host="127.0.0.1"))

    async with anyio.create_task_group() as tg:
        port = await tg.start(server.serve)
        print(f"Listening on http://127.0.0.1:{port}")
        print("Press Ctrl-C to stop.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    anyio.run(main)
