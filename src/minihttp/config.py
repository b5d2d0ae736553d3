"""Server configuration."""

from dataclasses import dataclass


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8081
DEFAULT_IDLE_TIMEOUT = 10.0
DEFAULT_RECEIVE_BUFFER_SIZE = 1024

# Text codec for both directions. surrogateescape keeps undecodable bytes
# intact, so request bytes echoed by a handler go back out unchanged.
WIRE_ENCODING = "utf-8"
WIRE_ERRORS = "surrogateescape"


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """
    Settings for an [`HttpServer`](src/minihttp/server.py:1).

    Attributes:
        host: Address to bind the listening socket to
        port: TCP port to listen on (0 picks a free port)
        idle_timeout: Seconds a connection may stay silent before it is closed
        receive_buffer_size: Maximum bytes read per request message
    """
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    receive_buffer_size: int = DEFAULT_RECEIVE_BUFFER_SIZE

    def __post_init__(self):
        """Validate the config."""
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        if self.idle_timeout <= 0:
            raise ValueError("idle_timeout must be positive")
        if self.receive_buffer_size <= 0:
            raise ValueError("receive_buffer_size must be positive")
