"""
HTTP listener drivers for routeschema servers.

``UvicornDriver`` runs uvicorn in a background thread on a socket bound by the
caller's thread, so bind failures surface synchronously. ``serve`` runs uvicorn
in the foreground for production use.
"""

import asyncio
import logging
import socket
import threading
import time
from typing import TYPE_CHECKING, Any, Callable, Optional

import uvicorn

if TYPE_CHECKING:
    from .server import Server

logger = logging.getLogger(__name__)


class UvicornDriver:
    """Uvicorn listener running in a daemon thread."""

    def __init__(self, asgi_app: Callable, host: str = "127.0.0.1", port: int = 0, log_level: str = "warning"):
        """
        Args:
            asgi_app: The ASGI application to serve
            host: Host to bind to
            port: Port to bind to (0 for auto-assignment)
            log_level: uvicorn log level
        """
        self.asgi_app = asgi_app
        self.host = host
        self.port = port
        self.log_level = log_level
        self.actual_port: Optional[int] = None
        self.server_instance: Optional[uvicorn.Server] = None
        self.server_thread: Optional[threading.Thread] = None
        self.server_error: Optional[BaseException] = None
        self._socket: Optional[socket.socket] = None

    @property
    def running(self) -> bool:
        return self.server_thread is not None and self.server_thread.is_alive()

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        return sock

    def start(self, timeout: float = 5.0) -> int:
        """Bind and start serving; returns the bound port.

        Raises:
            OSError: If the address cannot be bound
            TimeoutError: If the listener does not come up within ``timeout``
        """
        self._socket = self._bind()
        self.actual_port = self._socket.getsockname()[1]

        config = uvicorn.Config(
            app=self.asgi_app,
            log_level=self.log_level,
            access_log=False,
            lifespan="auto",
        )
        server = uvicorn.Server(config)
        self.server_instance = server
        sock = self._socket

        def run_server():
            try:
                asyncio.run(server.serve(sockets=[sock]))
            except BaseException as e:  # uvicorn reports startup failures with SystemExit
                logger.error(f"Listener on port {self.actual_port} stopped with an error", exc_info=True)
                self.server_error = e

        self.server_thread = threading.Thread(target=run_server, name=f"uvicorn-{self.actual_port}", daemon=True)
        self.server_thread.start()

        deadline = time.monotonic() + timeout
        while not server.started:
            if self.server_error is not None or not self.server_thread.is_alive():
                self._release()
                raise RuntimeError(f"Listener failed to start: {self.server_error!r}")
            if time.monotonic() > deadline:
                self.stop()
                raise TimeoutError(f"Listener failed to start within {timeout} seconds")
            time.sleep(0.01)

        logger.info(f"Listening on {self.host}:{self.actual_port}")
        return self.actual_port

    def stop(self, timeout: float = 5.0) -> None:
        """Ask uvicorn to exit and wait for the thread."""
        if self.server_instance is not None:
            self.server_instance.should_exit = True
        if self.server_thread is not None:
            self.server_thread.join(timeout)
            if self.server_thread.is_alive():
                logger.warning(f"Listener on port {self.actual_port} did not stop within {timeout} seconds")
        self._release()
        logger.info(f"Stopped listening on {self.host}:{self.actual_port}")

    def _release(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self.server_thread = None
        self.server_instance = None


def serve(server: "Server", host: str = "127.0.0.1", port: int = 8000, log_level: str = "info", **kwargs: Any) -> None:
    """Serve ``server`` with uvicorn in the foreground.

    Args:
        server: The routeschema Server to serve
        host: Host to bind to
        port: Port to bind to
        log_level: Logging level
        **kwargs: Additional uvicorn configuration options
    """
    logger.info(f"Starting Uvicorn server on {host}:{port}")
    server.freeze()
    uvicorn.run(server.asgi, host=host, port=port, log_level=log_level, **kwargs)
