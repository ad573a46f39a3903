"""Listener capability and its uvicorn-backed implementation."""

import abc
import asyncio
import contextlib
import logging
import socket
from typing import Callable, Optional

import uvicorn
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from minimal_server.config import (
    GRACE_PERIOD,
    HTTP_MAX_HEADER_BYTES,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    split_host_port,
)
from minimal_server.errors import DrainTimeoutError, ListenError, ServeError
from minimal_server.middleware.timeout import TimeoutMiddleware

logger = logging.getLogger(__name__)


class Listener(abc.ABC):
    """Something that serves connections and can be drained once.

    ``serve()`` returns normally only after the listener was closed by
    ``drain()``; any other way of stopping raises. Only the shutdown
    coordinator calls ``disable_keep_alives()`` and ``drain()``.
    """

    @abc.abstractmethod
    async def serve(self, on_started: Optional[Callable[[], None]] = None) -> None:
        """Accept and serve connections until drained.

        ``on_started`` is called once the address is bound, before any
        connection is accepted.
        """

    @abc.abstractmethod
    def disable_keep_alives(self) -> None:
        """Stop keeping idle persistent connections open."""

    @abc.abstractmethod
    async def drain(self, timeout: float) -> None:
        """Stop accepting connections and wait up to ``timeout`` for active ones.

        Raises:
            DrainTimeoutError: if active work did not finish in time
        """


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the lifecycle context."""

    def __init__(self, config: uvicorn.Config, started: asyncio.Event):
        super().__init__(config)
        self._started_event = started

    def install_signal_handlers(self) -> None:
        # uvicorn < 0.29
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield

    async def startup(self, sockets: Optional[list] = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self._started_event.set()


class UvicornListener(Listener):
    """
    HTTP/1.1 listener backed by uvicorn.

    Limits of drain(): when the timeout elapses the listener stops waiting
    for connections (force_exit) and reports DrainTimeoutError right away.
    Request tasks still running at that point are cancelled by uvicorn's own
    graceful-shutdown bound, which is set to the same grace period; drain()
    does not wait for that to finish.
    """

    def __init__(
        self,
        app: ASGIApp,
        address: str,
        read_timeout: float = HTTP_READ_TIMEOUT,
        write_timeout: float = HTTP_WRITE_TIMEOUT,
        max_header_bytes: int = HTTP_MAX_HEADER_BYTES,
        grace_period: float = GRACE_PERIOD,
    ):
        """
        Configure the listener. Nothing is bound until serve() is called.

        Args:
            app: The ASGI application to serve
            address: host:port to listen on, an empty host means all interfaces
            read_timeout: Seconds to receive a request; also the idle keep-alive timeout
            write_timeout: Seconds to produce a response
            max_header_bytes: Maximum size of a request head
            grace_period: Upper bound uvicorn applies to its own shutdown sequence

        Raises:
            AddressError: if address is not a valid host:port
        """
        self.address = address
        self.host, self.port = split_host_port(address)
        self._handler = TimeoutMiddleware(
            app,
            read_timeout=read_timeout,
            write_timeout=write_timeout,
        )
        self.config = uvicorn.Config(
            self._app,
            interface="asgi3",
            http="h11",
            h11_max_incomplete_event_size=max_header_bytes,
            timeout_keep_alive=read_timeout,
            timeout_graceful_shutdown=grace_period,
            log_config=None,
            access_log=False,
        )
        self._started = asyncio.Event()
        self._stopped = asyncio.Event()
        self._server = _Server(self.config, self._started)
        self._closing = False
        self._keep_alives_enabled = True
        self.sockname: Optional[tuple] = None

    @property
    def keep_alives_enabled(self) -> bool:
        return self._keep_alives_enabled

    @property
    def started(self) -> bool:
        """True once the socket is bound and uvicorn finished its startup."""
        return self._started.is_set()

    async def _app(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or self._keep_alives_enabled:
            await self._handler(scope, receive, send)
            return

        async def send_closing(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"connection", b"close"))
                message = {**message, "headers": headers}
            await send(message)

        await self._handler(scope, receive, send_closing)

    def bind(self) -> socket.socket:
        """Create the listening socket on the first resolved address that binds.

        Raises:
            ListenError: if the address cannot be resolved or bound
        """
        try:
            infos = socket.getaddrinfo(
                self.host or None,
                self.port,
                type=socket.SOCK_STREAM,
                flags=socket.AI_PASSIVE,
            )
        except OSError as exc:
            raise ListenError(f"listen tcp {self.address}: {exc}") from exc

        error: Optional[OSError] = None
        for family, type_, proto, _, sockaddr in infos:
            try:
                sock = socket.socket(family, type_, proto)
            except OSError as exc:
                # e.g. IPv6 disabled on this host
                error = exc
                continue
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind(sockaddr)
            except OSError as exc:
                sock.close()
                error = exc
                continue
            return sock
        raise ListenError(f"listen tcp {self.address}: {error}") from error

    async def serve(self, on_started: Optional[Callable[[], None]] = None) -> None:
        """Bind and serve until drain() closes the listener.

        Args:
            on_started: Called right after the socket is bound

        Raises:
            ListenError: if the address cannot be bound
            ServeError: if the server stopped without being drained
        """
        try:
            sock = self.bind()
            self.sockname = sock.getsockname()
            logger.info(
                f"Listening on {self.address}",
                extra={"address": self.address, "sockname": str(self.sockname)},
            )
            try:
                if on_started is not None:
                    on_started()
                await self._server.serve(sockets=[sock])
            except SystemExit as exc:
                # uvicorn exits the process when startup fails
                raise ServeError(f"server on {self.address} failed to start") from exc
            finally:
                sock.close()
        finally:
            self._stopped.set()

        if not self._closing:
            raise ServeError(f"server on {self.address} stopped unexpectedly")
        logger.info("Listener closed", extra={"address": self.address})

    def disable_keep_alives(self) -> None:
        """Close idle connections and answer the rest with Connection: close."""
        self._keep_alives_enabled = False
        connections = list(self._server.server_state.connections)
        for connection in connections:
            connection.shutdown()
        logger.info(
            "Keep-alives disabled",
            extra={"open_connections": len(connections)},
        )

    async def drain(self, timeout: float) -> None:
        """Ask uvicorn to shut down and wait for serve() to return."""
        self._closing = True
        try:
            await asyncio.wait_for(self._shutdown(), timeout=timeout)
        except asyncio.TimeoutError:
            self._server.force_exit = True
            raise DrainTimeoutError(timeout) from None

    async def _shutdown(self) -> None:
        await self._started.wait()
        self._server.should_exit = True
        await self._stopped.wait()
