"""Per-request read and write deadlines enforced by the listener."""

import asyncio
import logging
from collections import deque

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from minimal_server.config import HTTP_READ_TIMEOUT, HTTP_WRITE_TIMEOUT
from minimal_server.errors import ErrorCode, make_error

logger = logging.getLogger(__name__)


async def _read_request(receive: Receive) -> list[Message]:
    """Collect request messages until the body is complete."""
    messages = []
    while True:
        message = await receive()
        messages.append(message)
        if message["type"] != "http.request" or not message.get("more_body", False):
            return messages


class TimeoutMiddleware:
    """
    ASGI wrapper bounding how long a single HTTP exchange may take.

    The request body must arrive within ``read_timeout`` (408 otherwise).
    The application then has ``write_timeout`` to produce its response
    (504 otherwise). Once a response has started nothing can be sent
    anymore, so a late write timeout is raised to the server, which drops
    the connection.
    """

    def __init__(
        self,
        app: ASGIApp,
        read_timeout: float = HTTP_READ_TIMEOUT,
        write_timeout: float = HTTP_WRITE_TIMEOUT,
    ):
        """
        Initialize the timeout middleware.

        Args:
            app: The ASGI application
            read_timeout: Seconds allowed to receive the request body
            write_timeout: Seconds allowed to produce the response
        """
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            messages = await asyncio.wait_for(
                _read_request(receive),
                timeout=self.read_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Read timeout after {self.read_timeout}s: {scope['method']} {scope['path']}",
                extra={
                    "timeout_seconds": self.read_timeout,
                    "method": scope["method"],
                    "path": scope["path"],
                },
            )
            await self._reject(408, ErrorCode.READ_TIMEOUT, scope, receive, send)
            return

        pending = deque(messages)

        async def replay() -> Message:
            if pending:
                return pending.popleft()
            return await receive()

        response_started = False

        async def send_tracking(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(
                self.app(scope, replay, send_tracking),
                timeout=self.write_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Write timeout after {self.write_timeout}s: {scope['method']} {scope['path']}",
                extra={
                    "timeout_seconds": self.write_timeout,
                    "method": scope["method"],
                    "path": scope["path"],
                },
            )
            if response_started:
                raise
            await self._reject(504, ErrorCode.WRITE_TIMEOUT, scope, receive, send)

    async def _reject(
        self,
        status_code: int,
        code: ErrorCode,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        response = JSONResponse(
            status_code=status_code,
            content=make_error(code),
            headers={"Connection": "close"},
        )
        await response(scope, receive, send)
