"""One-shot drain outcome shared by the shutdown coordinator and the lifecycle."""

import asyncio
from typing import Optional

from minimal_server.errors import OneShotError


class DrainOutcome:
    """Single-producer, single-consumer result of a drain.

    The producer calls ``send()`` at most once and then ``close()`` exactly
    once. Closing without sending means the drain succeeded. The consumer
    calls ``receive()`` once and gets the error or None.
    """

    def __init__(self):
        self._closed = asyncio.Event()
        self._error: Optional[BaseException] = None
        self._sent = False
        self._received = False

    @property
    def closed(self) -> bool:
        """True once the producer has closed the outcome."""
        return self._closed.is_set()

    def send(self, error: BaseException) -> None:
        """Deliver the drain failure."""
        if self._closed.is_set():
            raise OneShotError("send on closed drain outcome")
        if self._sent:
            raise OneShotError("drain outcome already sent")
        self._sent = True
        self._error = error

    def close(self) -> None:
        """Finish the outcome; wakes the consumer."""
        if self._closed.is_set():
            raise OneShotError("close of closed drain outcome")
        self._closed.set()

    async def receive(self) -> Optional[BaseException]:
        """Wait for the outcome to close and return the delivered error, if any."""
        if self._received:
            raise OneShotError("drain outcome already received")
        self._received = True
        await self._closed.wait()
        error, self._error = self._error, None
        return error
