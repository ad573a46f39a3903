"""
Shared pytest fixtures for Minimal Server tests.
"""

import asyncio
import socket
import sys
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from minimal_server.config import ENV_VAR_ADDRESS
from minimal_server.listener import Listener


class FakeListener(Listener):
    """Listener double that records calls and returns canned outcomes."""

    def __init__(
        self,
        drain_error: Optional[Exception] = None,
        serve_error: Optional[Exception] = None,
        keep_alive_error: Optional[Exception] = None,
    ):
        self.drain_error = drain_error
        self.serve_error = serve_error
        self.keep_alive_error = keep_alive_error
        self.calls: list[str] = []
        self.drain_timeouts: list[float] = []
        self.keep_alives_enabled = True
        self._closed = asyncio.Event()

    async def serve(self, on_started: Optional[Callable[[], None]] = None) -> None:
        self.calls.append("serve")
        if self.serve_error is not None:
            raise self.serve_error
        if on_started is not None:
            on_started()
        await self._closed.wait()

    def disable_keep_alives(self) -> None:
        self.calls.append("disable_keep_alives")
        if self.keep_alive_error is not None:
            raise self.keep_alive_error
        self.keep_alives_enabled = False

    async def drain(self, timeout: float) -> None:
        self.calls.append("drain")
        self.drain_timeouts.append(timeout)
        self._closed.set()
        if self.drain_error is not None:
            raise self.drain_error


@pytest.fixture
def fake_listener():
    """Listener whose drain succeeds."""
    return FakeListener()


@pytest.fixture
def make_listener():
    """Factory for listeners with canned drain/serve failures."""
    return FakeListener


def make_getenv(address: Optional[str]):
    """Build an environment lookup that only knows the address variable."""
    def getenv(key: str) -> Optional[str]:
        if key == ENV_VAR_ADDRESS:
            return address
        return None
    return getenv


@pytest.fixture
def getenv_factory():
    """Factory for environment lookups returning a fixed address."""
    return make_getenv


@pytest.fixture
def free_port():
    """A TCP port on 127.0.0.1 that nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_for_ready(url: str, timeout: float = 5.0, interval: float = 0.05):
    """Poll ``url`` until it answers 200 or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    async with httpx.AsyncClient(timeout=timeout) as client:
        while True:
            try:
                response = await client.get(url)
                if response.status_code == 200:
                    return response
            except httpx.TransportError:
                pass
            if loop.time() >= deadline:
                raise AssertionError(f"server did not reply after {timeout}s")
            await asyncio.sleep(interval)


@pytest.fixture
def ready():
    """Wait for an HTTP endpoint to come up."""
    return wait_for_ready
