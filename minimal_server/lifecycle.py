"""Server lifecycle: serve until the lifecycle context is cancelled, then drain.

The listener serves on the calling task while a ShutdownCoordinator waits
in the background. A serve failure is raised immediately. A clean close
means a drain happened, so the drain outcome is read exactly once and
becomes the result of the run.
"""

import asyncio
import contextlib
import logging
import uuid
from typing import Optional

from minimal_server.app import create_app
from minimal_server.config import (
    GRACE_PERIOD,
    HTTP_MAX_HEADER_BYTES,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    EnvGetter,
    resolve_address,
)
from minimal_server.context import TERMINATION_SIGNALS, LifecycleContext, notify_context
from minimal_server.listener import Listener, UvicornListener
from minimal_server.logging_config import lifecycle_id, lifecycle_status
from minimal_server.oneshot import DrainOutcome
from minimal_server.shutdown import ShutdownCoordinator
from minimal_server.state import LifecycleState, LifecycleStatus

logger = logging.getLogger(__name__)


class ServerLifecycle:
    """Composes a listener with a shutdown coordinator for a single run."""

    def __init__(
        self,
        listener: Listener,
        grace_period: float = GRACE_PERIOD,
        status: Optional[LifecycleStatus] = None,
    ):
        self.listener = listener
        self.grace_period = grace_period
        self.status = status or LifecycleStatus()

    def _mark_serving(self) -> None:
        # Shutdown may already have been requested before the bind
        if self.status.state is LifecycleState.STARTING:
            self.status.transition(LifecycleState.SERVING)

    async def run(self, ctx: LifecycleContext) -> None:
        """
        Serve until ``ctx`` is cancelled and the listener has drained.

        Raises:
            ListenError: if the listener could not bind
            ServeError: if the listener stopped without being drained
            DrainTimeoutError: if draining exceeded the grace period
            Exception: whatever else the shutdown reported
        """
        outcome = DrainOutcome()
        coordinator = ShutdownCoordinator(
            ctx,
            self.listener,
            outcome,
            self.grace_period,
            status=self.status,
        )
        status_token = lifecycle_status.set(self.status)
        task = coordinator.start()
        try:
            await self.listener.serve(on_started=self._mark_serving)
            error = await outcome.receive()
            # Raises if the coordinator itself failed
            await task
        finally:
            if not task.done():
                # Serving failed, there is nothing to drain
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            elif not task.cancelled():
                task.exception()
            self.status.transition(LifecycleState.TERMINATED)
            lifecycle_status.reset(status_token)

        if error is not None:
            raise error
        logger.info("Server stopped cleanly")


async def run(parent: LifecycleContext, getenv: EnvGetter) -> None:
    """
    Run the HTTP server until SIGINT, SIGTERM or cancellation of ``parent``.

    Args:
        parent: Base context; cancelling it shuts the server down
        getenv: Environment lookup used to find the listen address

    Raises:
        MinimalServerError: if the server failed to start or to shut down cleanly
    """
    token = lifecycle_id.set(uuid.uuid4().hex[:16])
    try:
        ctx, release = notify_context(parent, TERMINATION_SIGNALS)
        try:
            address = resolve_address(getenv)
            listener = UvicornListener(
                create_app(),
                address,
                read_timeout=HTTP_READ_TIMEOUT,
                write_timeout=HTTP_WRITE_TIMEOUT,
                max_header_bytes=HTTP_MAX_HEADER_BYTES,
                grace_period=GRACE_PERIOD,
            )
            logger.info("Starting Minimal Server", extra={"address": address, "version": "0.1.0"})
            await ServerLifecycle(listener, GRACE_PERIOD).run(ctx)
        finally:
            release()
    finally:
        lifecycle_id.reset(token)
