"""Graceful shutdown coordination.

The coordinator waits for the lifecycle context to be cancelled and then
runs exactly one bounded drain of the listener, strictly in this order:
disable keep-alives, drain, report the outcome, close the outcome.
"""

import asyncio
import logging
import time
from typing import Optional

from minimal_server.context import LifecycleContext
from minimal_server.listener import Listener
from minimal_server.oneshot import DrainOutcome
from minimal_server.state import LifecycleState, LifecycleStatus

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Turns lifecycle-context cancellation into a single bounded drain."""

    def __init__(
        self,
        ctx: LifecycleContext,
        listener: Listener,
        outcome: DrainOutcome,
        grace_period: float,
        status: Optional[LifecycleStatus] = None,
    ):
        self.ctx = ctx
        self.listener = listener
        self.outcome = outcome
        self.grace_period = grace_period
        self.status = status or LifecycleStatus()
        self.drain_attempts = 0
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        """Schedule run() in the background."""
        if self._task is not None:
            raise RuntimeError("shutdown coordinator already started")
        self._task = asyncio.create_task(self.run(), name="shutdown-coordinator")
        return self._task

    async def run(self) -> None:
        """Wait for cancellation, then drain the listener once."""
        try:
            await self.ctx.wait()
            self.status.transition(LifecycleState.SHUTTING_DOWN)
            logger.info(
                "Graceful shutdown initiated",
                extra={"reason": self.ctx.reason, "grace_period_seconds": self.grace_period},
            )

            # The grace period starts now, not when the process started
            started = time.monotonic()
            first_error: Optional[Exception] = None
            try:
                self.listener.disable_keep_alives()
            except Exception as exc:
                # Draining still has to happen or serve() never returns
                logger.error(f"Disabling keep-alives failed: {exc}")
                first_error = exc

            self.status.transition(LifecycleState.DRAINING)
            self.drain_attempts += 1
            try:
                await self.listener.drain(self.grace_period)
            except Exception as exc:
                logger.error(
                    f"Graceful shutdown failed: {exc}",
                    extra={"duration_ms": round((time.monotonic() - started) * 1000, 2)},
                )
                first_error = first_error or exc
            else:
                logger.info(
                    "All requests drained",
                    extra={"duration_ms": round((time.monotonic() - started) * 1000, 2)},
                )

            if first_error is not None:
                self.outcome.send(first_error)
        finally:
            self.outcome.close()
