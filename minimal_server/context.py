"""Cancellable lifecycle context and OS signal wiring.

A LifecycleContext represents "the process should begin shutting down".
Cancellation flows from parent to child only and can never be undone.
Signal handlers are installed by notify_context() and nowhere else, so
independent contexts can be built side by side in tests.
"""

import asyncio
import logging
import signal
from functools import partial
from typing import Callable, Iterable, Optional

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleContext:
    """Monotonic, idempotent cancellation signal."""

    def __init__(self, parent: Optional["LifecycleContext"] = None):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._children: list["LifecycleContext"] = []
        self._parent = parent
        if parent is not None:
            parent._children.append(self)
            if parent.cancelled:
                self.cancel(parent.reason)

    @property
    def cancelled(self) -> bool:
        """True once the context has been cancelled."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        """Why the context was first cancelled, None while still live."""
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Cancel this context and every context derived from it.

        Only the first call has an effect.
        """
        if self._event.is_set():
            return
        self._reason = reason or "context canceled"
        self._event.set()
        for child in list(self._children):
            child.cancel(self._reason)

    async def wait(self) -> None:
        """Suspend until the context is cancelled."""
        await self._event.wait()

    def detach(self) -> None:
        """Stop following the parent context."""
        if self._parent is not None and self in self._parent._children:
            self._parent._children.remove(self)


def notify_context(
    parent: Optional[LifecycleContext] = None,
    signals: Iterable[int] = TERMINATION_SIGNALS,
) -> tuple[LifecycleContext, Callable[[], None]]:
    """
    Derive a context that is cancelled when one of ``signals`` arrives.

    Must be called from a running event loop.

    Args:
        parent: Context to derive from; cancelling it cancels the result
        signals: OS signals that trigger cancellation

    Returns:
        The derived context and a release function. Release restores the
        previous signal handlers and cancels the derived context; it is
        safe to call more than once.
    """
    loop = asyncio.get_running_loop()
    ctx = LifecycleContext(parent)
    undo: list[Callable[[], object]] = []

    def on_signal(sig: signal.Signals) -> None:
        logger.info(
            f"Received {sig.name}, starting graceful shutdown",
            extra={"signal": sig.name},
        )
        ctx.cancel(f"received {sig.name}")

    def undo_all() -> None:
        for step in undo:
            step()

    try:
        for sig in map(signal.Signals, signals):
            previous = signal.getsignal(sig)
            try:
                loop.add_signal_handler(sig, on_signal, sig)
                undo.append(partial(loop.remove_signal_handler, sig))
            except NotImplementedError:
                # Loops without add_signal_handler (Windows proactor)
                signal.signal(
                    sig,
                    lambda signum, frame, sig=sig: loop.call_soon_threadsafe(on_signal, sig),
                )
            # Restored after the loop handler is removed, which resets to default
            if previous is not None:
                undo.append(partial(signal.signal, sig, previous))
    except BaseException:
        # e.g. RuntimeError off the main thread; drop what was installed
        undo_all()
        ctx.detach()
        raise

    released = False

    def release() -> None:
        nonlocal released
        if released:
            return
        released = True
        undo_all()
        ctx.cancel("context released")
        ctx.detach()

    return ctx, release
