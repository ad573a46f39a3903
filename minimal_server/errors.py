"""Error codes, structured error bodies and the lifecycle exception hierarchy."""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Request Timeout (408)
    READ_TIMEOUT = "read_timeout"

    # Gateway Timeout (504)
    WRITE_TIMEOUT = "write_timeout"


# Error message templates with hints
ERROR_MESSAGES: dict[ErrorCode, dict] = {
    ErrorCode.READ_TIMEOUT: {
        "message": "Request body was not received in time",
        "hint": "Send the complete request within the server's read timeout.",
    },
    ErrorCode.WRITE_TIMEOUT: {
        "message": "Request timed out",
        "hint": "The server took too long to produce a response. Try again later.",
    },
}


def make_error(code: ErrorCode) -> dict:
    """Build the {"error": {...}} response body for ``code``."""
    return {"error": {"code": code.value, **ERROR_MESSAGES[code]}}


class MinimalServerError(Exception):
    """Base class for all lifecycle errors."""


class AddressError(MinimalServerError):
    """The listen address could not be parsed."""


class ListenError(MinimalServerError):
    """The listener could not bind its address."""


class ServeError(MinimalServerError):
    """The listener stopped for a reason other than a requested drain."""


class DrainTimeoutError(MinimalServerError):
    """Draining did not finish within the grace period."""

    def __init__(self, timeout: float):
        super().__init__(f"graceful shutdown did not complete within {timeout:g}s")
        self.timeout = timeout


class OneShotError(MinimalServerError):
    """A one-shot outcome was written or read more than once."""


class LifecycleError(MinimalServerError):
    """An invalid lifecycle state transition was requested."""
