"""Unit tests for error bodies and the exception hierarchy."""

import pytest

from minimal_server.errors import (
    ERROR_MESSAGES,
    DrainTimeoutError,
    ErrorCode,
    ListenError,
    MinimalServerError,
    make_error,
)


class TestMakeError:
    """Test structured error bodies."""

    @pytest.mark.parametrize("code", list(ErrorCode))
    def test_every_code_has_a_message(self, code):
        body = make_error(code)
        assert body["error"]["code"] == code.value
        assert body["error"]["message"] == ERROR_MESSAGES[code]["message"]
        assert body["error"]["hint"]

    def test_write_timeout_body(self):
        assert make_error(ErrorCode.WRITE_TIMEOUT) == {
            "error": {
                "code": "write_timeout",
                "message": "Request timed out",
                "hint": "The server took too long to produce a response. Try again later.",
            }
        }


class TestExceptions:
    def test_drain_timeout_message(self):
        error = DrainTimeoutError(29.0)
        assert str(error) == "graceful shutdown did not complete within 29s"
        assert error.timeout == 29.0

    def test_hierarchy(self):
        assert issubclass(ListenError, MinimalServerError)
        assert issubclass(DrainTimeoutError, MinimalServerError)
