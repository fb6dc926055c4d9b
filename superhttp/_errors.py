from __future__ import annotations

from typing import Any


class ConfigurationError(TypeError):
    """The server handle given to a test is not a URL, server, listener or app."""


class ExpectationError(AssertionError):
    """A declared expectation did not hold for the response.

    ``expected`` and ``actual`` are kept for diff display. ``show_diff`` is set
    for body comparisons where a structural diff is meaningful.
    """

    def __init__(
        self, msg: str, expected: Any = None, actual: Any = None, *, show_diff: bool = False
    ) -> None:
        super().__init__(msg)
        self.expected = expected
        self.actual = actual
        self.show_diff = show_diff


class ServerCloseError(RuntimeError):
    """Stopping a test server failed."""


class ServerAlreadyClosedError(ServerCloseError):
    """Stopping a test server that is not running."""
