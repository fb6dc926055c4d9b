from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ._test import Test

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._server import Listener, Server


class TestAgent:
    """Creates requests against one server handle.

    Every request gets its own ``Test``. When the handle is an app or a
    listener, each request starts, and stops, a server of its own.
    """

    __test__ = False

    def __init__(
        self,
        app: str | Server | Listener | Callable[..., Any],
        *,
        host: str | None = None,
        secure: bool = False,
    ) -> None:
        self._app = app
        self._host = host
        self._secure = secure

    def request(self, method: str, path: str) -> Test:
        return Test(self._app, method, path, host=self._host, secure=self._secure)

    def get(self, path: str) -> Test:
        return self.request("GET", path)

    def post(self, path: str) -> Test:
        return self.request("POST", path)

    def put(self, path: str) -> Test:
        return self.request("PUT", path)

    def patch(self, path: str) -> Test:
        return self.request("PATCH", path)

    def delete(self, path: str) -> Test:
        return self.request("DELETE", path)

    def head(self, path: str) -> Test:
        return self.request("HEAD", path)

    def options(self, path: str) -> Test:
        return self.request("OPTIONS", path)


def request(
    app: str | Server | Listener | Callable[..., Any],
    *,
    host: str | None = None,
    secure: bool = False,
) -> TestAgent:
    """Entry point for testing ``app``::

        await request(app).get("/").expect(200, "Hello")
    """
    return TestAgent(app, host=host, secure=secure)
