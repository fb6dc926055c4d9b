from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Literal
from urllib.parse import parse_qsl

import httpx

from ._expectations import MISSING, Callback, Expectation, assert_response, resolve
from ._request import Request, mime_type
from ._server import ServerLifecycle
from ._transport import Transport

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from ._server import Listener, Server

Result = tuple[BaseException | None, httpx.Response | None]


class Test:
    """A single request to a test server and the expectations on its response.

    Request options are recorded with the chainable methods and passed to
    httpx as-is. Expectations are checked in the order they were declared,
    after the request settles and any server started for it is stopped::

        await Test(app, "get", "/users").expect(200).expect("Content-Type", "application/json")

    Without a running event loop, ``end(callback)`` sends the request and
    returns once the callback has run.
    """

    __test__ = False

    url: str

    def __init__(
        self,
        app: str | Server | Listener | Callable[..., Any],
        method: str,
        path: str,
        *,
        host: str | None = None,
        secure: bool = False,
    ) -> None:
        self.app = app
        self._lifecycle = ServerLifecycle(app, path, host=host, secure=secure)
        self.url = self._lifecycle.url
        self._request = Request(method.upper(), self.url)
        self._transport = Transport()
        self._expectations: list[Expectation] = []
        self._callbacks: list[Callback] = []
        self._started = False
        self._task: asyncio.Task[Result] | None = None
        self._result: Result | None = None

    def __repr__(self) -> str:
        return f"<Test {self.method} {self.url}>"

    @property
    def method(self) -> str:
        return self._request.method

    @property
    def expectations(self) -> tuple[Expectation, ...]:
        return tuple(self._expectations)

    def set(self, field: str | Mapping[str, str], value: str = "") -> Test:
        if isinstance(field, Mapping):
            self._request.headers.update(field)
        else:
            self._request.headers[field] = value
        return self

    def unset(self, field: str) -> Test:
        if field in self._request.headers:
            del self._request.headers[field]
        return self

    def type(self, value: str) -> Test:
        return self.set("Content-Type", mime_type(value))

    def accept(self, value: str) -> Test:
        return self.set("Accept", mime_type(value))

    def query(self, value: Mapping[str, Any] | str) -> Test:
        if isinstance(value, str):
            self._request.params.extend(parse_qsl(value, keep_blank_values=True))
        else:
            self._request.params.extend((k, str(v)) for k, v in value.items())
        return self

    def send(self, data: Any) -> Test:
        """Sets the request body.

        Mappings are merged across calls and sent as JSON, or as a form when
        the content type says so. Strings and bytes are sent verbatim.
        """
        request = self._request
        if isinstance(data, Mapping):
            if isinstance(request.body, dict):
                request.body.update(data)
            else:
                request.body = dict(data)
        elif isinstance(data, (str, bytes)):
            request.content = data
        elif isinstance(data, tuple):
            request.body = list(data)
        else:
            request.body = data
        return self

    def field(self, name: str | Mapping[str, Any], value: Any = None) -> Test:
        if isinstance(name, Mapping):
            self._request.fields.update(name)
        else:
            self._request.fields[name] = value
        return self

    def attach(
        self,
        field: str,
        file: str | os.PathLike[str] | bytes | IO[bytes],
        filename: str | None = None,
        content_type: str | None = None,
    ) -> Test:
        content: bytes | IO[bytes]
        if isinstance(file, (str, os.PathLike)):
            path = Path(file)
            content = path.read_bytes()
            filename = filename or path.name
        else:
            content = file
        filename = filename or field
        if content_type is None:
            self._request.files.append((field, (filename, content)))
        else:
            self._request.files.append((field, (filename, content, content_type)))
        return self

    def auth(
        self,
        user: str,
        password: str = "",
        *,
        type: Literal["basic", "bearer"] = "basic",  # noqa: A002
    ) -> Test:
        if type == "bearer":
            return self.set("Authorization", f"Bearer {user}")
        self._request.auth = (user, password)
        return self

    def timeout(self, seconds: float) -> Test:
        self._request.timeout = httpx.Timeout(seconds)
        return self

    def redirects(self, count: int) -> Test:
        self._request.max_redirects = count
        return self

    def retry(self, count: int = 1) -> Test:
        self._request.retries = count
        return self

    def ca(self, cafile: str | None = None, *, cadata: str | bytes | None = None) -> Test:
        self._request.tls().load_verify_locations(cafile=cafile, cadata=cadata)
        return self

    def cert(
        self, certfile: str, keyfile: str | None = None, password: str | None = None
    ) -> Test:
        self._request.tls().load_cert_chain(certfile, keyfile, password)
        return self

    def disable_tls_certs(self) -> Test:
        self._request.verify = False
        return self

    def expect(self, a: Any, b: Any = MISSING, c: Any = None) -> Test:
        """Declares an expectation on the response.

        ::

            .expect(200)
            .expect(200, {"id": 1})
            .expect("Content-Type", re.compile("json"))
            .expect(re.compile("hello"))
            .expect(lambda res: ...)

        A trailing callback, as in ``.expect(200, callback)``, also completes
        the request with that callback. A check function passes unless it
        returns or raises an exception.

        Header values are compared as strings, so ``.expect("Content-Length", 5)``
        matches a header of ``"5"``. A boolean second argument is not a header
        value.
        """
        expectations, callbacks = resolve(a, b, c)
        self._expectations.extend(expectations)
        for callback in callbacks:
            self.end(callback)
        return self

    def end(self, callback: Callback | None = None) -> Test:
        """Sends the request, once, and reports ``(error, response)`` to ``callback``."""
        if callback is not None:
            if self._result is not None:
                callback(*self._result)
            else:
                self._callbacks.append(callback)

        if self._started:
            return self
        self._started = True

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._complete())
        else:
            self._task = loop.create_task(self._complete())
        return self

    def __await__(self) -> Generator[Any, None, httpx.Response]:
        return self._wait().__await__()

    async def _wait(self) -> httpx.Response:
        self.end()
        if self._task is not None:
            await self._task
        error, response = self._result or (None, None)
        if error is not None:
            raise error
        assert response is not None  # noqa: S101
        return response

    async def _complete(self) -> Result:
        error: BaseException | None = None
        response: httpx.Response | None = None
        try:
            response = await self._transport.send(self._request)
        except Exception as e:
            error = e
        finally:
            close_error = await self._lifecycle.close()
            await self._transport.drain()

        if error is None:
            error = close_error

        self._result = (assert_response(error, response, self._expectations), response)
        for callback in self._callbacks:
            callback(*self._result)
        return self._result
