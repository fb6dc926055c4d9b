from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable
from wsgiref.simple_server import WSGIRequestHandler, make_server

import uvicorn

from ._errors import ConfigurationError, ServerAlreadyClosedError, ServerCloseError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

logger = logging.getLogger(__name__)

Interface = Literal["asgi", "wsgi"]


@runtime_checkable
class Server(Protocol):
    """A server that is listening, or was, on a TCP port."""

    @property
    def listener_address(self) -> str: ...

    @property
    def listener_port(self) -> int: ...

    @property
    def running(self) -> bool: ...

    def stop(self) -> Any: ...


@runtime_checkable
class Listener(Protocol):
    """A server that has not been started yet and can be told to listen."""

    def listen(self, *, port: int = 0) -> Server: ...


def _import_app(app: str) -> Any:
    module_name, _, attr = app.partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attr or "app")


def _detect_interface(app: Any) -> Interface:
    if inspect.iscoroutinefunction(app) or inspect.iscoroutinefunction(
        getattr(app, "__call__", None)
    ):
        return "asgi"
    return "wsgi"


class _LoggingRequestHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


class AppServer:
    """Serves a WSGI or ASGI app from a background thread.

    ``app`` is the application object or an import string, either
    ``module:attr`` or just ``module``, which implies ``app`` for ``attr``.
    When ``interface`` is not given, coroutine callables are served as ASGI
    with uvicorn and anything else as WSGI with wsgiref.
    """

    _listener_address: str
    _listener_port: int

    _thread: threading.Thread | None
    _shutdown: Callable[[], None] | None

    def __init__(
        self,
        app: Any,
        *,
        interface: Interface | None = None,
        address: str = "127.0.0.1",
        port: int = 0,
        log_level: str = "warning",
    ) -> None:
        self._app = app
        self._interface = interface
        self._address = address
        self._port = port
        self._log_level = log_level
        self._listener_address = address
        self._listener_port = port
        self._thread = None
        self._shutdown = None

    def __enter__(self) -> AppServer:
        self.start()
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _traceback: TracebackType | None,
    ) -> None:
        if self.running:
            self.stop()

    async def __aenter__(self) -> AppServer:
        await asyncio.to_thread(self.start)
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _traceback: TracebackType | None,
    ) -> None:
        if self.running:
            await asyncio.to_thread(self.stop)

    def listen(self, *, port: int = 0) -> AppServer:
        self._port = port
        self.start()
        return self

    def start(self) -> None:
        if self.running:
            msg = "Server is already running"
            raise RuntimeError(msg)

        app = _import_app(self._app) if isinstance(self._app, str) else self._app
        interface = self._interface or _detect_interface(app)
        match interface:
            case "wsgi":
                self._start_wsgi(app)
            case "asgi":
                self._start_asgi(app)
            case _:
                msg = f"Unsupported interface: {interface}"
                raise ValueError(msg)
        logger.debug(
            "%s server listening on %s:%d",
            interface,
            self._listener_address,
            self._listener_port,
        )

    def _start_wsgi(self, app: Any) -> None:
        httpd = make_server(
            self._address, self._port, app, handler_class=_LoggingRequestHandler
        )
        thread = threading.Thread(
            target=httpd.serve_forever, kwargs={"poll_interval": 0.05}, daemon=True
        )
        thread.start()

        def shutdown() -> None:
            httpd.shutdown()
            httpd.server_close()

        self._thread = thread
        self._shutdown = shutdown
        self._listener_address, self._listener_port = httpd.server_address[:2]

    def _start_asgi(self, app: Any) -> None:
        config = uvicorn.Config(
            app, host=self._address, port=self._port, log_level=self._log_level
        )
        server = uvicorn.Server(config)
        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        while not server.started:
            if not thread.is_alive():
                msg = "uvicorn exited unexpectedly"
                raise RuntimeError(msg)
            time.sleep(0.01)

        def shutdown() -> None:
            server.should_exit = True

        self._thread = thread
        self._shutdown = shutdown
        socket_address = server.servers[0].sockets[0].getsockname()
        self._listener_address, self._listener_port = socket_address[:2]

    def stop(self) -> None:
        if not self.running or self._shutdown is None or self._thread is None:
            msg = "Server is not running"
            raise ServerAlreadyClosedError(msg)
        self._shutdown()
        self._thread.join()
        self._thread = None
        self._shutdown = None
        logger.debug(
            "server on %s:%d stopped", self._listener_address, self._listener_port
        )

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def listener_address(self) -> str:
        return self._listener_address

    @property
    def listener_port(self) -> int:
        return self._listener_port


def server_url(
    server: Server, path: str, *, host: str | None = None, secure: bool = False
) -> str:
    protocol = "https" if secure else "http"
    return f"{protocol}://{host or '127.0.0.1'}:{server.listener_port}{path}"


class ServerLifecycle:
    """Resolves where a test request goes and tears down what it started.

    A string handle is used as the base address as-is. A running server is
    addressed through its listener port and never stopped. A listener, or a
    bare app callable, is started on an ephemeral port and owned: ``close()``
    stops it once the request has settled.
    """

    url: str
    server: Server | None
    owned: bool

    def __init__(
        self,
        handle: str | Server | Listener | Callable[..., Any],
        path: str,
        *,
        host: str | None = None,
        secure: bool = False,
    ) -> None:
        self.server = None
        self.owned = False
        self._closed = False

        match handle:
            case str():
                self.url = f"{handle}{path}"
                return
            case Server() if handle.running:
                self.server = handle
            case Listener():
                # A listener started here is always plain HTTP.
                secure = False
                self.server = handle.listen(port=0)
                self.owned = True
            case _ if callable(handle):
                secure = False
                self.server = AppServer(handle).listen(port=0)
                self.owned = True
            case _:
                msg = "unable to identify or create a valid test server"
                raise ConfigurationError(msg)

        self.url = server_url(self.server, path, host=host, secure=secure)

    async def close(self) -> Exception | None:
        """Stops the owned server, at most once.

        Returns the close failure instead of raising so completion always
        continues. A server that is already closed is not a failure.
        """
        if self._closed:
            return None
        self._closed = True
        if not self.owned or self.server is None:
            return None

        server = self.server
        try:
            if inspect.iscoroutinefunction(server.stop):
                await server.stop()
            else:
                await asyncio.to_thread(server.stop)
        except ServerAlreadyClosedError:
            logger.debug(
                "test server on port %d was already closed", server.listener_port
            )
        except Exception as e:
            msg = f"failed to close test server: {e}"
            err = ServerCloseError(msg)
            err.__cause__ = e
            return err
        return None
