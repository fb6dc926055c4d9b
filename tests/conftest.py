from __future__ import annotations

import socket
from typing import TYPE_CHECKING

import pytest

from superhttp import AppServer
from tests.apps.asgi.app import app as asgi_app
from tests.apps.wsgi.app import app as wsgi_app

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(scope="module")
def server_wsgi() -> Iterator[AppServer]:
    with AppServer(wsgi_app) as server:
        yield server


@pytest.fixture(scope="module")
def server_asgi() -> Iterator[AppServer]:
    with AppServer(asgi_app, interface="asgi") as server:
        yield server


@pytest.fixture
def url_wsgi(server_wsgi: AppServer) -> str:
    return f"http://{server_wsgi.listener_address}:{server_wsgi.listener_port}"


@pytest.fixture
def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
