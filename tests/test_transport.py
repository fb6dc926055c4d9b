from __future__ import annotations

import asyncio
import logging

import pytest

from superhttp._request import Request
from superhttp._transport import Transport


@pytest.mark.asyncio
async def test_drain_closes_client(url_wsgi: str) -> None:
    transport = Transport()
    response = await transport.send(Request("GET", f"{url_wsgi}/"))
    assert response.status_code == 200
    assert response.text == "hello world"
    assert transport.pending >= 1
    await transport.drain()
    assert transport.pending == 0


@pytest.mark.asyncio
async def test_drain_swallows_errors(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="superhttp._transport")

    async def fail() -> None:
        await asyncio.sleep(0)
        msg = "cleanup failed"
        raise RuntimeError(msg)

    transport = Transport()
    transport._track(fail())
    await transport.drain()
    assert transport.pending == 0
    assert "transport task failed during drain" in caplog.text
    assert "cleanup failed" in caplog.text


def test_request_client_options() -> None:
    request = Request("GET", "http://127.0.0.1:1/")
    client = request.client()
    assert not client.follow_redirects
    assert client.max_redirects == 0
    assert client.timeout == request.timeout

    request.max_redirects = 3
    client = request.client()
    assert client.follow_redirects
    assert client.max_redirects == 3
