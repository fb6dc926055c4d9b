from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Coroutine

    import httpx

    from ._request import Request

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Transport:
    """Sends a request on a client of its own and keeps track of the tasks it spawns.

    The client is closed in the background once the response has been read,
    so completion has to ``drain()`` before reporting, or the close would
    outlive the test.
    """

    def __init__(self) -> None:
        self._pending: set[asyncio.Task[Any]] = set()

    def _track(self, coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
        task = asyncio.get_running_loop().create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def send(self, request: Request) -> httpx.Response:
        client = request.client()
        try:
            return await self._track(client.send(request.build(client)))
        finally:
            self._track(client.aclose())

    async def drain(self) -> None:
        for task in list(self._pending):
            try:
                await task
            except Exception:
                logger.debug("transport task failed during drain", exc_info=True)
