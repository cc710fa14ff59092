"""Background request handling with responses fanned out to subscribers"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Generic, Set, TypeVar

from loguru import logger

Request = TypeVar("Request")
Response = TypeVar("Response")

Subscriber = Callable[[Any], None]


class Broadcaster(ABC, Generic[Request, Response]):
    """
    Resolver shared by any number of subscribers.

    ``send`` handles a request in its own task; every response is delivered to
    all current subscribers, which filter out what is not theirs. There is no
    cancellation: an unsubscribed handle simply stops receiving.
    """

    def __init__(self):
        self._subscribers: Dict[int, Subscriber] = {}
        self._next_handle = 0
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, callback: Subscriber) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._subscribers[handle] = callback
        return handle

    def unsubscribe(self, handle: int) -> None:
        self._subscribers.pop(handle, None)

    @property
    def subscribers(self) -> int:
        return len(self._subscribers)

    @property
    def pending(self) -> int:
        """Number of requests still being handled"""
        return len(self._tasks)

    def send(self, request: Request) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._handle(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _handle(self, request: Request) -> None:
        try:
            await self.handle(request)
        except Exception:
            logger.exception(f"{self.__class__.__name__} failed to handle {request!r}")

    @abstractmethod
    async def handle(self, request: Request) -> None:
        """Handle ``request``, calling ``_respond`` with each outcome"""

    def _respond(self, response: Response) -> None:
        for handle, callback in list(self._subscribers.items()):
            try:
                callback(response)
            except Exception:
                logger.exception(f"Subscriber {handle} failed to handle {response!r}")

    async def drain(self) -> None:
        """Wait for every outstanding request, including ones sent meanwhile"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
