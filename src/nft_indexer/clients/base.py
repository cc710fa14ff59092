"""Base client with common functionality"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
from abc import ABC
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)
from loguru import logger

from .http import AiohttpClient, HttpClient
from ..errors import DeserializationError, ExplorerError, RateLimitError, TransportError

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ExplorerError) and error.retryable


class BaseAPIClient(ABC):
    """
    Base class for API clients with retry logic and throttling.

    Each call is preceded by a fixed throttle delay. Retryable errors (rate
    limits, rpc and transport errors) are retried up to ``retry_attempts``
    attempts in total, sleeping ``n`` seconds after failed attempt ``n``;
    any other error is raised straight away. The error finally raised carries
    the number of attempts made as ``attempts``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str,
        http: Optional[HttpClient] = None,
        timeout: int = 30,
        retry_attempts: int = 5,
        throttle: float = 0.0,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.http = http or AiohttpClient(timeout=timeout)
        self.retry_attempts = retry_attempts
        self.throttle = throttle
        self._sleep = sleep

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.api_key = api_key or None

    async def _apply_throttle(self):
        """Client side admission control, longer without an API key"""
        if self.throttle > 0:
            await self._sleep(self.throttle)

    @staticmethod
    def _log_failure(error: ExplorerError) -> None:
        if isinstance(error, RateLimitError):
            logger.warning(f"{error}")
        else:
            logger.error(f"{error.__class__.__name__}: {error}")

    @staticmethod
    def _before_sleep(state: RetryCallState) -> None:
        logger.debug(
            f"Retrying in {state.next_action.sleep if state.next_action else 0:.0f}s "
            f"(attempt {state.attempt_number} failed)"
        )

    async def _with_retry(self, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` through the throttle and retry policy"""
        await self._apply_throttle()

        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            try:
                return await call()
            except ExplorerError as e:
                self._log_failure(e)
                raise

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_incrementing(start=1, increment=1),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return await retrying(attempt)
        except ExplorerError as e:
            e.attempts = attempts
            raise

    async def _get_json(self, params: Dict[str, Any]) -> Any:
        """GET ``base_url`` with ``params`` (plus the API key) and parse the JSON body"""
        if self.api_key:
            params = {**params, "apikey": self.api_key}
        response = await self.http.get(self.base_url, params=params)
        if response.status == 429:
            raise RateLimitError(f"Rate limited ({response.status} {response.reason})")
        if response.status >= 500:
            raise TransportError(f"Request failed: {response.status} {response.reason}")
        try:
            return json.loads(response.body)
        except ValueError as e:
            raise DeserializationError(
                f"Could not decode response ({response.status} {response.reason}): {e}"
            ) from e
