"""requests.Session driven from the asyncio event loop."""

import asyncio
import functools
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class AsyncRequestsSession:
    """
    Runs blocking ``requests`` calls in the loop's default executor.

    The awaited call is the only suspension point, so callers keep
    single-threaded semantics for everything else.
    """

    def __init__(self, timeout: float = 10.0, user_agent: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers["User-Agent"] = user_agent

    async def request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Issue an HTTP request without blocking the event loop.

        Raises:
            requests.RequestException: On transport failure.
        """
        kwargs.setdefault("timeout", self.timeout)
        loop = asyncio.get_running_loop()
        logger.debug(f"{method} {url}")
        call = functools.partial(self.session.request, method, url, **kwargs)
        return await loop.run_in_executor(None, call)

    async def get(self, url: str, **kwargs) -> requests.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> requests.Response:
        return await self.request("POST", url, **kwargs)

    def close(self) -> None:
        self.session.close()
