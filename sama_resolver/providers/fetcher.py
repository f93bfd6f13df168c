"""
HTTP fetcher for the resolution engine. Wraps aiohttp with browser-like
headers and a timeout, and maps failures onto the engine's error types.
"""
from __future__ import annotations
import aiohttp
import asyncio
import logging
import random
from typing import Optional

from .errors import NotFound, UpstreamUnavailable

log = logging.getLogger("sama_resolver.providers.fetcher")

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)

DEFAULT_HEADERS = {
    "User-Agent": DEFAULT_UA,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "fr-FR,fr;q=0.9,en-US;q=0.8",
}


class Fetcher:
    def __init__(self, *, timeout: float = 12):
        self.timeout = aiohttp.ClientTimeout(total=timeout, connect=4)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers=DEFAULT_HEADERS,
                connector=aiohttp.TCPConnector(ssl=False),
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def get(self, url: str, *, referer: str | None = None) -> str:
        """Return the body text; NotFound on 404, UpstreamUnavailable otherwise."""
        request_headers = {}
        if referer:
            request_headers["Referer"] = referer
        session = await self._get_session()
        try:
            async with session.get(
                url,
                headers=request_headers,
                allow_redirects=True,
            ) as resp:
                if resp.status == 404:
                    raise NotFound(f"{url} returned 404")
                if resp.status >= 400:
                    raise UpstreamUnavailable(f"{url} returned {resp.status}")
                return await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailable(f"{url}: {e.__class__.__name__}: {e}") from e


class Pacer:
    """Jittered sleep between sequential fetches of one resolution.

    The first call never sleeps; every later call waits a random delay in
    [min_delay, max_delay] seconds. Not a rate limiter.
    """

    def __init__(self, min_delay: float = 0.3, max_delay: float = 0.8):
        self.min_delay = max(0.0, min_delay)
        self.max_delay = max(self.min_delay, max_delay)
        self._calls = 0

    async def wait(self):
        self._calls += 1
        if self._calls == 1 or self.max_delay <= 0:
            return
        delay = random.uniform(self.min_delay, self.max_delay)
        log.debug(f"[pacer] sleeping {delay:.2f}s")
        await asyncio.sleep(delay)
