"""Download feed bodies over HTTP with retry."""

from __future__ import annotations

import asyncio
import logging

import aiohttp
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "denote/0.1 (feed digest)"
DEFAULT_TIMEOUT = 30.0


class FeedDownloader:
    """GET a feed URL and return its body as text."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout

    @retry(
        retry=retry_if_exception_type((aiohttp.ClientError, OSError, asyncio.TimeoutError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def fetch_text(self, url: str) -> str:
        headers = {"User-Agent": self.user_agent}
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url, headers=headers) as resp:
                resp.raise_for_status()
                text = await resp.text()
        logger.debug("Downloaded %s (%d bytes)", url, len(text))
        return text

    async def __call__(self, url: str) -> str:
        return await self.fetch_text(url)
