"""
Base class for components that talk HTTP to upstream sites.

The feed fetcher and the content scraper both inherit from BaseCrawler so
that every outbound request goes through one shared aiohttp session.
"""

from __future__ import annotations

import aiohttp

from opennews.utils.config import get_settings
from opennews.utils.logger import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Module constants
# ---------------------------------------------------------------------------

_CRAWLER_TIMEOUT_CONNECT: float = 10.0


class BaseCrawler:
    """Shared-session HTTP base.

    Attributes:
        timeout: Per-request total timeout in seconds.
    """

    # Shared aiohttp session across all crawler instances
    _shared_session: aiohttp.ClientSession | None = None

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout if timeout is not None else get_settings().fetch_timeout_sec

    def request_timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.timeout,
            connect=min(_CRAWLER_TIMEOUT_CONNECT, self.timeout),
        )

    @classmethod
    async def get_session(cls) -> aiohttp.ClientSession:
        """Return shared aiohttp session, creating one if needed."""
        if cls._shared_session is None or cls._shared_session.closed:
            settings = get_settings()
            timeout = aiohttp.ClientTimeout(
                total=settings.fetch_timeout_sec,
                connect=_CRAWLER_TIMEOUT_CONNECT,
            )
            cls._shared_session = aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": settings.user_agent},
            )
            logger.debug("Created shared HTTP session")
        return cls._shared_session

    @classmethod
    async def close_session(cls) -> None:
        """Close the shared aiohttp session."""
        if cls._shared_session is not None and not cls._shared_session.closed:
            await cls._shared_session.close()
            cls._shared_session = None
