"""
Async Session Manager for outbound HTTP

Shared aiohttp session pooling for everything that talks to the outside world
besides the model provider: transcript fetching and notification webhooks.

- One pooled session per service name, created lazily
- Reused for the process lifetime
- Closed on application shutdown
"""

import aiohttp
from typing import Dict

from config import get_logger

logger = get_logger(__name__).bind(component="http")

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class AsyncSessionManager:
    """Manages aiohttp client sessions keyed by service name"""

    _sessions: Dict[str, aiohttp.ClientSession] = {}

    @classmethod
    async def get_session(cls, service: str, timeout_total: int = 30) -> aiohttp.ClientSession:
        """
        Get or create aiohttp session for a service.

        Args:
            service: Service name (e.g., "youtube", "webhook")
            timeout_total: Total timeout in seconds (default: 30s)

        Returns:
            Shared aiohttp.ClientSession for the service
        """
        if service not in cls._sessions or cls._sessions[service].closed:
            timeout = aiohttp.ClientTimeout(
                total=timeout_total,
                connect=10,
                sock_read=timeout_total
            )

            connector = aiohttp.TCPConnector(
                limit=20,
                limit_per_host=5,
                ttl_dns_cache=300,
                enable_cleanup_closed=True
            )

            cls._sessions[service] = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector,
                headers=BROWSER_HEADERS,
                raise_for_status=False  # Callers check status codes
            )

            logger.debug(
                "created async session",
                service=service,
                max_connections=20,
                timeout_seconds=timeout_total
            )

        return cls._sessions[service]

    @classmethod
    async def close_all(cls):
        """Close all active sessions (call on shutdown)"""
        logger.info("closing async sessions", session_count=len(cls._sessions))

        for service, session in cls._sessions.items():
            if not session.closed:
                await session.close()
                logger.debug("closed async session", service=service)

        cls._sessions.clear()
