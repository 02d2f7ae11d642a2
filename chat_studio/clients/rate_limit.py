"""Per-provider request throttling."""

import asyncio
import time

from limits import parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from chat_studio.utils.logging import get_logger

logger = get_logger(__name__)


class ProviderRateLimiter:
    """Moving-window request limiter shared by every adapter in the process.

    When a provider's window is full the caller waits for it to reset. Nothing is
    retried here; a request that fails after being admitted stays failed.
    """

    def __init__(self, requests_per_minute: int = 60):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute, per provider
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)
        self.request_limit = parse(f"{requests_per_minute}/minute")

    async def acquire(self, provider: str) -> None:
        """Wait until a request to the provider is admitted."""
        while not self.limiter.hit(self.request_limit, provider):
            window_stats = self.limiter.get_window_stats(self.request_limit, provider)
            wait_time = max(0.05, window_stats.reset_time - time.time())
            logger.warning(f"Request rate limit for {provider} reached, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


_rate_limiter: ProviderRateLimiter | None = None


def get_rate_limiter(requests_per_minute: int = 60) -> ProviderRateLimiter:
    """Get or create the process-wide rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = ProviderRateLimiter(requests_per_minute)
    return _rate_limiter
