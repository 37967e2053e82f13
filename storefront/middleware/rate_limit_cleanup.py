"""Background rate limiter cleanup task."""

import asyncio
import logging

from storefront.middleware.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 15 * 60


async def rate_limit_cleanup_loop(
    rate_limiter: RateLimiter,
    interval_seconds: float = CLEANUP_INTERVAL_SECONDS,
) -> None:
    """Periodically drop expired windows so abandoned client IPs don't pile up."""
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await rate_limiter.cleanup_expired_windows()
            if removed > 0:
                logger.debug(f"Rate limiter cleanup: removed {removed} expired windows")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Rate limiter cleanup error: {e}")
