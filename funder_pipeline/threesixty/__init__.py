"""Rate-limited client for the 360Giving grant-data API."""

from .client import DEFAULT_BASE_URL, ThreeSixtyGivingClient
from .rate_limiter import DEFAULT_MIN_INTERVAL, RateLimiter

__all__ = ["DEFAULT_BASE_URL", "DEFAULT_MIN_INTERVAL", "RateLimiter", "ThreeSixtyGivingClient"]
