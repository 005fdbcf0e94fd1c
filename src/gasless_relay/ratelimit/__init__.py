from .store import RateLimitEntry, RateLimitStore, InMemoryRateLimitStore
from .limiter import RateLimiter, RateLimitDecision, UsageStats

__all__ = [
    "RateLimitEntry",
    "RateLimitStore",
    "InMemoryRateLimitStore",
    "RateLimiter",
    "RateLimitDecision",
    "UsageStats",
]
