"""Rate Limiter - throttles API calls to prevent hitting rate limits."""

import time
from collections import defaultdict
from threading import Lock
from typing import Optional


class RateLimiter:
    """Thread-safe sliding-window rate limiter."""

    def __init__(self, max_calls: int = 60, time_window: float = 60.0):
        """
        Initialize rate limiter.

        Args:
            max_calls: Maximum number of calls allowed in time_window
            time_window: Time window in seconds (default: 60 seconds)
        """
        self.max_calls = max_calls
        self.time_window = time_window
        self.calls: dict[str, list[float]] = defaultdict(list)
        self.lock = Lock()

    def _prune(self, endpoint: str, now: float) -> list[float]:
        calls = self.calls[endpoint]
        calls[:] = [call_time for call_time in calls if now - call_time < self.time_window]
        return calls

    def wait_if_needed(self, endpoint: str = "default") -> float:
        """
        Block until a call to endpoint is allowed, then record it.

        Args:
            endpoint: Endpoint identifier (for per-endpoint limiting)

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        with self.lock:
            now = time.time()
            calls = self._prune(endpoint, now)
            if len(calls) >= self.max_calls:
                wait_time = (calls[0] + self.time_window) - now
                if wait_time > 0:
                    time.sleep(wait_time)
                    waited = wait_time
                    now = time.time()
                    calls = self._prune(endpoint, now)
            calls.append(now)
        return waited


# Global rate limiters for different APIs
_openai_limiter: Optional[RateLimiter] = None
_elevenlabs_limiter: Optional[RateLimiter] = None


def get_openai_limiter(max_calls: int = 60, time_window: float = 60.0) -> RateLimiter:
    """Get or create OpenAI rate limiter."""
    global _openai_limiter
    if _openai_limiter is None:
        _openai_limiter = RateLimiter(max_calls=max_calls, time_window=time_window)
    return _openai_limiter


def get_elevenlabs_limiter(max_calls: int = 100, time_window: float = 60.0) -> RateLimiter:
    """Get or create ElevenLabs rate limiter."""
    global _elevenlabs_limiter
    if _elevenlabs_limiter is None:
        _elevenlabs_limiter = RateLimiter(max_calls=max_calls, time_window=time_window)
    return _elevenlabs_limiter
