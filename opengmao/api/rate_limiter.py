"""
Per-user hourly rate limits.

Counters live in the process: they are lost on restart and are not shared
between workers.
"""

import time
from typing import Dict, Optional

WINDOW_SECONDS = 3600


class RateLimiter:
    """
    Fixed window counter keyed by user id.

    The window starts with the user's first request and resets once it has
    elapsed. `check` counts the request; `record` counts it only after the
    work succeeded (uploads).
    """

    def __init__(self, max_requests: int, window_seconds: int = WINDOW_SECONDS):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, dict] = {}

    def _window(self, user_id: str, now: float) -> Optional[dict]:
        window = self._windows.get(user_id)
        if window is None or now > window["reset_at"]:
            return None
        return window

    def is_limited(self, user_id: str, now: Optional[float] = None) -> bool:
        """True when the user already used every request of the current window."""
        window = self._window(user_id, time.time() if now is None else now)
        return window is not None and window["count"] >= self.max_requests

    def record(self, user_id: str, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        window = self._window(user_id, now)
        if window is None:
            self._windows[user_id] = {"count": 1, "reset_at": now + self.window_seconds}
        else:
            window["count"] += 1

    def check(self, user_id: str, now: Optional[float] = None) -> bool:
        """Count a request; True when it exceeds the limit (and is not counted)."""
        if self.is_limited(user_id, now):
            return True
        self.record(user_id, now)
        return False

    def reset(self) -> None:
        self._windows.clear()


MAX_UPLOADS_PER_HOUR = 10
MAX_EXTRACTIONS_PER_HOUR = 10

upload_limiter = RateLimiter(MAX_UPLOADS_PER_HOUR)
extraction_limiter = RateLimiter(MAX_EXTRACTIONS_PER_HOUR)
