from __future__ import annotations
import threading
import time
from collections import deque
from typing import Deque, Optional


class RateLimitExceeded(Exception):
	def __init__(self, retry_after: float) -> None:
		super().__init__(f"Rate limit exceeded. Retry in {retry_after:.0f}s.")
		self.retry_after = retry_after


class SlidingWindowRateLimiter:
	"""Allow at most ``max_requests`` acquisitions per ``window_seconds``.

	Timestamps are supplied by the caller so the limiter can be driven by a
	fake clock; ``acquire`` falls back to ``time.monotonic``.
	"""

	def __init__(self, max_requests: int, window_seconds: float) -> None:
		if max_requests < 1:
			raise ValueError("max_requests must be at least 1")
		if window_seconds <= 0:
			raise ValueError("window_seconds must be positive")
		self.max_requests = max_requests
		self.window_seconds = window_seconds
		self._hits: Deque[float] = deque()
		self._lock = threading.Lock()

	def _evict(self, now: float) -> None:
		while self._hits and now - self._hits[0] >= self.window_seconds:
			self._hits.popleft()

	def try_acquire(self, now: float) -> bool:
		with self._lock:
			self._evict(now)
			if len(self._hits) >= self.max_requests:
				return False
			self._hits.append(now)
			return True

	def remaining(self, now: float) -> int:
		with self._lock:
			self._evict(now)
			return self.max_requests - len(self._hits)

	def acquire(self, now: Optional[float] = None) -> None:
		now = time.monotonic() if now is None else now
		if not self.try_acquire(now):
			with self._lock:
				retry_after = self.window_seconds - (now - self._hits[0]) if self._hits else 0
			raise RateLimitExceeded(retry_after)
