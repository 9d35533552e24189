"""Best-effort sliding-window rate limiter.

State lives in process memory: each worker process keeps its own counters and they are
lost on restart. Good enough to blunt bursts and token guessing; never a correctness
boundary (the one-booking rule is enforced by the booking service, not here).
Deployments that need shared counters can provide another object with the same check().
"""
import time
from dataclasses import dataclass
from math import ceil
from threading import Lock
from typing import Protocol


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in_ms: int

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset-Ms": str(self.reset_in_ms),
        }

    def retry_headers(self) -> dict[str, str]:
        return {**self.headers(), "Retry-After": str(ceil(self.reset_in_ms / 1000))}


class RateLimiter(Protocol):
    def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitResult: ...


SWEEP_INTERVAL_MS = 60_000


class InMemoryRateLimiter:
    def __init__(self, clock=None):
        self._clock = clock or (lambda: time.time() * 1000)
        self._buckets: dict[str, list[float]] = {}
        self._windows: dict[str, int] = {}
        self._last_sweep = self._clock()
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._buckets)

    def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitResult:
        now = self._clock()
        window_start = now - window_ms
        with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL_MS:
                self._sweep(now)
            recent = [t for t in self._buckets.get(key, []) if t > window_start]
            self._windows[key] = window_ms
            if len(recent) >= max_requests:
                # Rejected attempts are not recorded
                if recent:
                    self._buckets[key] = recent
                else:
                    self._drop(key)
                reset = max(0, int(min(recent) + window_ms - now)) if recent else window_ms
                return RateLimitResult(allowed=False, remaining=0, reset_in_ms=reset)
            recent.append(now)
            self._buckets[key] = recent
        reset = max(0, int(min(recent) + window_ms - now))
        return RateLimitResult(allowed=True, remaining=max(0, max_requests - len(recent)), reset_in_ms=reset)

    def _sweep(self, now: float) -> None:
        """Forget keys whose newest attempt has left its window."""
        stale = [k for k, ts in self._buckets.items() if not ts or ts[-1] <= now - self._windows.get(k, 0)]
        for key in stale:
            self._drop(key)
        self._last_sweep = now

    def _drop(self, key: str) -> None:
        self._buckets.pop(key, None)
        self._windows.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
            self._windows.clear()


_limiter = InMemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    """Shared per-process limiter (FastAPI dependency; override in tests)."""
    return _limiter
