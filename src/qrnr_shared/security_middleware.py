"""
Security middleware: per-IP fixed-window rate limiting and response headers.
"""

from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from flask import current_app, g, request

from qrnr_shared.errors import RateLimitedError
from qrnr_shared.logging_config import get_logger

logger = get_logger(__name__)

RATE_LIMITER_EXTENSION = "qrnr_rate_limiter"


def get_client_ip() -> str:
    """
    Get real client IP considering proxies.

    Returns:
        Client IP address string
    """
    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()

    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        # X-Forwarded-For: client, proxy1, proxy2
        return forwarded_for.split(",")[0].strip()

    return request.remote_addr or "0.0.0.0"


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after: int


class FixedWindowRateLimiter:
    """
    In-memory fixed-window limiter keyed by ``(label, client_ip)``.

    The first request for a key opens a window. Later requests inside the
    window increment the counter and are rejected once it exceeds
    ``max_requests``; a request after the window elapsed resets the counter to
    1 and opens a new window. Bursts straddling a window boundary can reach
    about twice the nominal rate.

    State is process-local and guarded by a lock. Keys are kept in LRU order:
    expired windows at the cold end are swept on each check and the coldest
    key is evicted once ``max_keys`` is exceeded.
    """

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 10,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests < 1 or window_seconds <= 0 or max_keys < 1:
            raise ValueError("max_requests, window_seconds and max_keys must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._lock = threading.Lock()
        # key -> [window_start, count]
        self._windows: OrderedDict[tuple[str, str], list[float]] = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def check(self, client_ip: str, label: str) -> RateLimitDecision:
        """Count one request for ``(label, client_ip)`` and decide allow/reject."""
        key = (label, client_ip)
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now - window[0] >= self.window_seconds:
                window = [now, 1]
                self._windows[key] = window
            else:
                window[1] += 1
            self._windows.move_to_end(key)

            self._sweep(now)

            count = int(window[1])
            retry_after = max(1, math.ceil(window[0] + self.window_seconds - now))

        if count > self.max_requests:
            return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)
        return RateLimitDecision(
            allowed=True, remaining=self.max_requests - count, retry_after=retry_after
        )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def _sweep(self, now: float) -> None:
        """Drop expired windows from the cold end, then enforce ``max_keys``."""
        while self._windows:
            oldest_key, oldest = next(iter(self._windows.items()))
            if now - oldest[0] < self.window_seconds:
                break
            del self._windows[oldest_key]

        while len(self._windows) > self.max_keys:
            self._windows.popitem(last=False)


def rate_limit(label: str):
    """
    Decorator to rate limit an endpoint under ``label``.

    The view is only tagged here. The check itself runs in the
    ``before_request`` hook installed by :func:`init_rate_limiter`, ahead of
    the authorization gate, and raises :class:`RateLimitedError` (429) when the
    caller's window is full.
    """

    def decorator(f: Callable) -> Callable:
        f.rate_limit_label = label
        return f

    return decorator


def init_rate_limiter(app, limiter: FixedWindowRateLimiter | None = None) -> FixedWindowRateLimiter:
    """Attach a limiter to ``app`` using the configured window parameters."""
    config = app.config["QRNR_CONFIG"]
    if limiter is None:
        limiter = FixedWindowRateLimiter(
            max_requests=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window_seconds,
            max_keys=config.rate_limit_max_keys,
        )
    app.extensions[RATE_LIMITER_EXTENSION] = limiter

    @app.before_request
    def apply_rate_limit():
        if not current_app.config["QRNR_CONFIG"].rate_limit_enabled or request.endpoint is None:
            return None

        view = current_app.view_functions.get(request.endpoint)
        label = getattr(view, "rate_limit_label", None)
        if label is None:
            return None

        client_ip = get_client_ip()
        decision = limiter.check(client_ip, label)
        g.rate_limit_decision = decision

        if not decision.allowed:
            logger.info(f"Rate limit exceeded: label={label} ip={client_ip}")
            raise RateLimitedError(decision.retry_after, "요청이 너무 많습니다. 잠시 후 다시 시도하세요.")
        return None

    @app.after_request
    def add_rate_limit_headers(response):
        decision = g.pop("rate_limit_decision", None)
        if decision is not None:
            response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
            response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response

    return limiter


def configure_security_headers(app):
    """
    Configure security headers for the JSON API.

    Args:
        app: Flask application instance
    """

    @app.after_request
    def add_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        if request.method == "GET" and request.path.startswith("/api/"):
            # Order and call lists must always be re-fetched from the store
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        return response
