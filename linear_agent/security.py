"""Webhook signature verification and rate limiting."""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from collections import defaultdict, deque
from collections.abc import Callable

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Linear-Signature"
SIGNATURE_PREFIX = "sha256="

RATE_LIMIT_WINDOW_SECONDS = 60.0
DEFAULT_MAX_REQUESTS = 100


def verify_linear_signature(body: bytes, signature: str, secret: str) -> bool:
    """Verify the Linear webhook signature.

    Args:
        body: Raw request body bytes
        signature: The Linear-Signature header value, with or without a
            `sha256=` prefix
        secret: The webhook signing secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature:
        return False

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    incoming = signature.strip()
    if incoming.startswith(SIGNATURE_PREFIX):
        incoming = incoming[len(SIGNATURE_PREFIX) :]

    return hmac.compare_digest(expected, incoming)


class WebhookRateLimiter:
    """Sliding-window request limiter keyed by client identifier."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: defaultdict[str, deque[float]] = defaultdict(deque)

    def is_allowed(self, client_id: str) -> bool:
        now = self._clock()
        window = self._requests[client_id]
        while window and now - window[0] >= self.window_seconds:
            window.popleft()

        if len(window) >= self.max_requests:
            logger.warning("Rate limit exceeded for client %s", client_id)
            return False

        window.append(now)
        return True

    def cleanup(self) -> None:
        """Forget clients with no requests inside the current window."""
        now = self._clock()
        idle = [
            client_id
            for client_id, window in self._requests.items()
            if not window or now - window[-1] >= self.window_seconds
        ]
        for client_id in idle:
            del self._requests[client_id]
