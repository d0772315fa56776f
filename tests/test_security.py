import hashlib
import hmac

from linear_agent.security import WebhookRateLimiter, verify_linear_signature


def test_signature_verification():
    body = b'{"type":"Comment"}'
    digest = hmac.new(b"secret", body, hashlib.sha256).hexdigest()

    assert verify_linear_signature(body, digest, "secret") is True
    assert verify_linear_signature(body, f"sha256={digest}", "secret") is True
    assert verify_linear_signature(body, digest, "other") is False
    assert verify_linear_signature(body, "", "secret") is False
    assert verify_linear_signature(b"tampered", digest, "secret") is False


def test_rate_limiter_sliding_window():
    now = [0.0]
    limiter = WebhookRateLimiter(max_requests=2, window_seconds=60, clock=lambda: now[0])

    assert limiter.is_allowed("a") is True
    now[0] = 30
    assert limiter.is_allowed("a") is True
    assert limiter.is_allowed("a") is False
    assert limiter.is_allowed("b") is True

    now[0] = 61
    assert limiter.is_allowed("a") is True
    assert limiter.is_allowed("a") is False

    now[0] = 200
    limiter.cleanup()
    assert limiter.is_allowed("a") is True
