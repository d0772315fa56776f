"""Webhook error types and user-facing error text.

Request-level failures are raised as WebhookError subclasses and mapped to
HTTP status codes by the web layer. Collaborator failures never escape a
handler; they are turned into readable comment text with describe_error.
"""

from __future__ import annotations

import logging
import secrets
import time

logger = logging.getLogger(__name__)


class WebhookError(Exception):
    """Base class for errors that reject a webhook delivery."""

    status_code = 500


class WebhookValidationError(WebhookError):
    """Raised when the webhook payload is empty or structurally invalid."""

    status_code = 400


class SignatureVerificationError(WebhookError):
    """Raised when the Linear-Signature header is missing or wrong."""

    status_code = 401


class RateLimitedError(WebhookError):
    """Raised when a client exceeds the webhook rate limit."""

    status_code = 429


def _error_text(e: BaseException) -> str:
    return str(e) or e.__class__.__name__


def describe_error(e: BaseException) -> str:
    """Map a collaborator failure to a short message suitable for a comment."""
    message = _error_text(e)
    lowered = message.lower()

    if isinstance(e, TimeoutError) or "timeout" in lowered or "timed out" in lowered:
        return "⏰ Request timed out. Please try again with a simpler request."
    if "401" in message or "unauthorized" in lowered:
        return "🔐 Authentication failed. Please check configuration."
    if "403" in message or "forbidden" in lowered:
        return "🚫 Access denied. Please check permissions."
    if "404" in message or "not found" in lowered:
        return "🔍 Resource not found. Please verify the request."
    if "429" in message or "rate limit" in lowered:
        return "⏱️ Too many requests. Please wait and try again."
    if "500" in message or "internal server" in lowered:
        return "🔧 Server error. Please try again in a few moments."
    return f"❌ Something went wrong: {message}. Please try again."


def generate_error_id() -> str:
    return f"ERR_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def create_error_response(e: BaseException) -> str:
    """Build the comment body posted when response processing itself fails."""
    error_id = generate_error_id()
    logger.error("Responding with error %s: %s", error_id, _error_text(e))
    return (
        "❌ Sorry, I encountered an error while processing your request.\n\n"
        f"{describe_error(e)}\n\n"
        f"_Error ID: {error_id}_"
    )
