"""Routes verified webhook payloads to the handler for their event type."""

from __future__ import annotations

import functools
import logging
import secrets
import time
from typing import Any

from .errors import RateLimitedError, WebhookValidationError
from .handlers import (
    AgentSessionEventHandler,
    AppUserNotificationHandler,
    CommentHandler,
    EventHandler,
    HandlerResult,
    InboxNotificationHandler,
    Job,
    PermissionChangeHandler,
    Schedule,
)
from .runtime import AgentRuntime

logger = logging.getLogger(__name__)


def event_type_of(payload: dict[str, Any]) -> str:
    return payload.get("type") or payload.get("action") or "unknown"


def event_id_of(payload: dict[str, Any], event_type: str, delivery_id: str | None = None) -> str:
    """Return the source-provided event id, or synthesize a unique one.

    Synthesized ids never match a later delivery, so events without an id of
    their own are not deduplicated.
    """
    event_id = payload.get("id") or delivery_id
    if event_id:
        return str(event_id)
    return f"{event_type}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class EventRouter:
    def __init__(self, runtime: AgentRuntime) -> None:
        self.runtime = runtime
        self.handlers: dict[str, EventHandler] = {
            "Comment": CommentHandler(runtime),
            "AgentSessionEvent": AgentSessionEventHandler(runtime),
            "AppUserNotification": AppUserNotificationHandler(runtime),
            "InboxNotification": InboxNotificationHandler(),
            "PermissionChange": PermissionChangeHandler(runtime),
        }

    def _observe_agent_ids(self, payload: dict[str, Any]) -> None:
        app_user_id = payload.get("appUserId")
        if app_user_id:
            self.runtime.identity.observe(app_user_id)
        agent_session = payload.get("agentSession") or {}
        if agent_session.get("appUserId"):
            self.runtime.identity.observe(agent_session["appUserId"])

    async def dispatch(
        self,
        payload: dict[str, Any],
        client_id: str = "",
        delivery_id: str | None = None,
        schedule: Schedule | None = None,
    ) -> dict[str, Any]:
        """Dispatch one webhook payload and build its acknowledgement.

        Args:
            payload: The decoded webhook body
            client_id: Key for rate limiting, usually the caller's address
            delivery_id: Delivery id from the request headers, used when the
                payload carries no id of its own
            schedule: Runs slow follow-up work after the response is sent.
                When omitted, follow-up work is awaited before returning.

        Returns:
            The acknowledgement body: `received`, `type`, and `sessionCreated`
            or `duplicate` where they apply.

        Raises:
            WebhookValidationError: If the payload is empty or not an object.
            RateLimitedError: If `client_id` exceeded its request budget.
        """
        if not isinstance(payload, dict) or not payload:
            msg = "Invalid webhook payload"
            raise WebhookValidationError(msg)

        if not self.runtime.rate_limiter.is_allowed(client_id or "unknown"):
            msg = "Rate limit exceeded"
            raise RateLimitedError(msg)

        event_type = event_type_of(payload)
        event_id = event_id_of(payload, event_type, delivery_id)
        self._observe_agent_ids(payload)

        if not await self.runtime.dedup.check_and_record(event_id, event_type):
            logger.info("Duplicate %s event %s, skipping", event_type, event_id)
            return {"received": True, "type": event_type, "duplicate": True}

        pending: list[Job] = []
        enqueue = schedule or pending.append

        def defer(job: Job) -> None:
            enqueue(functools.partial(self._run_job, job))

        result = await self._run_handler(event_type, payload, defer)
        for job in pending:
            await job()

        ack: dict[str, Any] = {"received": True, "type": event_type}
        if result.session_created is not None:
            ack["sessionCreated"] = result.session_created
        return ack

    async def _run_handler(
        self, event_type: str, payload: dict[str, Any], schedule: Schedule
    ) -> HandlerResult:
        handler = self.handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled webhook type: %s", event_type)
            return HandlerResult()

        logger.info("Processing %s webhook", event_type)
        try:
            return await handler.handle(payload, schedule)
        except Exception:
            logger.exception("%s handler failed", event_type)
            return HandlerResult(session_created=False if event_type == "Comment" else None)

    @staticmethod
    async def _run_job(job: Job) -> None:
        try:
            await job()
        except Exception:
            logger.exception("Background job failed")
