"""Handles `Comment` webhooks: mentions of the agent and replies to it."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..detection import should_process_comment
from ..protocol import Comment
from ..responder import ResponsePlan, build_session_context
from .base import HandlerResult, Schedule

if TYPE_CHECKING:
    from ..runtime import AgentRuntime

logger = logging.getLogger(__name__)

COMMENT_KEY_PREFIX = "comment:"


class CommentHandler:
    def __init__(self, runtime: AgentRuntime) -> None:
        self.runtime = runtime

    async def handle(self, payload: dict[str, Any], schedule: Schedule) -> HandlerResult:
        action = payload.get("action") or "create"
        data = payload.get("data") or {}
        if action != "create":
            logger.debug("Ignoring comment action %s", action)
            return HandlerResult(session_created=False)

        comment = Comment.from_webhook(data)
        if not comment.id or not comment.issue_id:
            logger.warning("Comment webhook without comment or issue id, ignoring")
            return HandlerResult(session_created=False)

        if data.get("botActor"):
            logger.debug("Ignoring comment %s from a bot", comment.id)
            return HandlerResult(session_created=False)

        if self.runtime.identity.is_agent(comment.author_user_id):
            logger.info("Skipping comment %s authored by the agent", comment.id)
            return HandlerResult(session_created=False)

        sessions = self.runtime.sessions
        comment_key = f"{COMMENT_KEY_PREFIX}{comment.id}"
        if comment_key in self.runtime.dedup or not sessions.claim_processing(comment.id):
            logger.info("Comment %s already handled or in flight", comment.id)
            return HandlerResult(session_created=False)

        try:
            decision = await should_process_comment(
                comment,
                self.runtime.settings.agent_name,
                self.runtime.identity.user_id,
                self.runtime.comment_store,
            )
        except Exception:
            sessions.set_processing_status(comment.id, False)
            raise

        if not decision.should_process:
            logger.debug("Not processing comment %s: %s", comment.id, decision.reason)
            sessions.set_processing_status(comment.id, False)
            return HandlerResult(session_created=False)

        logger.info("Processing comment %s: %s", comment.id, decision.reason)
        await self.runtime.dedup.check_and_record(comment_key, "Comment")

        context = build_session_context(comment, data)
        try:
            plan = self.runtime.responder.prepare(comment, context)
        except Exception:
            logger.exception(
                "Session setup failed for comment %s, replying without one", comment.id
            )
            plan = ResponsePlan(comment=comment, context=context)

        async def respond() -> None:
            try:
                await self.runtime.responder.respond(plan)
            finally:
                sessions.set_processing_status(comment.id, False)

        schedule(respond)
        return HandlerResult(handled=True, session_created=plan.session_created)
