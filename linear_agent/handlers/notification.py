"""Handles `AppUserNotification` webhooks.

Notifications do not produce replies by themselves; the matching Comment
webhook does that. They are folded into the user's session as elicitation
signals: detected intent and open questions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .base import HandlerResult, Schedule

if TYPE_CHECKING:
    from ..runtime import AgentRuntime

logger = logging.getLogger(__name__)

KNOWN_NOTIFICATION_TYPES = frozenset({"issueCommentMention", "sessionStarted", "sessionEnded"})


def extract_elicitation(body: str) -> dict[str, Any]:
    """Guess the user's intent from a notification comment.

    Later checks win, so "can you implement this?" is a development task
    with one pending question.
    """
    elicitation: dict[str, Any] = {}
    lowered = body.lower()
    if "?" in lowered:
        elicitation["user_intent"] = "question"
        elicitation["pending_questions"] = [body]
    if "help" in lowered or "guide" in lowered:
        elicitation["user_intent"] = "help_request"
    if "implement" in lowered or "create" in lowered:
        elicitation["user_intent"] = "development_task"
    return elicitation


class AppUserNotificationHandler:
    def __init__(self, runtime: AgentRuntime) -> None:
        self.runtime = runtime

    async def handle(self, payload: dict[str, Any], schedule: Schedule) -> HandlerResult:
        notification = payload.get("notification") or {}
        notification_type = notification.get("type", "")
        comment = notification.get("comment") or {}

        user_id = comment.get("userId") or ""
        if self.runtime.identity.is_agent(user_id):
            logger.info("Skipping notification for the agent's own comment %s", comment.get("id"))
            return HandlerResult()

        if notification_type not in KNOWN_NOTIFICATION_TYPES:
            logger.info("Unknown notification type: %s", notification_type)
            return HandlerResult()

        issue_id = comment.get("issueId") or notification.get("issueId") or ""
        logger.info(
            "Notification %s for user %s on issue %s", notification_type, user_id, issue_id
        )
        if not user_id or not issue_id:
            return HandlerResult()

        sessions = self.runtime.sessions
        session = sessions.find_existing_session(issue_id, user_id)
        if session is None:
            logger.debug("No session for user %s on issue %s", user_id, issue_id)
            return HandlerResult()

        elicitation = extract_elicitation(comment.get("body") or "")
        sessions.integrate_agent_session_event(session.id, notification_type, elicitation)
        if notification_type == "sessionEnded":
            sessions.complete_session(session.id, reason="session ended in Linear")
        return HandlerResult(handled=True)
