"""Handles `InboxNotification` webhooks (assignments, reactions, mentions)."""

from __future__ import annotations

import logging
from typing import Any

from .base import HandlerResult, Schedule

logger = logging.getLogger(__name__)


class InboxNotificationHandler:
    def __init__(self) -> None:
        self.assigned_issues: set[str] = set()
        self.reaction_count = 0

    async def handle(self, payload: dict[str, Any], schedule: Schedule) -> HandlerResult:
        data = payload.get("data") or {}
        notification_type = data.get("type")
        issue_id = data.get("issueId")
        logger.info(
            "Inbox notification %s (id=%s issue=%s user=%s)",
            notification_type,
            data.get("id"),
            issue_id,
            data.get("userId"),
        )

        if notification_type == "IssueAssigned":
            if issue_id:
                self.assigned_issues.add(issue_id)
            logger.info("Agent assigned to issue %s", issue_id)
        elif notification_type == "ReactionAdded":
            self.reaction_count += 1
            logger.info("Reaction added to agent activity")
        elif notification_type == "CommentMention":
            # The Comment webhook for the same mention produces the reply.
            logger.info("Agent mentioned in comment on issue %s", issue_id)
        else:
            logger.info("Unhandled inbox notification type: %s", notification_type)
            return HandlerResult()
        return HandlerResult(handled=True)
