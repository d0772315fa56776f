"""Emits agent activities back to Linear.

Only `response` activities become comments; the other activity types are
logged so progress is observable without spamming the issue. Emission never
raises into the caller's flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from .comment_thread import find_top_level_comment_id
from .protocol import CommentCreateResult, CommentStore

logger = logging.getLogger(__name__)

ActivityType = Literal["thought", "action", "elicitation", "response", "error"]


@dataclass(frozen=True)
class Activity:
    session_id: str
    type: ActivityType
    content: str
    issue_id: str
    parent_comment_id: str | None = None
    external_url: str | None = None


class ResponseEmitter:
    """Turns activities into Linear comments, applying threading rules."""

    def __init__(self, store: CommentStore) -> None:
        self.store = store

    async def _create_threaded_comment(
        self, issue_id: str, body: str, parent_comment_id: str
    ) -> CommentCreateResult:
        top_level_id = await find_top_level_comment_id(parent_comment_id, self.store)
        if top_level_id != parent_comment_id:
            logger.info(
                "Replying under top-level comment %s instead of %s", top_level_id, parent_comment_id
            )

        result = await self.store.create_comment(issue_id, body, parent_id=top_level_id)
        if not result.success and result.parent_not_top_level:
            logger.warning(
                "Parent %s is not a top-level comment, posting as a top-level comment",
                top_level_id,
            )
            result = await self.store.create_comment(issue_id, body)
        return result

    async def emit(self, activity: Activity) -> CommentCreateResult | None:
        """Emit an activity. Returns the creation result for responses."""
        logger.info(
            "Emitting %s activity for session %s on issue %s (%d chars)",
            activity.type,
            activity.session_id,
            activity.issue_id,
            len(activity.content),
        )
        if activity.type != "response":
            logger.debug("Activity content: %s", activity.content)
            return None

        try:
            if activity.parent_comment_id:
                result = await self._create_threaded_comment(
                    activity.issue_id, activity.content, activity.parent_comment_id
                )
            else:
                result = await self.store.create_comment(activity.issue_id, activity.content)
        except Exception:
            logger.exception("Failed to emit response for session %s", activity.session_id)
            return None

        if result.success:
            logger.info("Posted comment %s on issue %s", result.id, activity.issue_id)
        else:
            logger.error(
                "Failed to post response on issue %s: %s", activity.issue_id, result.error
            )
        return result

    async def emit_thought(self, session_id: str, content: str, issue_id: str) -> None:
        await self.emit(Activity(session_id, "thought", f"💭 {content}", issue_id))

    async def emit_action(
        self, session_id: str, content: str, issue_id: str, external_url: str | None = None
    ) -> None:
        await self.emit(
            Activity(session_id, "action", f"⚡ {content}", issue_id, external_url=external_url)
        )

    async def emit_elicitation(self, session_id: str, content: str, issue_id: str) -> None:
        await self.emit(Activity(session_id, "elicitation", f"❓ {content}", issue_id))

    async def emit_response(
        self,
        session_id: str,
        content: str,
        issue_id: str,
        parent_comment_id: str | None = None,
    ) -> CommentCreateResult | None:
        return await self.emit(
            Activity(session_id, "response", content, issue_id, parent_comment_id)
        )

    async def emit_error(self, session_id: str, content: str, issue_id: str) -> None:
        await self.emit(Activity(session_id, "error", f"❌ {content}", issue_id))
