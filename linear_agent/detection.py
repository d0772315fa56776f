"""Agent mention and reply detection.

Decides whether a comment is addressed to the agent, either by a textual
mention or by being a reply inside a thread the agent participates in.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal

from .comment_thread import HierarchyOutcome, resolve_comment_hierarchy
from .protocol import Comment, CommentStore

logger = logging.getLogger(__name__)

KNOWN_ALIASES = (
    "@opencodeintegration",
    "@opencodeagent",
    "opencode integration",
    "opencode agent",
)

HELP_PATTERNS = (
    "@opencodeintegration help",
    "@opencodeintegration guide",
    "@opencodeagent help",
    "@opencodeagent guide",
    "help",
    "guide",
)

INDIRECT_PATTERNS = ("opencode integration", "opencode agent")

_WHITESPACE = re.compile(r"\s+")

MentionType = Literal["direct", "indirect", "help", "none"]


def get_mention_patterns(agent_name: str) -> list[str]:
    compact = _WHITESPACE.sub("", agent_name)
    return [f"@{agent_name}", f"@{compact}", f"@{compact.lower()}", *KNOWN_ALIASES]


def is_agent_mentioned(comment_body: str, agent_name: str) -> bool:
    """Check whether a comment body mentions the agent.

    Pure case-insensitive pattern membership, no language understanding.
    """
    if not comment_body:
        return False
    lowered = comment_body.lower()
    return any(pattern.lower() in lowered for pattern in get_mention_patterns(agent_name))


def is_help_request(comment_body: str) -> bool:
    if not comment_body:
        return False
    lowered = comment_body.lower().strip()
    return any(pattern in lowered for pattern in HELP_PATTERNS)


def get_mention_type(comment_body: str, agent_name: str) -> MentionType:
    if not comment_body:
        return "none"
    if is_help_request(comment_body):
        return "help"

    lowered = comment_body.lower()
    direct = (f"@{agent_name.lower()}", f"@{_WHITESPACE.sub('', agent_name).lower()}")
    if any(pattern in lowered for pattern in direct):
        return "direct"
    if any(pattern in lowered for pattern in INDIRECT_PATTERNS):
        return "indirect"
    return "none"


async def _thread_has_agent_comment(
    top_level_id: str, issue_id: str, agent_user_id: str, store: CommentStore
) -> bool:
    comments = await store.list_comments(issue_id)
    for comment in comments:
        in_thread = comment.id == top_level_id or comment.parent_id == top_level_id
        if in_thread and comment.author_user_id == agent_user_id:
            logger.debug("Found agent comment %s in thread %s", comment.id, top_level_id)
            return True
    return False


async def is_reply_to_agent(
    comment: Comment, agent_user_id: str, store: CommentStore
) -> bool:
    """Check whether a comment replies inside a thread the agent is part of.

    Fails closed: a comment without a parent, an unknown agent id, or any
    resolution failure is never treated as a reply to the agent.
    """
    if not comment.parent_id or not agent_user_id:
        return False

    try:
        hierarchy = await resolve_comment_hierarchy(comment, store)
        if hierarchy.outcome is HierarchyOutcome.LOOKUP_FAILED:
            return False

        top_level = hierarchy.top_level
        if top_level.author_user_id == agent_user_id:
            logger.info(
                "Comment %s is a reply to agent top-level comment %s", comment.id, top_level.id
            )
            return True

        issue_id = top_level.issue_id or comment.issue_id
        return await _thread_has_agent_comment(top_level.id, issue_id, agent_user_id, store)
    except Exception:
        logger.exception("Failed to check reply-to-agent status for %s", comment.id)
        return False


@dataclass(frozen=True)
class CommentDecision:
    should_process: bool
    reason: str
    is_mentioned: bool
    is_reply: bool


async def should_process_comment(
    comment: Comment, agent_name: str, agent_user_id: str, store: CommentStore
) -> CommentDecision:
    """Combine mention and reply detection into a single actionable decision."""
    is_mentioned = is_agent_mentioned(comment.body, agent_name)
    is_reply = await is_reply_to_agent(comment, agent_user_id, store)

    if not is_mentioned and not is_reply:
        reason = "Agent not mentioned and not a reply to agent"
        return CommentDecision(False, reason, is_mentioned, is_reply)

    if is_reply and not is_mentioned:
        reason = f"Threaded reply to agent (parent: {comment.parent_id})"
    elif is_mentioned and is_reply:
        reason = "Agent mentioned in threaded reply"
    else:
        reason = "Agent mentioned in comment"
    return CommentDecision(True, reason, is_mentioned, is_reply)
