"""Comment thread hierarchy resolution.

Linear only allows one level of threading, so replies must be anchored on a
top-level comment. Parent links come from the API and may be inconsistent,
so traversal is bounded and failures degrade to "treat as own top-level".
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from .protocol import Comment, CommentStore

logger = logging.getLogger(__name__)

MAX_THREAD_DEPTH = 5


class HierarchyOutcome(enum.Enum):
    RESOLVED = "resolved"
    DEPTH_EXCEEDED = "depth_exceeded"
    LOOKUP_FAILED = "lookup_failed"


@dataclass(frozen=True)
class CommentHierarchy:
    """A comment together with the top-level comment of its thread.

    `depth` is the number of parent hops from `comment` to `top_level`.
    """

    comment: Comment
    top_level: Comment
    depth: int
    outcome: HierarchyOutcome = HierarchyOutcome.RESOLVED


async def resolve_comment_hierarchy(
    comment: Comment,
    store: CommentStore,
    max_depth: int = MAX_THREAD_DEPTH,
) -> CommentHierarchy:
    """Walk parent links until a comment without a parent is found.

    Never raises. When `max_depth` hops are reached, or a parent link loops
    back to a comment already visited, the last visited comment is returned
    as the de-facto top level. When any lookup fails the original
    comment is returned as its own top level with depth 1.
    """
    current = comment
    depth = 0
    visited = {comment.id}

    while current.parent_id:
        if depth >= max_depth:
            logger.warning(
                "Thread depth cap (%d) reached for comment %s, using %s as top-level",
                max_depth,
                comment.id,
                current.id,
            )
            return CommentHierarchy(comment, current, depth, HierarchyOutcome.DEPTH_EXCEEDED)

        parent_id = current.parent_id
        try:
            parent = await store.get_comment(parent_id)
        except Exception:
            logger.exception(
                "Failed to fetch parent %s while resolving thread of %s", parent_id, comment.id
            )
            parent = None

        if parent is None:
            logger.warning(
                "Could not resolve thread for comment %s (missing %s), treating it as top-level",
                comment.id,
                parent_id,
            )
            return CommentHierarchy(comment, comment, 1, HierarchyOutcome.LOOKUP_FAILED)

        if parent.id in visited:
            logger.warning(
                "Cycle in thread of comment %s at %s, using %s as top-level",
                comment.id,
                parent.id,
                current.id,
            )
            return CommentHierarchy(comment, current, depth, HierarchyOutcome.DEPTH_EXCEEDED)
        visited.add(parent.id)

        current = parent
        depth += 1

    logger.debug(
        "Comment hierarchy resolved: %s -> top-level %s (depth %d)", comment.id, current.id, depth
    )
    return CommentHierarchy(comment, current, depth)


async def find_top_level_comment_id(
    comment_id: str, store: CommentStore, max_depth: int = MAX_THREAD_DEPTH
) -> str:
    """Return the id of the top-level comment for `comment_id`.

    Falls back to `comment_id` itself if it cannot be fetched.
    """
    try:
        comment = await store.get_comment(comment_id)
    except Exception:
        logger.exception("Failed to fetch comment %s", comment_id)
        return comment_id
    if comment is None:
        logger.warning("Comment %s not found, using it as its own top-level", comment_id)
        return comment_id

    hierarchy = await resolve_comment_hierarchy(comment, store, max_depth)
    return hierarchy.top_level.id
