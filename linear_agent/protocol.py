"""Protocol definitions for the agent's external collaborators.

The webhook pipeline only talks to Linear and to the language model through
these interfaces, so tests can swap in in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .sessions import Session, SessionContext


@dataclass(frozen=True)
class Comment:
    """Read-only view of a Linear comment."""

    id: str
    body: str
    author_user_id: str
    issue_id: str
    parent_id: str | None = None
    author_name: str = ""

    @classmethod
    def from_webhook(cls, data: dict[str, Any]) -> Comment:
        """Build a Comment from a webhook `data` object or a GraphQL node."""
        user = data.get("user") or {}
        issue = data.get("issue") or {}
        parent = data.get("parent") or {}
        return cls(
            id=data.get("id", ""),
            body=data.get("body") or "",
            author_user_id=user.get("id") or data.get("userId") or "",
            issue_id=issue.get("id") or data.get("issueId") or "",
            parent_id=data.get("parentId") or parent.get("id") or None,
            author_name=user.get("name") or "",
        )


@dataclass(frozen=True)
class CommentCreateResult:
    """Outcome of a comment creation call."""

    success: bool
    id: str | None = None
    error: str | None = None

    @property
    def parent_not_top_level(self) -> bool:
        """Whether Linear rejected the parent because it is itself a reply."""
        return bool(self.error) and "top level" in self.error.lower()


@runtime_checkable
class CommentStore(Protocol):
    """Read and write access to Linear comments."""

    async def get_comment(self, comment_id: str) -> Comment | None:
        """Fetch a single comment, or None if it does not exist."""
        ...

    async def list_comments(self, issue_id: str) -> list[Comment]:
        """List every comment on an issue."""
        ...

    async def create_comment(
        self, issue_id: str, body: str, parent_id: str | None = None
    ) -> CommentCreateResult:
        """Create a comment, optionally as a reply to `parent_id`."""
        ...


@runtime_checkable
class TextGenerator(Protocol):
    """Opaque text generation service.

    `generate` and `generate_linear_response` never raise; they fall back to
    canned text. The conversation methods raise so callers can fall back.
    """

    @property
    def sessions_enabled(self) -> bool: ...

    async def generate(self, prompt: str) -> str: ...

    async def generate_linear_response(
        self, comment: str, issue_title: str, issue_identifier: str
    ) -> str: ...

    async def create_conversation(self, context: SessionContext) -> str: ...

    async def send_message(self, conversation_id: str, message: str) -> str: ...

    async def generate_session_response(self, session: Session, message: str) -> str: ...

    def end_conversation(self, conversation_id: str) -> None: ...
