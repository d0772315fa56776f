"""Linear GraphQL API client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..protocol import Comment, CommentCreateResult

logger = logging.getLogger(__name__)

LINEAR_GRAPHQL_URL = "https://api.linear.app/graphql"

COMMENT_FIELDS = """
    id
    body
    parent { id }
    issue { id }
    user { id name }
"""

GET_COMMENT_QUERY = f"""
query GetComment($id: String!) {{
    comment(id: $id) {{
        {COMMENT_FIELDS}
    }}
}}
"""

LIST_COMMENTS_QUERY = f"""
query IssueComments($issueId: String!) {{
    issue(id: $issueId) {{
        comments(first: 250) {{
            nodes {{
                {COMMENT_FIELDS}
            }}
        }}
    }}
}}
"""

CREATE_COMMENT_MUTATION = """
mutation CommentCreate($input: CommentCreateInput!) {
    commentCreate(input: $input) {
        success
        comment {
            id
        }
    }
}
"""

VIEWER_QUERY = """
query Viewer {
    viewer {
        id
        name
    }
}
"""


class LinearAPIError(Exception):
    """Raised when the Linear API returns GraphQL errors."""


class LinearClient:
    """Minimal async client for the Linear comment API.

    Implements the CommentStore protocol.
    """

    def __init__(
        self,
        api_key: str,
        url: str = LINEAR_GRAPHQL_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _execute(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.api_key:
            msg = "LINEAR_API_KEY is not configured"
            raise LinearAPIError(msg)

        payload = {"query": query, "variables": variables or {}}
        headers = {"Authorization": self.api_key, "Content-Type": "application/json"}

        if self._http_client is not None:
            response = await self._http_client.post(self.url, headers=headers, json=payload)
        else:
            async with httpx.AsyncClient() as http_client:
                response = await http_client.post(self.url, headers=headers, json=payload)
        response.raise_for_status()
        result = response.json()

        errors = result.get("errors")
        if errors:
            message = "; ".join(error.get("message", "unknown error") for error in errors)
            raise LinearAPIError(message)
        return result.get("data") or {}

    async def get_comment(self, comment_id: str) -> Comment | None:
        data = await self._execute(GET_COMMENT_QUERY, {"id": comment_id})
        node = data.get("comment")
        if not node:
            return None
        return Comment.from_webhook(node)

    async def list_comments(self, issue_id: str) -> list[Comment]:
        data = await self._execute(LIST_COMMENTS_QUERY, {"issueId": issue_id})
        issue = data.get("issue") or {}
        nodes = (issue.get("comments") or {}).get("nodes", [])
        return [Comment.from_webhook(node) for node in nodes]

    async def create_comment(
        self, issue_id: str, body: str, parent_id: str | None = None
    ) -> CommentCreateResult:
        """Add a comment to a Linear issue.

        Returns a failed result carrying the error message instead of raising,
        so callers can react to specific rejections such as a non top-level
        parent.
        """
        comment_input: dict[str, Any] = {"issueId": issue_id, "body": body}
        if parent_id:
            comment_input["parentId"] = parent_id

        try:
            data = await self._execute(CREATE_COMMENT_MUTATION, {"input": comment_input})
        except (httpx.HTTPError, LinearAPIError) as e:
            logger.warning("commentCreate failed for issue %s: %s", issue_id, e)
            return CommentCreateResult(success=False, error=str(e))

        created = data.get("commentCreate") or {}
        if not created.get("success"):
            return CommentCreateResult(success=False, error="commentCreate returned success=false")
        return CommentCreateResult(success=True, id=(created.get("comment") or {}).get("id"))

    async def get_viewer_id(self) -> str | None:
        """Return the user id the API key authenticates as, or None on failure."""
        try:
            data = await self._execute(VIEWER_QUERY)
        except (httpx.HTTPError, LinearAPIError):
            logger.exception("Failed to fetch Linear viewer")
            return None
        viewer = data.get("viewer") or {}
        if viewer.get("id"):
            logger.info("Linear bot user: %s (%s)", viewer.get("name"), viewer["id"])
        return viewer.get("id")
