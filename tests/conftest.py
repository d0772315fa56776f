"""Shared fixtures: in-memory Linear and text generation fakes."""

from datetime import UTC, datetime, timedelta

import pytest

from linear_agent.config import Settings
from linear_agent.protocol import Comment, CommentCreateResult
from linear_agent.runtime import build_runtime

AGENT_NAME = "Agent"
AGENT_USER_ID = "agent-user"


class FakeCommentStore:
    """CommentStore backed by a dict, recording every created comment."""

    def __init__(self, comments=None):
        self.comments = {c.id: c for c in comments or []}
        self.created = []
        self.reject_parents = set()
        self.fail_lookups = False

    def add(self, comment):
        self.comments[comment.id] = comment
        return comment

    async def get_comment(self, comment_id):
        if self.fail_lookups:
            raise RuntimeError("Linear unavailable")
        return self.comments.get(comment_id)

    async def list_comments(self, issue_id):
        if self.fail_lookups:
            raise RuntimeError("Linear unavailable")
        return [c for c in self.comments.values() if c.issue_id == issue_id]

    async def create_comment(self, issue_id, body, parent_id=None):
        if parent_id in self.reject_parents:
            return CommentCreateResult(
                success=False, error="Parent comment must be a top level comment"
            )
        comment = Comment(
            id=f"created-{len(self.created) + 1}",
            body=body,
            author_user_id=AGENT_USER_ID,
            issue_id=issue_id,
            parent_id=parent_id,
        )
        self.created.append(comment)
        self.comments[comment.id] = comment
        return CommentCreateResult(success=True, id=comment.id)


class FakeTextGenerator:
    """TextGenerator that echoes prompts and records calls."""

    def __init__(self, sessions_enabled=True):
        self.sessions_enabled = sessions_enabled
        self.conversations = {}
        self.ended = []
        self.calls = []
        self.fail_conversation = False

    async def generate(self, prompt):
        self.calls.append(("generate", prompt))
        return f"generated: {prompt}"

    async def generate_linear_response(self, comment, issue_title, issue_identifier):
        self.calls.append(("linear", comment))
        return f"single-shot reply to: {comment}"

    async def create_conversation(self, context):
        if self.fail_conversation:
            raise RuntimeError("conversation backend down")
        conversation_id = f"conv-{len(self.conversations) + len(self.ended) + 1}"
        self.conversations[conversation_id] = []
        return conversation_id

    async def send_message(self, conversation_id, message):
        self.conversations[conversation_id].append(message)
        return f"session reply to: {message}"

    async def generate_session_response(self, session, message):
        self.calls.append(("session", message))
        if session.conversation_id:
            return await self.send_message(session.conversation_id, message)
        return await self.generate_linear_response(message, "", "")

    def end_conversation(self, conversation_id):
        if self.conversations.pop(conversation_id, None) is not None:
            self.ended.append(conversation_id)


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def comment_payload(comment_id, body, user_id="user-1", parent_id=None, event_id=None):
    data = {
        "id": comment_id,
        "body": body,
        "userId": user_id,
        "issueId": "issue-1",
        "issue": {"id": "issue-1", "title": "Login broken", "identifier": "ENG-1"},
        "user": {"id": user_id, "name": "Dana"},
    }
    if parent_id:
        data["parentId"] = parent_id
    payload = {"type": "Comment", "action": "create", "data": data}
    if event_id:
        payload["id"] = event_id
    return payload


@pytest.fixture
def settings():
    return Settings(agent_name=AGENT_NAME, agent_user_id=AGENT_USER_ID, verify_signatures=False)


@pytest.fixture
def store():
    return FakeCommentStore()


@pytest.fixture
def generator():
    return FakeTextGenerator()


@pytest.fixture
def runtime(settings, store, generator):
    return build_runtime(settings, comment_store=store, generator=generator)
