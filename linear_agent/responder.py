"""Generates and posts the agent's reply to an actionable comment.

Work is split in two steps. `prepare` runs inside the webhook request and
only touches in-memory state, so the handler can report whether a session
was created. `respond` runs afterwards as a background task and does the slow
model and Linear calls.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .config import Settings
from .detection import is_help_request
from .emitter import ResponseEmitter
from .errors import create_error_response
from .prompt import HELP_RESPONSE
from .protocol import Comment, TextGenerator
from .sessions import (
    REACTIVATABLE,
    Session,
    SessionContext,
    SessionOptions,
    SessionStatus,
    SessionStore,
)
from .todos import (
    TodoManager,
    extract_completed_todo_id,
    extract_todo_title,
    is_todo_list_request,
)

logger = logging.getLogger(__name__)

_CLARIFY = re.compile(r"\b(?:questions?|clarify)\b", re.IGNORECASE)
_PLAN = re.compile(r"\b(?:plan|implement|create|build|develop)\b", re.IGNORECASE)
_START = re.compile(r"\b(?:start|begin|proceed)\b|\bgo ahead\b", re.IGNORECASE)


@dataclass
class ResponsePlan:
    """What `prepare` decided for one comment."""

    comment: Comment
    context: SessionContext
    session: Session | None = None
    session_created: bool = False

    @property
    def session_key(self) -> str:
        return self.session.id if self.session else f"webhook-{self.comment.id}"


def build_session_context(comment: Comment, data: dict) -> SessionContext:
    """Collect the issue and author details carried on a Comment webhook."""
    issue = data.get("issue") or {}
    user = data.get("user") or {}
    team = issue.get("team") or {}
    return SessionContext(
        issue_id=comment.issue_id,
        user_id=comment.author_user_id,
        issue_title=issue.get("title") or "",
        issue_identifier=issue.get("identifier") or "",
        issue_description=issue.get("description") or "",
        user_name=user.get("name") or comment.author_name,
        team_id=issue.get("teamId") or team.get("id") or "",
        comment_id=comment.id,
        mention_text=comment.body,
    )


class AgentResponder:
    def __init__(
        self,
        settings: Settings,
        sessions: SessionStore,
        generator: TextGenerator,
        emitter: ResponseEmitter,
        todos: TodoManager,
    ) -> None:
        self.settings = settings
        self.sessions = sessions
        self.generator = generator
        self.emitter = emitter
        self.todos = todos

    # Synchronous step

    def _continue_session(self, issue_id: str, user_id: str) -> Session | None:
        existing = self.sessions.find_existing_session(issue_id, user_id)
        if existing is None:
            return None

        if existing.status in REACTIVATABLE:
            existing = self.sessions.reactivate_session(existing.id)
            if existing is None:
                return None
            logger.info("Reactivated session %s", existing.id)

        if self.sessions.has_reached_message_limit(existing.id):
            self.sessions.complete_session(existing.id, reason="message limit reached")
            return None
        return existing

    def prepare(self, comment: Comment, context: SessionContext) -> ResponsePlan:
        """Find or create the session for a comment.

        Raises whatever the session store raises; the caller decides whether
        to continue without a session.
        """
        plan = ResponsePlan(comment=comment, context=context)
        if not self.settings.sessions_enabled:
            return plan

        existing = self._continue_session(comment.issue_id, comment.author_user_id)
        if existing is not None:
            logger.info("Continuing session %s for comment %s", existing.id, comment.id)
            plan.session = existing
            return plan

        plan.session = self.sessions.create_session(
            context,
            SessionOptions(
                timeout_minutes=self.settings.session_timeout_minutes,
                max_messages=self.settings.session_max_messages,
                elicitation_mode=True,
            ),
        )
        plan.session_created = True
        return plan

    # Background step

    async def _ensure_conversation(self, session: Session) -> None:
        if session.conversation_id or not self.generator.sessions_enabled:
            if session.status is SessionStatus.CREATING:
                self.sessions.update_session_status(session.id, SessionStatus.ACTIVE)
            return

        try:
            conversation_id = await self.generator.create_conversation(session.context)
        except Exception:
            logger.exception("Failed to start conversation for session %s", session.id)
            self.sessions.update_session_status(session.id, SessionStatus.ERROR)
            return

        self.sessions.link_conversation(session.id, conversation_id)
        self.sessions.update_session_status(session.id, SessionStatus.ACTIVE)

    def _mark_active(self, session: Session | None) -> None:
        # Canned replies skip the conversation; the session still counts as started.
        if session is not None and session.status is SessionStatus.CREATING:
            self.sessions.update_session_status(session.id, SessionStatus.ACTIVE)

    async def _generate(self, plan: ResponsePlan) -> str:
        body = plan.comment.body
        session = plan.session
        if session is not None:
            await self._ensure_conversation(session)
            if session.status is not SessionStatus.ERROR:
                response = await self.generator.generate_session_response(session, body)
                self.sessions.increment_message_count(session.id)
                if self.sessions.should_use_elicitation(session.id):
                    self.update_elicitation(session.id, body, response)
                return response

        return await self.generator.generate_linear_response(
            body, plan.context.issue_title, plan.context.issue_identifier
        )

    def _handle_todos(self, plan: ResponsePlan) -> str | None:
        body = plan.comment.body
        issue_id = plan.comment.issue_id

        if is_todo_list_request(body):
            return "📋 **TODOs for this issue:**\n\n" + TodoManager.format_todo_list(
                self.todos.get_issue_todos(issue_id)
            )

        todo_id = extract_completed_todo_id(body)
        if todo_id:
            todo = self.todos.update_todo_status(todo_id, "completed")
            if todo is None:
                return f"🔍 I couldn't find TODO `{todo_id}`."
            return f"✅ Marked **{todo.title}** as completed."

        title = extract_todo_title(body)
        if title:
            todo = self.todos.create_todo(plan.session_key, issue_id, title)
            return f"📝 Created TODO: **{todo.title}**\n_ID: {todo.id}_"
        return None

    def update_elicitation(self, session_id: str, message: str, response: str) -> None:
        """Advance the elicitation phase from one exchange."""
        elicitation = self.sessions.get_elicitation_context(session_id)
        if elicitation is None:
            return

        if "?" in response or _CLARIFY.search(response):
            self.sessions.update_elicitation_phase(session_id, "clarification", message)
            for line in response.splitlines():
                if line.strip().endswith("?"):
                    self.sessions.add_pending_question(session_id, line.strip())
        elif elicitation.phase == "clarification" and _PLAN.search(message):
            self.sessions.update_elicitation_phase(session_id, "planning", message)
        elif elicitation.phase == "planning" and _START.search(message):
            self.sessions.update_elicitation_phase(session_id, "implementation", message)

    async def respond(self, plan: ResponsePlan) -> None:
        """Generate the reply for `plan` and post it under the triggering comment."""
        comment = plan.comment
        try:
            if is_help_request(comment.body):
                response = HELP_RESPONSE.format(
                    agent_name=self.settings.agent_name,
                    timeout_minutes=self.settings.session_timeout_minutes,
                )
            else:
                response = self._handle_todos(plan)
            if response is not None:
                self._mark_active(plan.session)
            else:
                response = await self._generate(plan)
        except Exception as e:
            logger.exception("Failed to generate response for comment %s", comment.id)
            if plan.session is not None:
                self.sessions.increment_error_count(plan.session.id)
            response = create_error_response(e)

        await self.emitter.emit_response(
            plan.session_key, response, comment.issue_id, parent_comment_id=comment.id
        )
