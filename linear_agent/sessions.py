"""In-memory session store for agent conversations.

A session ties one (issue, user) interaction to a backing LLM conversation.
Sessions are ephemeral: they live only as long as the process and are expired
by a periodic sweep after a period of inactivity.

Lifecycle::

    creating -> active -> completed | error | timeout
    completed | timeout -> active   (reactivation)

Every status change goes through `SessionStore._transition`, which evaluates
the counter and progress guards in one place.
"""

from __future__ import annotations

import enum
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

logger = logging.getLogger(__name__)

ERROR_THRESHOLD = 3
PROGRESS_COMPLETE = 100
DEFAULT_TIMEOUT_MINUTES = 30
DEFAULT_MAX_MESSAGES = 50

ElicitationPhase = Literal[
    "initial", "clarification", "planning", "implementation", "review", "completed"
]
Priority = Literal["low", "medium", "high"]


class SessionStatus(str, enum.Enum):
    CREATING = "creating"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"
    TIMEOUT = "timeout"


REACTIVATABLE = frozenset({SessionStatus.COMPLETED, SessionStatus.TIMEOUT})
CLOSED = REACTIVATABLE | {SessionStatus.ERROR}


class Trigger(enum.Enum):
    """Reasons a session's status may change."""

    EXPLICIT = "explicit"
    REACTIVATE = "reactivate"
    ERROR_RECORDED = "error_recorded"
    PROGRESS = "progress"
    EXPIRED = "expired"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionContext:
    """Linear context a session was created from."""

    issue_id: str
    user_id: str
    issue_title: str = ""
    issue_identifier: str = ""
    issue_description: str = ""
    user_name: str = ""
    team_id: str = ""
    comment_id: str = ""
    mention_text: str = ""
    created_at: datetime = field(default_factory=_utcnow)


@dataclass
class SessionOptions:
    timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES
    max_messages: int = DEFAULT_MAX_MESSAGES
    initial_context: str | None = None
    elicitation_mode: bool = False
    priority: Priority = "medium"


@dataclass
class ElicitationContext:
    phase: ElicitationPhase = "initial"
    last_elicitation: str | None = None
    pending_questions: list[str] = field(default_factory=list)
    context_gathered: list[str] = field(default_factory=list)


@dataclass
class SessionProgress:
    current: int
    total: int
    stage: str
    estimated_completion: str | None = None
    last_updated: datetime = field(default_factory=_utcnow)


@dataclass
class Session:
    id: str
    context: SessionContext
    status: SessionStatus
    created_at: datetime
    last_activity_at: datetime
    options: SessionOptions
    message_count: int = 0
    error_count: int = 0
    conversation_id: str | None = None
    elicitation_context: ElicitationContext | None = None
    progress: SessionProgress | None = None

    @property
    def issue_id(self) -> str:
        return self.context.issue_id

    @property
    def user_id(self) -> str:
        return self.context.user_id

    def is_expired(self, now: datetime) -> bool:
        return now - self.last_activity_at > timedelta(minutes=self.options.timeout_minutes)


def generate_session_id(issue_id: str, user_id: str) -> str:
    timestamp = int(time.time() * 1000)
    return f"session_{issue_id}_{user_id}_{timestamp}_{secrets.token_hex(3)}"


class SessionStore:
    """Registry of sessions keyed by id, with an (issue, user) index.

    The index is last-write-wins: creating a second session for the same pair
    re-points `get_session_by_issue` at the newer session and leaves the older
    one reachable only by id.

    `on_conversation_closed` is called with a session's conversation id when
    the session closes or is deleted. The link is then cleared, so a
    reactivated session starts a fresh conversation.
    """

    def __init__(
        self,
        default_options: SessionOptions | None = None,
        clock: Callable[[], datetime] = _utcnow,
        on_conversation_closed: Callable[[str], None] | None = None,
    ) -> None:
        self.default_options = default_options or SessionOptions()
        self._clock = clock
        self._on_conversation_closed = on_conversation_closed
        self._sessions: dict[str, Session] = {}
        self._latest_by_pair: dict[tuple[str, str], str] = {}
        self._processing_comments: set[str] = set()

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self):
        return iter(list(self._sessions.values()))

    # Lifecycle

    def create_session(
        self, context: SessionContext, options: SessionOptions | None = None
    ) -> Session:
        opts = options or SessionOptions(
            timeout_minutes=self.default_options.timeout_minutes,
            max_messages=self.default_options.max_messages,
        )
        now = self._clock()
        session = Session(
            id=generate_session_id(context.issue_id, context.user_id),
            context=context,
            status=SessionStatus.CREATING,
            created_at=now,
            last_activity_at=now,
            options=opts,
            elicitation_context=ElicitationContext() if opts.elicitation_mode else None,
        )
        self._sessions[session.id] = session
        self._latest_by_pair[(context.issue_id, context.user_id)] = session.id
        logger.info(
            "Created session %s for issue %s%s",
            session.id,
            context.issue_id,
            " (elicitation mode)" if opts.elicitation_mode else "",
        )
        return session

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def get_session_by_issue(self, issue_id: str, user_id: str) -> Session | None:
        session_id = self._latest_by_pair.get((issue_id, user_id))
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def find_existing_session(self, issue_id: str, user_id: str) -> Session | None:
        """Find the session to continue for an (issue, user) pair.

        Prefers an active session, then the most recently active completed or
        timed-out one. Error sessions are never continued.
        """
        candidates = [
            s for s in self._sessions.values() if s.issue_id == issue_id and s.user_id == user_id
        ]
        for session in candidates:
            if session.status is SessionStatus.ACTIVE:
                return session

        inactive = [s for s in candidates if s.status in REACTIVATABLE]
        if not inactive:
            return None
        return max(inactive, key=lambda s: s.last_activity_at)

    def delete_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        pair = (session.issue_id, session.user_id)
        if self._latest_by_pair.get(pair) == session_id:
            del self._latest_by_pair[pair]
        self._release_conversation(session)
        logger.info("Deleted session %s", session_id)

    def _release_conversation(self, session: Session) -> None:
        conversation_id = session.conversation_id
        if not conversation_id:
            return
        session.conversation_id = None
        if self._on_conversation_closed is not None:
            self._on_conversation_closed(conversation_id)
        logger.debug("Released conversation %s of session %s", conversation_id, session.id)

    # Status transitions

    def _next_status(
        self, session: Session, trigger: Trigger, requested: SessionStatus | None
    ) -> SessionStatus | None:
        if trigger is Trigger.EXPLICIT:
            return requested
        if trigger is Trigger.REACTIVATE:
            return SessionStatus.ACTIVE if session.status in REACTIVATABLE else None
        if trigger is Trigger.ERROR_RECORDED:
            return SessionStatus.ERROR if session.error_count >= ERROR_THRESHOLD else None
        if trigger is Trigger.PROGRESS:
            progress = session.progress
            if progress is None:
                return None
            if progress.current >= PROGRESS_COMPLETE and session.status is SessionStatus.ACTIVE:
                return SessionStatus.COMPLETED
            if progress.current > 0 and session.status is SessionStatus.CREATING:
                return SessionStatus.ACTIVE
            return None
        if trigger is Trigger.EXPIRED:
            return SessionStatus.TIMEOUT
        return None

    def _transition(
        self,
        session: Session,
        trigger: Trigger,
        requested: SessionStatus | None = None,
    ) -> bool:
        """Apply the status change implied by `trigger`, if any.

        Returns True when a status was written. Expiry does not count as
        activity, every other transition refreshes `last_activity_at`.
        """
        new_status = self._next_status(session, trigger, requested)
        if new_status is None:
            return False

        previous = session.status
        session.status = new_status
        if trigger is not Trigger.EXPIRED:
            session.last_activity_at = self._clock()
        if new_status in CLOSED:
            self._release_conversation(session)
        if previous is not new_status:
            logger.info(
                "Session %s: %s -> %s (%s)",
                session.id,
                previous.value,
                new_status.value,
                trigger.value,
            )
        return True

    def update_session_status(self, session_id: str, status: SessionStatus) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._transition(session, Trigger.EXPLICIT, SessionStatus(status))

    def complete_session(self, session_id: str, reason: str | None = None) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            self._transition(session, Trigger.EXPLICIT, SessionStatus.COMPLETED)
            if reason:
                logger.info("Completed session %s (%s)", session_id, reason)

    def reactivate_session(self, session_id: str) -> Session | None:
        """Move a completed or timed-out session back to active.

        Returns None without touching the session for any other status.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if not self._transition(session, Trigger.REACTIVATE):
            return None
        return session

    def increment_message_count(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.message_count += 1
            session.last_activity_at = self._clock()

    def increment_error_count(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.error_count += 1
            session.last_activity_at = self._clock()
            self._transition(session, Trigger.ERROR_RECORDED)

    def has_reached_message_limit(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and session.message_count >= session.options.max_messages

    def link_conversation(self, session_id: str, conversation_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.conversation_id = conversation_id
            logger.info("Linked conversation %s to session %s", conversation_id, session_id)

    # Progress

    def update_session_progress(
        self,
        session_id: str,
        current: int,
        total: int,
        stage: str,
        estimated_completion: str | None = None,
    ) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return
        now = self._clock()
        session.progress = SessionProgress(current, total, stage, estimated_completion, now)
        session.last_activity_at = now
        logger.debug("Session %s progress: %d/%d - %s", session_id, current, total, stage)
        self._transition(session, Trigger.PROGRESS)

    def get_session_progress(self, session_id: str) -> SessionProgress | None:
        session = self._sessions.get(session_id)
        return session.progress if session else None

    # Expiry

    def cleanup_expired_sessions(self) -> list[str]:
        """Force every session idle past its timeout into `timeout`.

        Applies regardless of current status. Returns the ids that changed.
        """
        now = self._clock()
        timed_out = []
        for session in list(self._sessions.values()):
            if not session.is_expired(now):
                continue
            changed = session.status is not SessionStatus.TIMEOUT
            self._transition(session, Trigger.EXPIRED)
            if changed:
                timed_out.append(session.id)
                logger.info(
                    "Session %s timed out after %d minutes",
                    session.id,
                    session.options.timeout_minutes,
                )
        return timed_out

    # Advisory processing flags

    def is_processing(self, comment_id: str) -> bool:
        return comment_id in self._processing_comments

    def set_processing_status(self, comment_id: str, status: bool) -> None:
        if status:
            self._processing_comments.add(comment_id)
        else:
            self._processing_comments.discard(comment_id)

    def claim_processing(self, comment_id: str) -> bool:
        """Check-and-set the processing flag in one step.

        Contains no await, so on the event loop no other task can interleave
        between the check and the set.
        """
        if comment_id in self._processing_comments:
            return False
        self._processing_comments.add(comment_id)
        return True

    # Queries

    def get_active_sessions(self) -> list[Session]:
        return [
            s
            for s in self._sessions.values()
            if s.status in (SessionStatus.ACTIVE, SessionStatus.CREATING)
        ]

    def get_stats(self) -> dict[str, int]:
        counts = {status: 0 for status in SessionStatus}
        for session in self._sessions.values():
            counts[session.status] += 1
        return {
            "total": len(self._sessions),
            "active": counts[SessionStatus.ACTIVE] + counts[SessionStatus.CREATING],
            "completed": counts[SessionStatus.COMPLETED],
            "error": counts[SessionStatus.ERROR],
            "timeout": counts[SessionStatus.TIMEOUT],
        }

    # Elicitation

    def should_use_elicitation(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return bool(
            session and session.options.elicitation_mode and session.elicitation_context
        )

    def get_elicitation_context(self, session_id: str) -> ElicitationContext | None:
        session = self._sessions.get(session_id)
        return session.elicitation_context if session else None

    def update_elicitation_phase(
        self, session_id: str, phase: ElicitationPhase, context: str | None = None
    ) -> None:
        session = self._sessions.get(session_id)
        if session is None or session.elicitation_context is None:
            return
        session.elicitation_context.phase = phase
        session.last_activity_at = self._clock()
        if context:
            session.elicitation_context.context_gathered.append(context)
        logger.debug("Session %s elicitation phase -> %s", session_id, phase)

    def add_pending_question(self, session_id: str, question: str) -> None:
        session = self._sessions.get(session_id)
        if session is None or session.elicitation_context is None:
            return
        session.elicitation_context.pending_questions.append(question)
        session.elicitation_context.last_elicitation = question
        session.last_activity_at = self._clock()

    def remove_pending_question(self, session_id: str, index: int) -> str | None:
        session = self._sessions.get(session_id)
        if session is None or session.elicitation_context is None:
            return None
        questions = session.elicitation_context.pending_questions
        if not 0 <= index < len(questions):
            return None
        session.last_activity_at = self._clock()
        return questions.pop(index)

    def integrate_agent_session_event(
        self,
        session_id: str,
        event_type: str,
        elicitation: dict[str, Any] | None = None,
    ) -> bool:
        """Merge data extracted from an agent notification into a session.

        Refreshes activity, records intent and confidence, queues questions,
        and moves the elicitation phase according to the event type.
        """
        session = self._sessions.get(session_id)
        if session is None:
            logger.debug("Session %s not found for agent event integration", session_id)
            return False

        session.last_activity_at = self._clock()
        if not elicitation or session.elicitation_context is None:
            return True

        gathered = session.elicitation_context.context_gathered
        if elicitation.get("user_intent"):
            gathered.append(f"User intent detected: {elicitation['user_intent']}")
        if elicitation.get("confidence"):
            gathered.append(f"Intent confidence: {round(elicitation['confidence'] * 100)}%")
        for question in elicitation.get("pending_questions", []):
            self.add_pending_question(session_id, question)

        phase_by_event: dict[str, ElicitationPhase] = {
            "issueCommentMention": "clarification",
            "sessionStarted": "initial",
            "sessionEnded": "completed",
        }
        phase = phase_by_event.get(event_type)
        if phase is None:
            logger.debug("No elicitation phase for agent event type %s", event_type)
        else:
            self.update_elicitation_phase(session_id, phase, f"Event: {event_type}")
        return True
