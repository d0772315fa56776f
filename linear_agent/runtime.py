"""Process-scoped state for the webhook service.

`AgentRuntime` owns every in-memory container and collaborator. The web app
builds one at startup and passes it to the router; nothing lives in module
globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .config import Settings
from .dedup import AgentUserIdCache, EventDeduplicator
from .emitter import ResponseEmitter
from .integrations.llm import ChatResponder
from .protocol import CommentStore, TextGenerator
from .responder import AgentResponder
from .security import WebhookRateLimiter
from .sessions import SessionOptions, SessionStore
from .sweeper import PeriodicSweep, SweepScheduler
from .todos import TodoManager
from .utils.linear import LinearClient

logger = logging.getLogger(__name__)

CACHE_SWEEP_INTERVAL_SECONDS = 60


class AgentIdentity:
    """The agent's own user id, configured or discovered from live events."""

    def __init__(self, configured_id: str = "", cache: AgentUserIdCache | None = None) -> None:
        self.configured_id = configured_id
        self.cache = cache or AgentUserIdCache()

    @property
    def user_id(self) -> str:
        return self.configured_id or self.cache.latest() or ""

    def observe(self, user_id: str) -> None:
        self.cache.observe(user_id)

    def is_agent(self, user_id: str | None) -> bool:
        if not user_id:
            return False
        return user_id == self.configured_id or user_id in self.cache


@dataclass
class AgentRuntime:
    settings: Settings
    comment_store: CommentStore
    generator: TextGenerator
    sessions: SessionStore
    identity: AgentIdentity
    dedup: EventDeduplicator = field(default_factory=EventDeduplicator)
    rate_limiter: WebhookRateLimiter = field(default_factory=WebhookRateLimiter)
    todos: TodoManager = field(default_factory=TodoManager)
    sweeps: SweepScheduler = field(default_factory=SweepScheduler)

    def __post_init__(self) -> None:
        self.emitter = ResponseEmitter(self.comment_store)
        self.responder = AgentResponder(
            settings=self.settings,
            sessions=self.sessions,
            generator=self.generator,
            emitter=self.emitter,
            todos=self.todos,
        )
        if not self.sweeps.sweeps:
            self.sweeps.add(
                PeriodicSweep("event-cache", CACHE_SWEEP_INTERVAL_SECONDS, self.cleanup_caches)
            )
            self.sweeps.add(
                PeriodicSweep(
                    "sessions",
                    self.settings.session_cleanup_interval_minutes * 60,
                    self.sessions.cleanup_expired_sessions,
                )
            )

    def cleanup_caches(self) -> None:
        self.dedup.cleanup()
        self.identity.cache.cleanup()
        self.rate_limiter.cleanup()
        self.todos.cleanup_completed_todos()

    async def resolve_agent_user_id(self) -> str:
        """Look up the bot's own user id when it is not configured."""
        if self.identity.user_id:
            return self.identity.user_id
        if isinstance(self.comment_store, LinearClient) and self.comment_store.configured:
            viewer_id = await self.comment_store.get_viewer_id()
            if viewer_id:
                self.identity.configured_id = viewer_id
        if not self.identity.user_id:
            logger.warning("Agent user id unknown; own comments are only skipped once observed")
        return self.identity.user_id


def build_runtime(
    settings: Settings,
    comment_store: CommentStore | None = None,
    generator: TextGenerator | None = None,
) -> AgentRuntime:
    generator = generator or ChatResponder(
        agent_name=settings.agent_name,
        api_key=settings.anthropic_api_key,
        model=settings.model,
        sessions_enabled=settings.sessions_enabled,
    )
    sessions = SessionStore(
        default_options=SessionOptions(
            timeout_minutes=settings.session_timeout_minutes,
            max_messages=settings.session_max_messages,
        ),
        on_conversation_closed=generator.end_conversation,
    )
    return AgentRuntime(
        settings=settings,
        comment_store=comment_store or LinearClient(settings.linear_api_key),
        generator=generator,
        sessions=sessions,
        identity=AgentIdentity(settings.agent_user_id),
        rate_limiter=WebhookRateLimiter(max_requests=settings.rate_limit_per_minute),
    )
