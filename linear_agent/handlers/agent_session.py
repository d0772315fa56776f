"""Handles `AgentSessionEvent` webhooks sent when Linear opens or prompts an agent session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..prompt import construct_agent_session_response
from .base import HandlerResult, Schedule

if TYPE_CHECKING:
    from ..runtime import AgentRuntime

logger = logging.getLogger(__name__)


class AgentSessionEventHandler:
    def __init__(self, runtime: AgentRuntime) -> None:
        self.runtime = runtime

    async def handle(self, payload: dict[str, Any], schedule: Schedule) -> HandlerResult:
        action = payload.get("action")
        agent_session = payload.get("agentSession") or {}
        session_id = agent_session.get("id")
        if not session_id:
            logger.warning("AgentSessionEvent without agentSession id, ignoring")
            return HandlerResult()

        issue = agent_session.get("issue") or {}
        issue_id = agent_session.get("issueId") or issue.get("id") or ""
        emitter = self.runtime.emitter

        if action == "created":
            title = issue.get("title") or issue_id
            await emitter.emit_thought(
                session_id, f'Agent session created for issue "{title}". Ready to assist!', issue_id
            )
            return HandlerResult(handled=True)

        if action != "prompted":
            logger.info("Unhandled AgentSessionEvent action %s", action)
            return HandlerResult()

        activity = payload.get("agentActivity")
        if not activity:
            logger.info("No agent activity in prompt for session %s", session_id)
            return HandlerResult()

        if self.runtime.identity.is_agent(activity.get("userId")):
            logger.info("Skipping prompt from the agent itself in session %s", session_id)
            return HandlerResult()

        comment = agent_session.get("comment") or {}
        content = activity.get("content") or {}
        prompt = comment.get("body") or content.get("body") or ""
        if not prompt:
            logger.info("No user prompt in session %s", session_id)
            return HandlerResult()

        logger.info("Agent session %s prompted: %.100s", session_id, prompt)
        response = construct_agent_session_response(self.runtime.settings.agent_name, prompt)

        async def respond() -> None:
            await emitter.emit_response(session_id, response, issue_id)

        schedule(respond)
        return HandlerResult(handled=True)
