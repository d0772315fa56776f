"""Handles `PermissionChange` webhooks for the agent's team access."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .base import HandlerResult, Schedule

if TYPE_CHECKING:
    from ..runtime import AgentRuntime

logger = logging.getLogger(__name__)


class PermissionChangeHandler:
    def __init__(self, runtime: AgentRuntime) -> None:
        self.runtime = runtime
        self.accessible_teams: set[str] = set()

    def _end_team_sessions(self, team_id: str) -> int:
        sessions = self.runtime.sessions
        ended = 0
        for session in sessions.get_active_sessions():
            if session.context.team_id == team_id:
                sessions.complete_session(session.id, reason=f"team {team_id} access removed")
                ended += 1
        return ended

    async def handle(self, payload: dict[str, Any], schedule: Schedule) -> HandlerResult:
        data = payload.get("data") or {}
        change_type = data.get("type")
        team_id = data.get("teamId")
        logger.info(
            "Permission change %s (id=%s team=%s user=%s)",
            change_type,
            data.get("id"),
            team_id,
            data.get("userId"),
        )

        if change_type == "TeamAccessAdded":
            if team_id:
                self.accessible_teams.add(team_id)
            logger.info("Agent access added to team %s", team_id)
        elif change_type == "TeamAccessRemoved":
            if team_id:
                self.accessible_teams.discard(team_id)
                ended = self._end_team_sessions(team_id)
                logger.info("Agent access removed from team %s, ended %d sessions", team_id, ended)
        elif change_type == "PermissionUpdated":
            logger.info("Agent permissions updated: %s", data.get("changes"))
        else:
            logger.info("Unhandled permission change type: %s", change_type)
            return HandlerResult()
        return HandlerResult(handled=True)
