"""Shared types for webhook event handlers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

Job = Callable[[], Awaitable[None]]
Schedule = Callable[[Job], None]


@dataclass
class HandlerResult:
    """Outcome a handler reports back to the router.

    `session_created` stays None for event types that never create sessions,
    so the acknowledgement only carries the field where it means something.
    """

    handled: bool = False
    session_created: bool | None = None


class EventHandler(Protocol):
    async def handle(self, payload: dict[str, Any], schedule: Schedule) -> HandlerResult: ...
