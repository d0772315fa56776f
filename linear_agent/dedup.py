"""Short-lived caches owned by the event router.

`EventDeduplicator` remembers recently dispatched webhook events so redelivered
webhooks are acknowledged without being processed twice. `AgentUserIdCache`
remembers user ids observed to belong to the agent itself. Both are swept by
a periodic cleanup task and never deleted by business logic.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

EVENT_RETENTION_SECONDS = 5 * 60
AGENT_ID_RETENTION_SECONDS = 5 * 60


@dataclass(frozen=True)
class ProcessedEventRecord:
    event_id: str
    event_type: str
    first_seen_at: float


class EventDeduplicator:
    """Record of recently processed webhook event ids."""

    def __init__(
        self,
        retention_seconds: float = EVENT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._records: dict[str, ProcessedEventRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._records

    def is_duplicate(self, event_id: str, event_type: str) -> bool:
        record = self._records.get(event_id)
        return record is not None and record.event_type == event_type

    async def check_and_record(self, event_id: str, event_type: str) -> bool:
        """Record an event and report whether it was new.

        Returns False when the same (event_id, event_type) pair was already
        recorded within the retention window.
        """
        async with self._lock:
            if self.is_duplicate(event_id, event_type):
                logger.info("Duplicate webhook %s (%s) ignored", event_id, event_type)
                return False
            self._records[event_id] = ProcessedEventRecord(event_id, event_type, self._clock())
            return True

    def cleanup(self) -> int:
        """Drop records older than the retention window. Returns the count removed."""
        cutoff = self._clock() - self.retention_seconds
        expired = [
            event_id
            for event_id, record in self._records.items()
            if record.first_seen_at < cutoff
        ]
        for event_id in expired:
            del self._records[event_id]
        if expired:
            logger.debug("Evicted %d processed event records", len(expired))
        return len(expired)


class AgentUserIdCache:
    """User ids observed to be the agent's own, with expiry."""

    def __init__(
        self,
        retention_seconds: float = AGENT_ID_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._seen: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._seen)

    def observe(self, user_id: str) -> None:
        if not user_id:
            return
        if user_id not in self._seen:
            logger.info("Observed agent user id %s", user_id)
        self._seen[user_id] = self._clock()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._seen

    def latest(self) -> str | None:
        """The most recently observed agent user id, if any."""
        if not self._seen:
            return None
        return max(self._seen.items(), key=lambda item: item[1])[0]

    def cleanup(self) -> int:
        cutoff = self._clock() - self.retention_seconds
        expired = [user_id for user_id, seen_at in self._seen.items() if seen_at < cutoff]
        for user_id in expired:
            del self._seen[user_id]
        return len(expired)
