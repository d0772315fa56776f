"""In-memory TODO tracking for agent sessions."""

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Literal

logger = logging.getLogger(__name__)

TodoStatus = Literal["pending", "in_progress", "completed", "cancelled"]
TodoPriority = Literal["low", "medium", "high", "urgent"]

COMPLETED_RETENTION = timedelta(hours=24)
MIN_TODO_LENGTH = 5

_CREATE_TODO = re.compile(
    r"(?:create|make|add)\s+(?:a\s+)?(?:todo|task|item)\s+(?:to\s+)?(.+?)(?:\.|$)",
    re.IGNORECASE,
)
_SHOW_TODOS = re.compile(r"\b(?:show|list)\s+(?:the\s+)?todos?(?:\s+list)?\b", re.IGNORECASE)
_COMPLETE_TODO = re.compile(
    r"\bmark\s+todo\s+(\S+)\s+(?:as\s+)?(?:complete|completed|done)\b", re.IGNORECASE
)

STATUS_EMOJI = {"pending": "⏳", "in_progress": "🔄", "completed": "✅", "cancelled": "❌"}
PRIORITY_EMOJI = {"low": "🔵", "medium": "🟡", "high": "🟠", "urgent": "🔴"}


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class TodoItem:
    id: str
    session_key: str
    issue_id: str
    title: str
    description: str = ""
    status: TodoStatus = "pending"
    priority: TodoPriority = "medium"
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


def extract_todo_title(message: str) -> str | None:
    """Pull a TODO title out of phrases like "create a todo to fix the login bug"."""
    match = _CREATE_TODO.search(message)
    if not match:
        return None
    title = match.group(1).strip()
    return title if len(title) > MIN_TODO_LENGTH else None


def is_todo_list_request(message: str) -> bool:
    return bool(_SHOW_TODOS.search(message))


def extract_completed_todo_id(message: str) -> str | None:
    match = _COMPLETE_TODO.search(message)
    return match.group(1) if match else None


class TodoManager:
    def __init__(self) -> None:
        self._todos: dict[str, TodoItem] = {}

    def __len__(self) -> int:
        return len(self._todos)

    def create_todo(
        self,
        session_key: str,
        issue_id: str,
        title: str,
        description: str = "",
        priority: TodoPriority = "medium",
    ) -> TodoItem:
        todo_id = f"todo_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
        todo = TodoItem(todo_id, session_key, issue_id, title, description, priority=priority)
        self._todos[todo_id] = todo
        logger.info("Created TODO %s: %s", todo_id, title)
        return todo

    def get_todo(self, todo_id: str) -> TodoItem | None:
        return self._todos.get(todo_id)

    def update_todo_status(self, todo_id: str, status: TodoStatus) -> TodoItem | None:
        todo = self._todos.get(todo_id)
        if todo is None:
            return None
        todo.status = status
        todo.updated_at = _utcnow()
        return todo

    def get_session_todos(self, session_key: str) -> list[TodoItem]:
        return [t for t in self._todos.values() if t.session_key == session_key]

    def get_issue_todos(self, issue_id: str) -> list[TodoItem]:
        return [t for t in self._todos.values() if t.issue_id == issue_id]

    def get_stats(self) -> dict[str, int]:
        stats = dict.fromkeys(STATUS_EMOJI, 0)
        stats["total"] = len(self._todos)
        for todo in self._todos.values():
            stats[todo.status] += 1
        return stats

    def cleanup_completed_todos(self, now: datetime | None = None) -> int:
        """Remove TODOs completed more than 24 hours ago."""
        cutoff = (now or _utcnow()) - COMPLETED_RETENTION
        stale = [
            todo_id
            for todo_id, todo in self._todos.items()
            if todo.status == "completed" and todo.updated_at < cutoff
        ]
        for todo_id in stale:
            del self._todos[todo_id]
        return len(stale)

    @staticmethod
    def format_todo_list(todos: list[TodoItem]) -> str:
        if not todos:
            return "📋 No TODO items found."

        entries = []
        for todo in todos:
            status, priority = STATUS_EMOJI[todo.status], PRIORITY_EMOJI[todo.priority]
            entry = f"{status} {priority} **{todo.title}**\n"
            if todo.description:
                entry += f"   {todo.description}\n"
            entry += f"   _ID: {todo.id} | Created: {todo.created_at:%Y-%m-%d}_"
            entries.append(entry)
        return "\n\n".join(entries)
