from .agent_session import AgentSessionEventHandler
from .base import EventHandler, HandlerResult, Job, Schedule
from .comment import CommentHandler
from .inbox import InboxNotificationHandler
from .notification import AppUserNotificationHandler
from .permission import PermissionChangeHandler

__all__ = [
    "AgentSessionEventHandler",
    "AppUserNotificationHandler",
    "CommentHandler",
    "EventHandler",
    "HandlerResult",
    "InboxNotificationHandler",
    "Job",
    "PermissionChangeHandler",
    "Schedule",
]
