"""Language model integrations."""

from .llm import ChatResponder, ConversationNotFoundError

__all__ = ["ChatResponder", "ConversationNotFoundError"]
