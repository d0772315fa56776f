"""Text generation backed by Anthropic chat models via LangChain.

Single-shot generation fails open to a canned reply. Conversations keep their
message history in memory so follow-up comments in a session have context.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from ..config import DEFAULT_MODEL
from ..prompt import (
    CONVERSATION_PROMPT,
    FALLBACK_RESPONSE,
    SYSTEM_PROMPT,
    construct_linear_prompt,
)

if TYPE_CHECKING:
    from langchain_core.language_models import BaseChatModel

    from ..sessions import Session, SessionContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1_024


class ConversationNotFoundError(LookupError):
    """Raised when a message is sent to an unknown conversation."""


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content.strip()
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts).strip()


class ChatResponder:
    """TextGenerator implementation used by the webhook pipeline."""

    def __init__(
        self,
        agent_name: str,
        api_key: str = "",
        model: str = DEFAULT_MODEL,
        sessions_enabled: bool = True,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        chat_model: BaseChatModel | None = None,
    ) -> None:
        self.agent_name = agent_name
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self._sessions_enabled = sessions_enabled
        self._chat_model = chat_model
        self._conversations: dict[str, list[BaseMessage]] = {}

        if not self.configured:
            logger.warning("ANTHROPIC_API_KEY not configured, using fallback responses")

    @property
    def configured(self) -> bool:
        return self._chat_model is not None or bool(self.api_key)

    @property
    def sessions_enabled(self) -> bool:
        return self._sessions_enabled and self.configured

    def _get_chat_model(self) -> BaseChatModel:
        if self._chat_model is None:
            self._chat_model = ChatAnthropic(
                model=self.model, max_tokens=self.max_tokens, api_key=self.api_key
            )
        return self._chat_model

    async def _invoke(self, messages: list[BaseMessage]) -> str:
        response = await self._get_chat_model().ainvoke(messages)
        text = _message_text(response)
        if not text:
            msg = "No content received from the model"
            raise ValueError(msg)
        return text

    def fallback_response(self) -> str:
        return FALLBACK_RESPONSE.format(agent_name=self.agent_name)

    async def generate(self, prompt: str) -> str:
        if not self.configured:
            return self.fallback_response()

        messages: list[BaseMessage] = [
            SystemMessage(content=SYSTEM_PROMPT.format(agent_name=self.agent_name)),
            HumanMessage(content=prompt),
        ]
        try:
            return await self._invoke(messages)
        except Exception:
            logger.exception("Text generation failed, using fallback response")
            return self.fallback_response()

    async def generate_linear_response(
        self, comment: str, issue_title: str, issue_identifier: str
    ) -> str:
        logger.info("Generating response for issue %s", issue_identifier)
        prompt = construct_linear_prompt(self.agent_name, comment, issue_title, issue_identifier)
        return await self.generate(prompt)

    async def create_conversation(self, context: SessionContext) -> str:
        """Start a conversation seeded with the issue context.

        Raises:
            RuntimeError: If conversations are disabled or no model is configured.
        """
        if not self.sessions_enabled:
            msg = "Conversations are not enabled"
            raise RuntimeError(msg)

        conversation_id = f"conv_{uuid.uuid4().hex}"
        system = SYSTEM_PROMPT.format(agent_name=self.agent_name) + CONVERSATION_PROMPT.format(
            user_name=context.user_name or "a teammate",
            issue_title=context.issue_title or context.issue_id,
            issue_description=context.issue_description,
        )
        self._conversations[conversation_id] = [SystemMessage(content=system)]
        logger.info("Created conversation %s for issue %s", conversation_id, context.issue_id)
        return conversation_id

    async def send_message(self, conversation_id: str, message: str) -> str:
        """Append a user message to a conversation and return the model's reply.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
        """
        history = self._conversations.get(conversation_id)
        if history is None:
            raise ConversationNotFoundError(conversation_id)

        history.append(HumanMessage(content=message))
        try:
            reply = await self._invoke(history)
        except Exception:
            history.pop()
            raise
        history.append(AIMessage(content=reply))
        return reply

    async def generate_session_response(self, session: Session, message: str) -> str:
        if not session.conversation_id:
            return await self.generate_linear_response(
                message, session.context.issue_title, session.context.issue_identifier
            )
        try:
            return await self.send_message(session.conversation_id, message)
        except Exception:
            logger.exception(
                "Conversation %s failed, falling back to single-shot response",
                session.conversation_id,
            )
            return await self.generate_linear_response(
                message, session.context.issue_title, session.context.issue_identifier
            )

    def end_conversation(self, conversation_id: str) -> None:
        if self._conversations.pop(conversation_id, None) is not None:
            logger.info("Ended conversation %s", conversation_id)
