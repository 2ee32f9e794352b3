"""
Chat Responder - follow-up conversation about a completed survey

The stored record (topic, answers, summary) is injected as system context
on every call; the caller supplies the prior turns. No conversation state
is held here.
"""

import logging
from typing import Sequence

from surveyflow.contracts import ChatTurn, SurveyRecord
from surveyflow.utils.helpers import validate_model_client
from surveyflow.utils.prompt_builder import build_chat_messages

logger = logging.getLogger(__name__)

NO_REPLY = "(no reply)"


class ChatResponder:
    """Answer user chat messages with survey context"""

    def __init__(self, model_client, max_tokens: int = 512, temperature: float = 0.7):
        validate_model_client(model_client, required=('generate_chat', 'is_loaded'))
        self.model_client = model_client
        self.max_tokens = max_tokens
        self.temperature = temperature

        logger.info("Chat Responder initialized")

    def reply(self, record: SurveyRecord, history: Sequence[ChatTurn], message: str) -> str:
        """
        Produce the assistant's reply.

        Args:
            record: Stored survey providing context
            history: Previous turns in this chat, oldest first
            message: New user message

        Returns:
            str: Trimmed reply text, or "(no reply)" if the model produced nothing
        """
        messages = build_chat_messages(record, history, message)
        logger.info(f"Chat turn for {record.id} ({len(history)} prior turn(s))")

        text = self.model_client.generate_chat(
            messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature
        )
        reply = (text or "").strip()
        if not reply:
            logger.warning(f"Empty chat reply for {record.id}")
            return NO_REPLY
        return reply
