"""
Question Generator - next question batch for a survey round

Responsibilities:
- Build the round prompt from topic + cumulative answer history
- Call the model for structured JSON output
- Decode into Question contracts via the output codec

Design principles:
- Stateless (safe to cache and share between requests)
- Degrade to an empty batch on malformed output, but log it as malformed
- Topic deduplication is an instruction to the model, not enforced here
"""

import logging
from typing import Sequence, Tuple

from surveyflow.contracts import AnsweredQuestion, Question
from surveyflow.utils.helpers import validate_model_client
from surveyflow.utils.output_codec import decode_questions, DecodeResult, OUTCOME_MALFORMED
from surveyflow.utils.prompt_builder import build_question_messages

logger = logging.getLogger(__name__)


class QuestionGenerator:
    """Generate survey question batches with a language model"""

    def __init__(self, model_client, max_tokens: int = 768):
        """
        Args:
            model_client: Client with generate_json(messages, ...) and is_loaded()
            max_tokens: Generation budget for one batch

        Raises:
            TypeError: If model_client lacks the required interface
            RuntimeError: If the model is not loaded
        """
        validate_model_client(model_client)
        self.model_client = model_client
        self.max_tokens = max_tokens

        logger.info("Question Generator initialized")

    def generate(self, topic: str, answers: Sequence[AnsweredQuestion]) -> Tuple[Question, ...]:
        """
        Generate the next batch of questions.

        Args:
            topic: Survey topic
            answers: Every answer recorded so far, all rounds, in order

        Returns:
            tuple of Question (empty when the model produced nothing usable)
        """
        return self.generate_detailed(topic, answers).value

    def generate_detailed(self, topic: str, answers: Sequence[AnsweredQuestion]) -> DecodeResult:
        """Same as generate() but returns the full decode outcome"""
        round_kind = "follow-up" if answers else "initial"
        logger.info(
            f"Generating {round_kind} questions for {topic!r} "
            f"({len(answers)} prior answer(s))"
        )

        messages = build_question_messages(topic, answers)
        raw = self.model_client.generate_json(messages, max_tokens=self.max_tokens)

        result = decode_questions(raw)
        if result.outcome == OUTCOME_MALFORMED:
            logger.warning(f"Malformed question batch, returning none: {result.error}")
        elif not result.ok:
            logger.warning("Model returned an empty question batch")
        else:
            logger.info(f"Generated {len(result.value)} question(s)")

        return result
