"""
Summary Generator - survey analysis from the full answer history

Responsibilities:
- Build the analysis prompt from every recorded answer
- Call the model for a {summary, insights, recommendations} object
- Decode into a complete SurveySummary

Design principles:
- Stateless, one model call per summary
- Always returns a complete triple (empty defaults on bad output)
- Malformed and empty outputs are logged distinctly
"""

import logging
from typing import Sequence

from surveyflow.contracts import AnsweredQuestion, SurveySummary
from surveyflow.utils.helpers import validate_model_client
from surveyflow.utils.output_codec import decode_summary, OUTCOME_MALFORMED, OUTCOME_EMPTY
from surveyflow.utils.prompt_builder import build_summary_messages

logger = logging.getLogger(__name__)


class SummaryGenerator:
    """Generate survey summaries with a language model"""

    def __init__(self, model_client, max_tokens: int = 768):
        validate_model_client(model_client)
        self.model_client = model_client
        self.max_tokens = max_tokens

        logger.info("Summary Generator initialized")

    def summarize(self, answers: Sequence[AnsweredQuestion]) -> SurveySummary:
        """
        Summarize a survey.

        Args:
            answers: Every answer across all rounds, in order

        Returns:
            SurveySummary: complete triple; fields are empty when the model
            output was empty or could not be decoded
        """
        logger.info(f"Generating summary over {len(answers)} answer(s)")

        messages = build_summary_messages(answers)
        raw = self.model_client.generate_json(messages, max_tokens=self.max_tokens)

        result = decode_summary(raw)
        if result.outcome == OUTCOME_MALFORMED:
            logger.warning(f"Malformed summary output, using empty defaults: {result.error}")
        elif result.outcome == OUTCOME_EMPTY:
            logger.warning("Model returned an empty summary")
        else:
            logger.info(
                f"Summary generated: {len(result.value.insights)} insight(s), "
                f"{len(result.value.recommendations)} recommendation(s)"
            )

        return result.value
