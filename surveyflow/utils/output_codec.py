"""
Output Codec - decode structured model output

Responsibilities:
- Repair common JSON formatting issues in raw model text
- Decode question batches and summaries into contracts
- Classify each decode as success / empty / malformed

Design principles:
- Explicit outcome contract (never conflate "nothing" with "garbage")
- Item-level tolerance: one bad question does not sink the batch
- No model access (pure text in, contracts out)
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from surveyflow.contracts import Question, SurveySummary
from surveyflow.errors import MalformedResult

logger = logging.getLogger(__name__)

# Valid outcome values
OUTCOME_SUCCESS = "success"
OUTCOME_EMPTY = "empty"
OUTCOME_MALFORMED = "malformed"

VALID_OUTCOMES = {OUTCOME_SUCCESS, OUTCOME_EMPTY, OUTCOME_MALFORMED}


@dataclass(frozen=True)
class DecodeResult:
    """
    Result of decoding one model response.

    Attributes:
        outcome: success | empty | malformed
        value: Decoded value. Always usable: an empty tuple / empty
               summary when outcome is not success.
        dropped: Number of items discarded as malformed
        error: Description of the decode failure, if any
    """
    outcome: str
    value: Any
    dropped: int = 0
    error: str = ""
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.outcome not in VALID_OUTCOMES:
            raise ValueError(f"Invalid outcome: {self.outcome!r}")

    @property
    def ok(self) -> bool:
        return self.outcome == OUTCOME_SUCCESS


EMPTY_SUMMARY = SurveySummary(summary="", insights=(), recommendations=())


def repair_json(text: str) -> str:
    """
    Attempt to repair common JSON formatting issues

    Only handles dict output (not arrays). Strips markdown fences and
    surrounding prose, then balances braces.

    Args:
        text: Raw LLM output

    Returns:
        str: Cleaned JSON string (may still fail to parse)
    """
    text = (text or "").strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]

    text = text.strip()

    first_brace = text.find('{')
    last_brace = text.rfind('}')

    if first_brace == -1:
        logger.warning("No braces found in JSON repair")
        return text

    if last_brace < first_brace:
        text = text[first_brace:]
    else:
        text = text[first_brace:last_brace + 1]

    # Naive balancing: braces inside strings are counted too
    open_count = text.count('{')
    close_count = text.count('}')

    if open_count > close_count:
        missing = open_count - close_count
        text += '}' * missing
        logger.debug(f"Added {missing} closing braces")

    elif close_count > open_count:
        diff = close_count - open_count
        for _ in range(diff):
            last_close = text.rfind('}')
            if last_close != -1:
                text = text[:last_close] + text[last_close + 1:]
        logger.debug(f"Removed {diff} extra closing braces")

    return text


def _load_object(raw_text: str) -> Dict[str, Any]:
    try:
        data = json.loads(repair_json(raw_text))
    except json.JSONDecodeError as e:
        raise MalformedResult(f"Model output is not valid JSON: {e}", raw_text) from e
    if not isinstance(data, dict):
        raise MalformedResult(
            f"Model output must be a JSON object, got {type(data).__name__}", raw_text
        )
    return data


def decode_questions(raw_text: str) -> DecodeResult:
    """
    Decode a {"questions": [...]} response into Question contracts.

    Returns:
        DecodeResult with value = tuple of Question
    """
    try:
        data = _load_object(raw_text)
    except MalformedResult as e:
        logger.warning(f"Question batch malformed: {e}")
        return DecodeResult(outcome=OUTCOME_MALFORMED, value=(), error=str(e))

    items = data.get('questions')
    if items is None:
        return DecodeResult(
            outcome=OUTCOME_MALFORMED, value=(), error="Missing 'questions' key"
        )
    if not isinstance(items, list):
        return DecodeResult(
            outcome=OUTCOME_MALFORMED, value=(), error="'questions' is not a list"
        )

    questions: List[Question] = []
    warnings = []
    for index, item in enumerate(items):
        if isinstance(item, dict) and not item.get('id'):
            item = {**item, 'id': f"q{index + 1}"}
        try:
            questions.append(Question.from_json(item))
        except ValueError as e:
            warnings.append(f"item {index}: {e}")

    dropped = len(items) - len(questions)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed question(s): {warnings}")

    if not questions:
        outcome = OUTCOME_MALFORMED if dropped else OUTCOME_EMPTY
        return DecodeResult(
            outcome=outcome, value=(), dropped=dropped, warnings=tuple(warnings)
        )

    return DecodeResult(
        outcome=OUTCOME_SUCCESS,
        value=tuple(questions),
        dropped=dropped,
        warnings=tuple(warnings),
    )


def decode_summary(raw_text: str) -> DecodeResult:
    """
    Decode a {"summary", "insights", "recommendations"} response.

    A response with an empty summary string and no insights or
    recommendations is 'empty'. Missing list fields default to ().

    Returns:
        DecodeResult with value = SurveySummary
    """
    try:
        data = _load_object(raw_text)
    except MalformedResult as e:
        logger.warning(f"Summary malformed: {e}")
        return DecodeResult(outcome=OUTCOME_MALFORMED, value=EMPTY_SUMMARY, error=str(e))

    if not isinstance(data.get('summary') or '', str):
        return DecodeResult(
            outcome=OUTCOME_MALFORMED, value=EMPTY_SUMMARY, error="'summary' is not a string"
        )

    try:
        summary = SurveySummary.from_json({
            'summary': data.get('summary') or '',
            'insights': data.get('insights'),
            'recommendations': data.get('recommendations'),
        })
    except ValueError as e:
        logger.warning(f"Summary malformed: {e}")
        return DecodeResult(outcome=OUTCOME_MALFORMED, value=EMPTY_SUMMARY, error=str(e))

    if not summary.summary and not summary.insights and not summary.recommendations:
        return DecodeResult(outcome=OUTCOME_EMPTY, value=EMPTY_SUMMARY)

    return DecodeResult(outcome=OUTCOME_SUCCESS, value=summary)
