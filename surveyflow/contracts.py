"""
Data contracts for the survey flow.

Immutable records shared by the store, the service layer, the HTTP API and
the session machine. Wire format is camelCase JSON; Python attributes are
snake_case.

Design principles:
- Frozen dataclasses (immutable after creation)
- Sequences are tuples, never lists
- from_json() checks shape and enum domains, nothing more
- No dependencies on other modules

Contents:
- Question: one issued survey question
- AnsweredQuestion: (question, answer text) pair
- SurveySummary: complete summary/insights/recommendations triple
- ChatTurn: one chat message with role and timestamp
- SurveyRecord: the unit of persistence
- SurveyListing: id/topic/createdAt projection used by list()

Usage:
    from surveyflow.contracts import Question, SurveyRecord
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

QUESTION_TYPE_BOOLEAN = "boolean"
QUESTION_TYPE_SCALE = "scale"
QUESTION_TYPES = (QUESTION_TYPE_BOOLEAN, QUESTION_TYPE_SCALE)

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
CHAT_ROLES = (ROLE_USER, ROLE_ASSISTANT)

BOOLEAN_ANSWERS = ("yes", "no")
SCALE_MIN = 0
SCALE_MAX = 10


def _require(data: Dict[str, Any], key: str, kind: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{kind} must be a JSON object, got {type(data).__name__}")
    if key not in data or data[key] is None:
        raise ValueError(f"{kind} missing required field '{key}'")
    return data[key]


def _string_tuple(values: Any, kind: str, key: str) -> Tuple[str, ...]:
    if values is None:
        return ()
    if not isinstance(values, (list, tuple)):
        raise ValueError(f"{kind}.{key} must be a list")
    return tuple(str(v) for v in values)


@dataclass(frozen=True)
class Question:
    """
    Immutable question issued by the Question Generator.

    Attributes:
        id: Question identifier as issued by the generator (e.g. 'q1').
            Not guaranteed unique across rounds.
        type: 'boolean' (yes/no) or 'scale' (0-10).
        label: Question text shown to the respondent.
        min_label: Optional caption for the low end of a scale.
        max_label: Optional caption for the high end of a scale.
    """
    id: str
    type: str
    label: str
    min_label: Optional[str] = None
    max_label: Optional[str] = None

    def to_json(self) -> dict:
        return {
            'id': self.id,
            'type': self.type,
            'label': self.label,
            'minLabel': self.min_label,
            'maxLabel': self.max_label,
        }

    @staticmethod
    def from_json(data: dict) -> "Question":
        question_type = _require(data, 'type', 'Question')
        if question_type not in QUESTION_TYPES:
            raise ValueError(
                f"Question.type must be one of {QUESTION_TYPES}, got {question_type!r}"
            )
        return Question(
            id=str(_require(data, 'id', 'Question')),
            type=question_type,
            label=str(_require(data, 'label', 'Question')),
            min_label=data.get('minLabel'),
            max_label=data.get('maxLabel'),
        )


@dataclass(frozen=True)
class AnsweredQuestion:
    """A question together with the respondent's answer text."""
    question: Question
    answer: str

    def to_json(self) -> dict:
        return {'question': self.question.to_json(), 'answer': self.answer}

    @staticmethod
    def from_json(data: dict) -> "AnsweredQuestion":
        return AnsweredQuestion(
            question=Question.from_json(_require(data, 'question', 'AnsweredQuestion')),
            answer=str(_require(data, 'answer', 'AnsweredQuestion')),
        )


@dataclass(frozen=True)
class SurveySummary:
    """
    Model-generated analysis of a survey.

    Always a complete triple. A summary is replaced as a whole, never merged.
    """
    summary: str
    insights: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    def to_json(self) -> dict:
        return {
            'summary': self.summary,
            'insights': list(self.insights),
            'recommendations': list(self.recommendations),
        }

    @staticmethod
    def from_json(data: dict) -> "SurveySummary":
        return SurveySummary(
            summary=str(_require(data, 'summary', 'SurveySummary')),
            insights=_string_tuple(data.get('insights'), 'SurveySummary', 'insights'),
            recommendations=_string_tuple(
                data.get('recommendations'), 'SurveySummary', 'recommendations'
            ),
        )


@dataclass(frozen=True)
class ChatTurn:
    """One chat message. ts is an ISO-8601 UTC timestamp."""
    role: str
    content: str
    ts: str

    def to_json(self) -> dict:
        return {'role': self.role, 'content': self.content, 'ts': self.ts}

    @staticmethod
    def from_json(data: dict) -> "ChatTurn":
        role = _require(data, 'role', 'ChatTurn')
        if role not in CHAT_ROLES:
            raise ValueError(f"ChatTurn.role must be one of {CHAT_ROLES}, got {role!r}")
        return ChatTurn(
            role=role,
            content=str(_require(data, 'content', 'ChatTurn')),
            ts=str(data.get('ts') or ''),
        )


@dataclass(frozen=True)
class SurveyListing:
    """Projection of a SurveyRecord used by history listings."""
    id: str
    topic: str
    created_at: str

    def to_json(self) -> dict:
        return {'id': self.id, 'topic': self.topic, 'createdAt': self.created_at}

    @staticmethod
    def from_json(data: dict) -> "SurveyListing":
        return SurveyListing(
            id=str(_require(data, 'id', 'SurveyListing')),
            topic=str(_require(data, 'topic', 'SurveyListing')),
            created_at=str(_require(data, 'createdAt', 'SurveyListing')),
        )


@dataclass(frozen=True)
class SurveyRecord:
    """
    The unit of persistence.

    Lifecycle:
    1. Created by: SurveyStore.create() (id, topic, created_at fixed here)
    2. Grown by: append_answers(), append_chat_turns() (append-only)
    3. Summarized by: save_summary() (summary replaced wholesale)
    4. Never deleted

    Mutating store operations return new SurveyRecord values via
    with_answers() / with_summary() / with_chat(); the record itself
    never changes.
    """
    id: str
    topic: str
    created_at: str
    answers: Tuple[AnsweredQuestion, ...] = ()
    summary: Optional[SurveySummary] = None
    chat: Tuple[ChatTurn, ...] = field(default_factory=tuple)

    def with_answers(self, answers) -> "SurveyRecord":
        return replace(self, answers=self.answers + tuple(answers))

    def with_summary(self, summary: SurveySummary) -> "SurveyRecord":
        return replace(self, summary=summary)

    def with_chat(self, turns) -> "SurveyRecord":
        return replace(self, chat=self.chat + tuple(turns))

    def listing(self) -> SurveyListing:
        return SurveyListing(id=self.id, topic=self.topic, created_at=self.created_at)

    def to_json(self) -> dict:
        return {
            'id': self.id,
            'topic': self.topic,
            'createdAt': self.created_at,
            'answers': [a.to_json() for a in self.answers],
            'summary': self.summary.to_json() if self.summary else None,
            'chat': [t.to_json() for t in self.chat],
        }

    @staticmethod
    def from_json(data: dict) -> "SurveyRecord":
        summary = data.get('summary') if isinstance(data, dict) else None
        return SurveyRecord(
            id=str(_require(data, 'id', 'SurveyRecord')),
            topic=str(_require(data, 'topic', 'SurveyRecord')),
            created_at=str(_require(data, 'createdAt', 'SurveyRecord')),
            answers=tuple(AnsweredQuestion.from_json(a) for a in data.get('answers') or []),
            summary=SurveySummary.from_json(summary) if summary else None,
            chat=tuple(ChatTurn.from_json(t) for t in data.get('chat') or []),
        )


def answers_from_json(items) -> Tuple[AnsweredQuestion, ...]:
    """Decode a JSON list of answered questions (None → empty)."""
    if items is None:
        return ()
    if not isinstance(items, list):
        raise ValueError("answers must be a list")
    return tuple(AnsweredQuestion.from_json(item) for item in items)


def answers_to_json(answers) -> list:
    return [a.to_json() for a in answers]
