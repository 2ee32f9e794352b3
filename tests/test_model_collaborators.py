"""
Unit tests for the model-backed collaborators:
QuestionGenerator, SummaryGenerator, ChatResponder

Uses a mock model client (no model is loaded).
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest

from surveyflow.contracts import AnsweredQuestion, ChatTurn, Question, SurveyRecord, SurveySummary
from surveyflow.core.chat_responder import NO_REPLY, ChatResponder
from surveyflow.core.question_generator import QuestionGenerator
from surveyflow.core.summary_generator import SummaryGenerator
from surveyflow.utils.output_codec import OUTCOME_EMPTY, OUTCOME_MALFORMED, OUTCOME_SUCCESS


class MockModelClient:
    """Mock model client returning canned text"""

    def __init__(self, json_response="{}", chat_response="", loaded=True):
        self.json_response = json_response
        self.chat_response = chat_response
        self.loaded = loaded
        self.calls = []

    def is_loaded(self):
        return self.loaded

    def generate_json(self, messages, max_tokens=None, temperature=0.0):
        self.calls.append(('json', messages, max_tokens))
        return self.json_response

    def generate_chat(self, messages, max_tokens=None, temperature=0.7):
        self.calls.append(('chat', messages, max_tokens))
        return self.chat_response


PRIOR = [AnsweredQuestion(Question("q1", "boolean", "Do you nap?"), "no")]

BATCH = json.dumps({"questions": [
    {"id": "q1", "type": "boolean", "label": "Do you wake at night?"},
    {"id": "q2", "type": "scale", "label": "Rate your mornings", "minLabel": "Awful", "maxLabel": "Great"},
]})


# ========================
# Construction
# ========================

def test_generators_reject_client_without_interface():
    with pytest.raises(TypeError, match="generate_json"):
        QuestionGenerator(object())
    with pytest.raises(TypeError, match="generate_chat"):
        ChatResponder(object())


def test_generators_reject_unloaded_client():
    with pytest.raises(RuntimeError):
        SummaryGenerator(MockModelClient(loaded=False))


# ========================
# QuestionGenerator
# ========================

def test_question_generator_decodes_batch():
    client = MockModelClient(json_response=BATCH)
    generator = QuestionGenerator(client, max_tokens=321)

    questions = generator.generate("sleep", [])

    assert [q.label for q in questions] == ["Do you wake at night?", "Rate your mornings"]
    assert client.calls[0][2] == 321


def test_question_generator_follow_up_prompt_used_with_history():
    client = MockModelClient(json_response=BATCH)

    QuestionGenerator(client).generate("sleep", PRIOR)

    user_prompt = client.calls[0][1][1]['content']
    assert "Do you nap? Answer: no" in user_prompt


def test_question_generator_malformed_output_degrades_to_empty():
    generator = QuestionGenerator(MockModelClient(json_response="Sorry, I can't."))

    result = generator.generate_detailed("sleep", [])

    assert result.outcome == OUTCOME_MALFORMED
    assert generator.generate("sleep", []) == ()


def test_question_generator_empty_batch_outcome():
    generator = QuestionGenerator(MockModelClient(json_response='{"questions": []}'))

    assert generator.generate_detailed("sleep", []).outcome == OUTCOME_EMPTY


def test_question_generator_success_outcome():
    generator = QuestionGenerator(MockModelClient(json_response=BATCH))

    assert generator.generate_detailed("sleep", []).outcome == OUTCOME_SUCCESS


# ========================
# SummaryGenerator
# ========================

def test_summary_generator_returns_triple():
    client = MockModelClient(json_response=json.dumps({
        "summary": "Restless sleep.",
        "insights": ["No naps"],
        "recommendations": ["Try a wind-down routine"],
    }))

    summary = SummaryGenerator(client).summarize(PRIOR)

    assert summary == SurveySummary("Restless sleep.", ("No naps",), ("Try a wind-down routine",))
    assert json.loads(client.calls[0][1][1]['content'])[0]['answer'] == "no"


def test_summary_generator_bad_output_gives_empty_triple():
    summary = SummaryGenerator(MockModelClient(json_response="not json")).summarize(PRIOR)

    assert summary == SurveySummary("", (), ())


# ========================
# ChatResponder
# ========================

RECORD = SurveyRecord(
    id="abc",
    topic="sleep",
    created_at="2026-03-01T08:00:00.000Z",
    answers=tuple(PRIOR),
    summary=SurveySummary("Restless sleep."),
)


def test_chat_responder_strips_reply():
    client = MockModelClient(chat_response="  Try going to bed earlier.\n")

    reply = ChatResponder(client).reply(RECORD, [], "Any tips?")

    assert reply == "Try going to bed earlier."


def test_chat_responder_empty_reply_placeholder():
    client = MockModelClient(chat_response="   ")

    assert ChatResponder(client).reply(RECORD, [], "Any tips?") == NO_REPLY


def test_chat_responder_sends_context_history_and_message():
    client = MockModelClient(chat_response="ok")
    history = [ChatTurn("user", "Hi", "t1"), ChatTurn("assistant", "Hello", "t2")]

    ChatResponder(client, max_tokens=100).reply(RECORD, history, "Why?")

    kind, messages, max_tokens = client.calls[0]
    assert kind == 'chat'
    assert max_tokens == 100
    assert "Restless sleep." in messages[0]['content']
    assert [m['content'] for m in messages[1:]] == ["Hi", "Hello", "Why?"]
