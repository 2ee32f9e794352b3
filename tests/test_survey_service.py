"""
Unit tests for SurveyService

Real SurveyStore under tmp_path, mocked model collaborators.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from unittest.mock import patch

import pytest

from surveyflow.contracts import AnsweredQuestion, ChatTurn, Question, SurveySummary
from surveyflow.core.agent_chat import AgentChat
from surveyflow.core.survey_service import SurveyService
from surveyflow.errors import SurveyNotFound
from surveyflow.persistence import SurveyStore


# ========================
# Mock Modules
# ========================

class MockQuestionGenerator:
    """Returns a fixed batch and records every call"""

    def __init__(self, batch=None):
        self.batch = batch if batch is not None else (
            Question("q1", "boolean", "Do you nap?"),
            Question("q2", "scale", "How rested are you?"),
        )
        self.calls = []

    def generate(self, topic, answers):
        self.calls.append((topic, list(answers)))
        return self.batch


class MockSummaryGenerator:
    def __init__(self, summary=None):
        self.summary = summary or SurveySummary("Restless.", ("i1",), ("r1",))
        self.calls = []

    def summarize(self, answers):
        self.calls.append(list(answers))
        return self.summary


class MockChatResponder:
    def __init__(self, reply="Sleep more."):
        self.reply_text = reply
        self.calls = []

    def reply(self, record, history, message):
        self.calls.append((record, list(history), message))
        return self.reply_text


def answer(qid, value="yes"):
    return AnsweredQuestion(Question(qid, "boolean", f"Question {qid}?"), value)


@pytest.fixture
def store(tmp_path):
    return SurveyStore(data_dir=str(tmp_path))


@pytest.fixture
def collaborators():
    return MockQuestionGenerator(), MockSummaryGenerator(), MockChatResponder()


@pytest.fixture
def service(store, collaborators):
    questions, summaries, chat = collaborators
    return SurveyService(store, questions, summaries, chat)


# ========================
# Construction
# ========================

def test_rejects_collaborator_without_interface(store):
    with pytest.raises(TypeError, match="question_generator"):
        SurveyService(store, object(), MockSummaryGenerator(), MockChatResponder())
    with pytest.raises(TypeError, match="store"):
        SurveyService(object(), MockQuestionGenerator(), MockSummaryGenerator(), MockChatResponder())


# ========================
# generate_questions
# ========================

def test_first_round_creates_record(service, store, collaborators):
    survey_id, questions = service.generate_questions("sleep quality", None, [])

    assert store.get(survey_id).topic == "sleep quality"
    assert [q.id for q in questions] == ["q1", "q2"]
    assert collaborators[0].calls == [("sleep quality", [])]


def test_next_round_appends_only_unsaved_suffix(service, store):
    survey_id, _ = service.generate_questions("sleep", None, [])

    service.generate_questions("sleep", survey_id, [answer("q1"), answer("q2")])
    service.generate_questions("sleep", survey_id, [answer("q1"), answer("q2"), answer("q3")])

    assert [a.question.id for a in store.get(survey_id).answers] == ["q1", "q2", "q3"]


def test_resending_same_answers_does_not_duplicate(service, store):
    survey_id, _ = service.generate_questions("sleep", None, [])
    history = [answer("q1"), answer("q2")]

    service.generate_questions("sleep", survey_id, history)
    service.generate_questions("sleep", survey_id, history)

    assert len(store.get(survey_id).answers) == 2


def test_generator_sees_full_history(service, collaborators):
    survey_id, _ = service.generate_questions("sleep", None, [])
    history = [answer("q1"), answer("q2", "no")]

    service.generate_questions("sleep", survey_id, history)

    assert collaborators[0].calls[-1] == ("sleep", history)


def test_blank_topic_falls_back_to_stored_topic(service, collaborators):
    survey_id, _ = service.generate_questions("sleep", None, [])

    service.generate_questions("", survey_id, [])

    assert collaborators[0].calls[-1][0] == "sleep"


def test_unknown_survey_id_raises(service):
    with pytest.raises(SurveyNotFound):
        service.generate_questions("sleep", "no-such-id", [])


def test_empty_batch_is_returned_as_empty(store):
    service = SurveyService(store, MockQuestionGenerator(batch=()), MockSummaryGenerator(), MockChatResponder())

    survey_id, questions = service.generate_questions("sleep", None, [])

    assert questions == ()
    assert store.exists(survey_id)


# ========================
# submit_survey
# ========================

def test_submit_persists_answers_and_summary(service, store, collaborators):
    survey_id, _ = service.generate_questions("sleep", None, [])
    answers = [answer("q1"), answer("q2", "no")]

    summary = service.submit_survey(survey_id, answers)

    record = store.get(survey_id)
    assert summary == collaborators[1].summary
    assert record.summary == summary
    assert list(record.answers) == answers
    assert collaborators[1].calls == [answers]


def test_submit_without_answers_uses_stored_answers(service, store, collaborators):
    survey_id, _ = service.generate_questions("sleep", None, [])
    service.generate_questions("sleep", survey_id, [answer("q1")])

    service.submit_survey(survey_id, [])

    assert collaborators[1].calls == [[answer("q1")]]


def test_submit_summary_returned_even_if_save_fails(service, store, collaborators):
    survey_id, _ = service.generate_questions("sleep", None, [])

    with patch.object(store, 'save_summary', side_effect=OSError("disk full")):
        summary = service.submit_survey(survey_id, [answer("q1")])

    assert summary == collaborators[1].summary
    assert store.get(survey_id).summary is None


def test_submit_unknown_survey_still_summarizes(service, collaborators):
    summary = service.submit_survey("no-such-id", [answer("q1")])

    assert summary == collaborators[1].summary


# ========================
# chat
# ========================

def test_chat_appends_user_and_assistant_turns(service, store, collaborators):
    survey_id, _ = service.generate_questions("sleep", None, [])

    reply = service.chat(survey_id, "What should I do?", [])

    assert reply == "Sleep more."
    chat = store.get(survey_id).chat
    assert [(t.role, t.content) for t in chat] == [
        ("user", "What should I do?"),
        ("assistant", "Sleep more."),
    ]
    assert chat[0].ts == chat[1].ts


def test_chat_passes_stored_record_and_history(service, collaborators):
    survey_id, _ = service.generate_questions("sleep", None, [])
    history = [ChatTurn("user", "Hi", ""), ChatTurn("assistant", "Hello", "")]

    service.chat(survey_id, "Why?", history)

    record, sent_history, message = collaborators[2].calls[0]
    assert record.id == survey_id
    assert sent_history == history
    assert message == "Why?"


def test_chat_unknown_survey_raises(service):
    with pytest.raises(SurveyNotFound):
        service.chat("no-such-id", "hi", [])


def test_chat_reply_returned_even_if_save_fails(service, store):
    survey_id, _ = service.generate_questions("sleep", None, [])

    with patch.object(store, 'append_chat_turns', side_effect=OSError("read-only")):
        assert service.chat(survey_id, "hi", []) == "Sleep more."


# ========================
# Lookups
# ========================

def test_get_list_count(service):
    survey_id, _ = service.generate_questions("sleep", None, [])

    assert service.get_survey(survey_id).id == survey_id
    assert [s.id for s in service.list_surveys()] == [survey_id]
    assert service.count() == 1


def test_get_unknown_raises(service):
    with pytest.raises(SurveyNotFound):
        service.get_survey("nope")


def test_build_report(service):
    survey_id, _ = service.generate_questions("sleep quality", None, [])
    service.submit_survey(survey_id, [answer("q1")])

    filename, text = service.build_report(survey_id)

    assert filename == "Survey_sleep_quality.txt"
    assert "Topic: sleep quality" in text
    assert "EXECUTIVE SUMMARY" in text


# ========================
# Agent chat
# ========================

class MockChatModel:
    """Echoes the number of messages it was sent"""

    def __init__(self):
        self.calls = []

    def is_loaded(self):
        return True

    def generate_chat(self, messages, max_tokens=None, temperature=0.7, return_diagnostics=False):
        self.calls.append([m['content'] for m in messages])
        return {'text': f"seen {len(messages)}", 'diagnostics': {'total_tokens': 3}}


@pytest.fixture
def agent_service(store, collaborators):
    questions, summaries, chat = collaborators
    model = MockChatModel()
    return SurveyService(store, questions, summaries, chat, agent_chat=AgentChat(model)), model


def test_agent_chat_context_persists_between_calls(agent_service):
    service, model = agent_service

    service.agent_chat_turn("Hi")
    output = service.agent_chat_turn("Still there?")

    assert model.calls[1] == ["Hi", "seen 1", "Still there?"]
    assert output['message']['content'] == "seen 3"


def test_clear_agent_session_resets_context(agent_service):
    service, model = agent_service
    service.agent_chat_turn("Hi")

    assert service.clear_agent_session() is True
    service.agent_chat_turn("Fresh start")

    assert model.calls[-1] == ["Fresh start"]


def test_agent_sessions_are_isolated_by_key(agent_service):
    service, model = agent_service

    service.agent_chat_turn("From A", session_key="a")
    service.agent_chat_turn("From B", session_key="b")

    assert model.calls[-1] == ["From B"]


def test_failed_agent_turn_keeps_previous_context(agent_service):
    service, model = agent_service
    service.agent_chat_turn("Hi")

    with patch.object(model, 'generate_chat', side_effect=RuntimeError("OOM")):
        with pytest.raises(RuntimeError):
            service.agent_chat_turn("Lost")

    service.agent_chat_turn("Again")
    assert model.calls[-1] == ["Hi", "seen 1", "Again"]


def test_agent_chat_without_collaborator_raises(service):
    with pytest.raises(RuntimeError, match="not configured"):
        service.agent_chat_turn("Hi")


def test_rejects_agent_chat_without_interface(store, collaborators):
    questions, summaries, chat = collaborators

    with pytest.raises(TypeError, match="agent_chat"):
        SurveyService(store, questions, summaries, chat, agent_chat=object())
