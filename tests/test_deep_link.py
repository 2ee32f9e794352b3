"""
Unit tests for DeepLinkResolver
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from surveyflow.contracts import AnsweredQuestion, ChatTurn, Question, SurveyRecord, SurveySummary
from surveyflow.core.deep_link import DeepLinkResolver
from surveyflow.core.session_state import SurveySession
from surveyflow.errors import SurveyNotFound
from surveyflow.utils.session_phases import SessionPhase

SURVEY_ID = "7d3f0a52-1c4e-4b8a-9f6e-2a5b8c9d0e1f"


class MockClient:
    """Serves records from a dict"""

    def __init__(self, records=None):
        self.records = {r.id: r for r in (records or [])}
        self.requested = []

    def get_survey(self, survey_id):
        self.requested.append(survey_id)
        if survey_id not in self.records:
            raise SurveyNotFound(survey_id)
        return self.records[survey_id]


def make_record(answers=(), summary=None, chat=()):
    return SurveyRecord(
        id=SURVEY_ID,
        topic="sleep quality",
        created_at="2026-03-01T08:00:00.000Z",
        answers=tuple(answers),
        summary=summary,
        chat=tuple(chat),
    )


ANSWERS = (
    AnsweredQuestion(Question("q1", "boolean", "Nap?"), "no"),
    AnsweredQuestion(Question("q2", "scale", "Rested?"), "6"),
)


# ========================
# parse
# ========================

@pytest.mark.parametrize("identifier", [
    f"#id={SURVEY_ID}",
    f"id={SURVEY_ID}",
    SURVEY_ID,
    f"  #id={SURVEY_ID}  ",
    f"#foo=bar&id={SURVEY_ID}",
])
def test_parse_accepts_fragment_forms(identifier):
    assert DeepLinkResolver(MockClient()).parse(identifier) == SURVEY_ID


def test_parse_decodes_url_encoding():
    assert DeepLinkResolver(MockClient()).parse("#id=abc%2Ddef%2D123456") == "abc-def-123456"


@pytest.mark.parametrize("identifier", [
    "", "#", "#id=", "#id=short", "#id=0123456789", "#other=" + SURVEY_ID, None,
])
def test_parse_rejects_missing_or_short_ids(identifier):
    assert DeepLinkResolver(MockClient()).parse(identifier) is None


def test_parse_length_threshold_is_configurable():
    resolver = DeepLinkResolver(MockClient(), min_length=3)

    assert resolver.parse("#id=abcd") == "abcd"
    assert resolver.parse("#id=abc") is None


def test_requires_client_with_get_survey():
    with pytest.raises(TypeError):
        DeepLinkResolver(object())


# ========================
# resolve
# ========================

def test_resolve_with_summary_jumps_to_summarized():
    summary = SurveySummary("Restless.", ("i",), ("r",))
    chat = (ChatTurn("user", "Hi", "t1"), ChatTurn("assistant", "Hello", "t2"))
    resolver = DeepLinkResolver(MockClient([make_record(ANSWERS, summary, chat)]))

    session, needs_round = resolver.resolve(f"#id={SURVEY_ID}")

    assert not needs_round
    assert session.phase == SessionPhase.SUMMARIZED
    assert session.topic == "sleep quality"
    assert session.survey_id == SURVEY_ID
    assert session.answers == list(ANSWERS)
    assert session.summary == summary
    assert [(t.role, t.content) for t in session.chat_history] == [("user", "Hi"), ("assistant", "Hello")]
    assert session.share_fragment == f"id={SURVEY_ID}"


def test_resolve_with_answers_only_jumps_to_round_complete():
    resolver = DeepLinkResolver(MockClient([make_record(ANSWERS)]))

    session, needs_round = resolver.resolve(SURVEY_ID)

    assert session.phase == SessionPhase.ROUND_COMPLETE
    assert not needs_round


def test_resolve_with_nothing_needs_new_round():
    resolver = DeepLinkResolver(MockClient([make_record()]))

    session, needs_round = resolver.resolve(SURVEY_ID)

    assert needs_round
    assert session.topic == "sleep quality"
    assert session.survey_id == SURVEY_ID


def test_resolve_unknown_id_propagates_not_found():
    resolver = DeepLinkResolver(MockClient())

    with pytest.raises(SurveyNotFound):
        resolver.resolve(SURVEY_ID)


def test_resolve_short_id_never_calls_client():
    client = MockClient()

    with pytest.raises(ValueError):
        DeepLinkResolver(client).resolve("#id=short")

    assert client.requested == []


# ========================
# sync
# ========================

def test_sync_sets_and_clears_fragment():
    resolver = DeepLinkResolver(MockClient())
    session = SurveySession(survey_id=SURVEY_ID)

    resolver.sync(session)
    assert session.share_fragment == f"id={SURVEY_ID}"

    session.survey_id = ""
    resolver.sync(session)
    assert session.share_fragment == ""


def test_fragment_round_trips_through_parse():
    resolver = DeepLinkResolver(MockClient())
    session = SurveySession(survey_id=SURVEY_ID)

    assert resolver.parse("#" + resolver.fragment_for(session)) == SURVEY_ID
