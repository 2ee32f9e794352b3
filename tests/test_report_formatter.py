"""
Test plain-text report rendering
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from surveyflow.contracts import AnsweredQuestion, ChatTurn, Question, SurveyRecord, SurveySummary
from surveyflow.core.report_formatter import ReportFormatter


def make_record(**overrides):
    fields = dict(
        id="abc",
        topic="sleep quality",
        created_at="2026-03-01T08:30:00.000Z",
        answers=(
            AnsweredQuestion(Question("q1", "boolean", "Do you nap?"), "no"),
            AnsweredQuestion(Question("q2", "scale", "How rested are you?"), "4"),
        ),
        summary=SurveySummary("Restless sleep.", ("No naps", "Low energy"), ("Nap at noon",)),
        chat=(
            ChatTurn("user", "Any tips?", "t1"),
            ChatTurn("assistant", "Keep a schedule.", "t2"),
        ),
    )
    fields.update(overrides)
    return SurveyRecord(**fields)


def test_filename_from_topic():
    assert ReportFormatter().filename_for(make_record()) == "Survey_sleep_quality.txt"


def test_full_report_sections_in_order():
    text = ReportFormatter().render(make_record())

    headings = ["EXECUTIVE SUMMARY", "KEY INSIGHTS", "RECOMMENDATIONS",
                "DETAILED RESPONSES", "CONSULTATION LOG"]
    positions = [text.index(h) for h in headings]
    assert positions == sorted(positions)

    assert "SURVEY INSIGHTS REPORT" in text
    assert "2026-03-01 08:30 UTC" in text
    assert "Topic: sleep quality" in text
    assert "2. Low energy" in text
    assert "Q2: How rested are you?\n    A: 4" in text
    assert "You: Any tips?" in text
    assert "Assistant: Keep a schedule." in text
    assert text.endswith("\n")


def test_empty_sections_omitted():
    text = ReportFormatter().render(make_record(answers=(), summary=None, chat=()))

    assert "Topic: sleep quality" in text
    for heading in ("EXECUTIVE SUMMARY", "DETAILED RESPONSES", "CONSULTATION LOG"):
        assert heading not in text


def test_summary_without_recommendations():
    record = make_record(summary=SurveySummary("Fine.", ("One",), ()))

    text = ReportFormatter().render(record)

    assert "KEY INSIGHTS" in text
    assert "RECOMMENDATIONS" not in text
