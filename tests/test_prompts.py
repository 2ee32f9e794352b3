"""
Test prompt construction (PromptBuilder functions + PromptFormatter)

No model is loaded; tokenizers are mocked.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
from unittest.mock import Mock

import pytest

from surveyflow.contracts import AnsweredQuestion, ChatTurn, Question, SurveyRecord, SurveySummary
from surveyflow.utils.prompt_builder import (
    FOLLOW_UP_QUESTIONS_SYSTEM,
    INITIAL_QUESTIONS_SYSTEM,
    build_chat_messages,
    build_chat_system_prompt,
    build_question_messages,
    build_summary_messages,
    format_answer_lines,
)
from surveyflow.utils.prompt_formatter import PromptFormatter


ANSWERS = [
    AnsweredQuestion(Question("q1", "boolean", "Do you nap?"), "no"),
    AnsweredQuestion(Question("q2", "scale", "How rested are you?"), "3"),
]


def make_record(summary=None, answers=ANSWERS):
    return SurveyRecord(
        id="abc",
        topic="sleep quality",
        created_at="2026-03-01T08:00:00.000Z",
        answers=tuple(answers),
        summary=summary,
    )


# ========================
# Prompt builder
# ========================

def test_format_answer_lines_numbered_in_order():
    text = format_answer_lines(ANSWERS)

    assert text.splitlines() == [
        "1. [boolean] Do you nap? Answer: no",
        "2. [scale] How rested are you? Answer: 3",
    ]


def test_initial_round_prompt():
    messages = build_question_messages("sleep quality", [])

    assert messages[0] == {'role': 'system', 'content': INITIAL_QUESTIONS_SYSTEM}
    assert "Topic: sleep quality" in messages[1]['content']
    assert "Previously asked" not in messages[1]['content']


def test_follow_up_prompt_lists_every_prior_question():
    messages = build_question_messages("sleep quality", ANSWERS)

    assert messages[0]['content'] == FOLLOW_UP_QUESTIONS_SYSTEM
    user = messages[1]['content']
    assert "do not ask these again" in user
    assert "Do you nap? Answer: no" in user
    assert "How rested are you? Answer: 3" in user


def test_summary_prompt_carries_answers_as_json():
    messages = build_summary_messages(ANSWERS)

    payload = json.loads(messages[1]['content'])
    assert [item['answer'] for item in payload] == ["no", "3"]
    assert payload[0]['question']['label'] == "Do you nap?"


def test_chat_system_prompt_with_summary():
    record = make_record(SurveySummary("Poor rest.", ("Few naps",), ("Nap more",)))

    prompt = build_chat_system_prompt(record)

    assert 'survey on "sleep quality"' in prompt
    assert "Date: 2026-03-01T08:00:00.000Z" in prompt
    assert "1. [boolean] Do you nap? -> no" in prompt
    assert "Summary: Poor rest." in prompt
    assert "- Few naps" in prompt
    assert "- Nap more" in prompt


def test_chat_system_prompt_placeholders():
    prompt = build_chat_system_prompt(make_record(answers=[]))

    assert "(No answers recorded)" in prompt
    assert "(No summary generated yet)" in prompt


def test_chat_messages_order():
    history = [
        ChatTurn("user", "Why am I tired?", "t1"),
        ChatTurn("assistant", "Late nights.", "t2"),
    ]

    messages = build_chat_messages(make_record(), history, "What should I change?")

    assert [m['role'] for m in messages] == ['system', 'user', 'assistant', 'user']
    assert messages[-1]['content'] == "What should I change?"
    # history is sent once, new message appended once
    assert sum(m['content'] == "What should I change?" for m in messages) == 1


# ========================
# Prompt formatter
# ========================

def test_family_detection():
    assert PromptFormatter("Qwen/Qwen2.5-3B-Instruct").model_family == "qwen"
    assert PromptFormatter("meta-llama/Meta-Llama-3-8B-Instruct").model_family == "llama-3"
    assert PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2").model_family == "mistral"
    assert PromptFormatter("some/unknown-model").model_family == "generic"


def test_chatml_manual_format():
    formatter = PromptFormatter("Qwen/Qwen2.5-3B-Instruct")

    prompt = formatter.format_messages([
        {'role': 'system', 'content': 'Be brief.'},
        {'role': 'user', 'content': 'Hi'},
    ])

    assert prompt == (
        "<|im_start|>system\nBe brief.<|im_end|>\n"
        "<|im_start|>user\nHi<|im_end|>\n"
        "<|im_start|>assistant\n"
    )


def test_inst_format_folds_system_into_first_user_turn():
    formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2")

    prompt = formatter.format_messages([
        {'role': 'system', 'content': 'Be brief.'},
        {'role': 'user', 'content': 'Hi'},
        {'role': 'assistant', 'content': 'Hello'},
        {'role': 'user', 'content': 'Bye'},
    ])

    assert prompt == "[INST] Be brief.\n\nHi [/INST] Hello</s>[INST] Bye [/INST]"


def test_tokenizer_template_preferred():
    tokenizer = Mock()
    tokenizer.chat_template = "{{ messages }}"
    tokenizer.apply_chat_template.return_value = "TEMPLATED"

    formatter = PromptFormatter("Qwen/Qwen2.5-3B-Instruct", tokenizer)
    messages = [{'role': 'user', 'content': 'Hi'}]

    assert formatter.format_messages(messages) == "TEMPLATED"
    tokenizer.apply_chat_template.assert_called_once_with(
        messages, tokenize=False, add_generation_prompt=True
    )
    assert formatter.get_info()['formatting_method'] == "tokenizer_template"


def test_tokenizer_template_failure_falls_back_to_manual():
    tokenizer = Mock()
    tokenizer.chat_template = "{{ broken }}"
    tokenizer.apply_chat_template.side_effect = RuntimeError("template error")

    formatter = PromptFormatter("Qwen/Qwen2.5-3B-Instruct", tokenizer)

    assert formatter.format_messages([{'role': 'user', 'content': 'Hi'}]).startswith("<|im_start|>user")


def test_unknown_family_renders_transcript():
    formatter = PromptFormatter("some/unknown-model")

    prompt = formatter.format_messages([{'role': 'user', 'content': 'Hi'}])

    assert prompt == "User: Hi\n\nAssistant:"
    assert formatter.get_info()['formatting_method'] == "transcript"


def test_empty_messages_rejected():
    with pytest.raises(ValueError):
        PromptFormatter("Qwen/Qwen2.5-3B-Instruct").format_messages([])
