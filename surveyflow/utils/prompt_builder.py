"""
Prompt Builder - Message lists for the survey model calls

Responsibilities:
- Question generation prompts (initial round and follow-up rounds)
- Summary prompt over the full answer history
- Chat system prompt carrying the stored survey as context

Design principles:
- Pure functions: contracts in, [{'role', 'content'}] out
- Output shape described in the prompt, decoded by output_codec
- No model access, no persistence access
"""

import json
from typing import Dict, List, Sequence

from surveyflow.contracts import AnsweredQuestion, ChatTurn, SurveyRecord

Message = Dict[str, str]

QUESTION_SCHEMA_HINT = (
    '{"questions": [{"id": "q1", "type": "boolean" | "scale", "label": "...", '
    '"minLabel": "..." | null, "maxLabel": "..." | null}]}'
)

SUMMARY_SCHEMA_HINT = (
    '{"summary": "...", "insights": ["..."], "recommendations": ["..."]}'
)

INITIAL_QUESTIONS_SYSTEM = f"""You are a professional survey generator. Create an initial set of survey questions for the given topic.

Rules:
1. Cover a broad range of dimensions relevant to the topic.
2. Mix question types: "boolean" (yes/no) and "scale" (0-10, with minLabel and maxLabel).
3. Keep questions concise, neutral and non-leading.
4. Reply with JSON only, in exactly this shape: {QUESTION_SCHEMA_HINT}"""

FOLLOW_UP_QUESTIONS_SYSTEM = f"""You are a professional survey generator. Generate the next set of survey questions on the given topic.

Rules:
1. Never repeat or rephrase a previously asked question.
2. Each new question must explore a dimension of the topic not covered yet.
3. Let the previous answers steer the direction: dig into low ratings, explore around high ones.
4. Avoid semantically similar questions.
5. Mix question types: "boolean" (yes/no) and "scale" (0-10, with minLabel and maxLabel).
6. Reply with JSON only, in exactly this shape: {QUESTION_SCHEMA_HINT}"""

SUMMARY_SYSTEM = f"""You are a professional survey analyst. Analyse the survey answers you are given.

Return a JSON object with:
- "summary": one concise paragraph describing the overall picture
- "insights": 3-5 specific observations drawn from the answers
- "recommendations": 3-5 actionable recommendations

Reply with JSON only, in exactly this shape: {SUMMARY_SCHEMA_HINT}"""


def format_answer_lines(answers: Sequence[AnsweredQuestion], separator: str = "Answer:") -> str:
    """
    Numbered one-line rendering of answered questions.

    Examples:
        1. [scale] How rested do you feel? Answer: 7
    """
    return "\n".join(
        f"{i}. [{a.question.type}] {a.question.label} {separator} {a.answer}"
        for i, a in enumerate(answers, 1)
    )


def build_question_messages(topic: str, answers: Sequence[AnsweredQuestion]) -> List[Message]:
    """
    Messages asking for the next question batch.

    With no previous answers the initial-round prompt is used; otherwise
    every prior question and answer is listed as off-limits.
    """
    if not answers:
        return [
            {'role': 'system', 'content': INITIAL_QUESTIONS_SYSTEM},
            {
                'role': 'user',
                'content': f"Topic: {topic}\n\nGenerate an initial set of survey questions for this topic.",
            },
        ]

    user_prompt = (
        f"Topic: {topic}\n\n"
        f"Previously asked questions and answers (do not ask these again or anything similar):\n"
        f"{format_answer_lines(answers)}\n\n"
        f"Generate new survey questions that explore unexplored aspects of the topic, "
        f"informed by the answers above."
    )
    return [
        {'role': 'system', 'content': FOLLOW_UP_QUESTIONS_SYSTEM},
        {'role': 'user', 'content': user_prompt},
    ]


def build_summary_messages(answers: Sequence[AnsweredQuestion]) -> List[Message]:
    """Messages asking for the summary/insights/recommendations triple."""
    payload = json.dumps([a.to_json() for a in answers], ensure_ascii=False)
    return [
        {'role': 'system', 'content': SUMMARY_SYSTEM},
        {'role': 'user', 'content': payload},
    ]


def build_chat_system_prompt(record: SurveyRecord) -> str:
    """
    System prompt for follow-up chat, built from the stored record.

    Includes topic, date, every answer and the summary block (or a
    placeholder when no summary exists yet).
    """
    answer_block = format_answer_lines(record.answers, separator="->") or "(No answers recorded)"

    if record.summary:
        insights = "\n".join(f"- {s}" for s in record.summary.insights)
        recommendations = "\n".join(f"- {s}" for s in record.summary.recommendations)
        summary_block = (
            f"Summary: {record.summary.summary}\n"
            f"Key insights:\n{insights}\n"
            f"Recommendations:\n{recommendations}"
        )
    else:
        summary_block = "(No summary generated yet)"

    return f"""You are a knowledgeable, supportive coach. The user completed a survey on "{record.topic}" and you can see all of their responses and the analysis.

=== SURVEY CONTEXT ===
Topic: {record.topic}
Date: {record.created_at}

Answers:
{answer_block}

{summary_block}
=== END CONTEXT ===

Give personalised, specific advice and refer to the user's actual answers where relevant. Be warm, encouraging and practical. Keep replies to 2-4 sentences unless the user asks for more detail."""


def build_chat_messages(
    record: SurveyRecord,
    history: Sequence[ChatTurn],
    message: str
) -> List[Message]:
    """System context + prior turns (oldest first) + the new user message."""
    messages = [{'role': 'system', 'content': build_chat_system_prompt(record)}]
    messages.extend({'role': turn.role, 'content': turn.content} for turn in history)
    messages.append({'role': 'user', 'content': message})
    return messages
