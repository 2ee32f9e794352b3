"""
Session phase enum for the survey flow.

Invariants:
- Exactly one phase is active per session
- LOADING and CHATTING are transient: entered and left within one command
- REVIEWING and BROWSING_HISTORY are side phases that remember their origin
- SurveySessionMachine owns all phase transitions

Design:
- SessionPhase is a string-based enum for JSON/log friendliness
- Transition tables live next to the enum so they stay in sync
"""

from enum import Enum


class SessionPhase(str, Enum):
    """
    Screens of the survey flow.

    IDLE:
        No active round. Topic selection.
        Exit: ChooseTopic → LOADING; ResumeSurvey → any resting phase

    LOADING:
        A question batch or summary request is in flight.
        Exit: success → PRESENTING_QUESTION / SUMMARIZED
              failure → pre-call phase

    PRESENTING_QUESTION:
        One question of the current batch is shown (cursor).
        Exit: last answer submitted → ROUND_COMPLETE

    ROUND_COMPLETE:
        Batch fully answered; decide between more questions and a summary.

    SUMMARIZED:
        Summary available; chat, more questions, review.

    CHATTING:
        A chat turn is in flight. Always returns to SUMMARIZED.

    REVIEWING / BROWSING_HISTORY:
        Side phases; GoBack returns to the origin phase.
    """
    IDLE = "idle"
    LOADING = "loading"
    PRESENTING_QUESTION = "presenting_question"
    ROUND_COMPLETE = "round_complete"
    SUMMARIZED = "summarized"
    CHATTING = "chatting"
    REVIEWING = "reviewing"
    BROWSING_HISTORY = "browsing_history"


# Side phases and the phases they may be opened from
SIDE_PHASES = {SessionPhase.REVIEWING, SessionPhase.BROWSING_HISTORY}

REVIEW_ORIGINS = {SessionPhase.ROUND_COMPLETE, SessionPhase.SUMMARIZED}
HISTORY_ORIGINS = {SessionPhase.IDLE, SessionPhase.ROUND_COMPLETE, SessionPhase.SUMMARIZED}

# Phases from which another question round may be requested
MORE_QUESTIONS_ORIGINS = {SessionPhase.ROUND_COMPLETE, SessionPhase.SUMMARIZED}
