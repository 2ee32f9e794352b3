"""
Command types for SurveySessionMachine control flow.

Commands are the ONLY public interface to SurveySessionMachine.
Each command is validated against the session's current phase; a
command that does not fit the phase is rejected, never coerced.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ChooseTopic:
    """
    Start the first round on a topic.

    Valid from: IDLE
    Returns: TransitionResult in PRESENTING_QUESTION (or IDLE on failure)
    """
    topic: str


@dataclass(frozen=True)
class SubmitAnswer:
    """
    Answer the question at the cursor.

    Boolean questions take 'yes' / 'no'; scale questions take an integer
    0-10 (as int or numeric string).

    Valid from: PRESENTING_QUESTION
    """
    answer: str


@dataclass(frozen=True)
class RequestMoreQuestions:
    """
    Ask for another round, citing every answer so far.

    Valid from: ROUND_COMPLETE, SUMMARIZED
    """
    pass


@dataclass(frozen=True)
class RequestSummary:
    """
    Persist final answers and request a summary.

    Valid from: ROUND_COMPLETE
    """
    pass


@dataclass(frozen=True)
class SendChatMessage:
    """
    Send one chat message about the summarized survey.

    Valid from: SUMMARIZED
    """
    message: str


@dataclass(frozen=True)
class ResumeSurvey:
    """
    Rehydrate a session from a persisted survey.

    identifier may be a bare survey id or a fragment such as '#id=<id>'.
    Valid from: any phase
    """
    identifier: str


@dataclass(frozen=True)
class OpenReview:
    """Show all answers so far. Valid from: ROUND_COMPLETE, SUMMARIZED"""
    pass


@dataclass(frozen=True)
class OpenHistory:
    """List stored surveys. Valid from: IDLE, ROUND_COMPLETE, SUMMARIZED"""
    pass


@dataclass(frozen=True)
class GoBack:
    """Leave a side phase. Valid from: REVIEWING, BROWSING_HISTORY"""
    pass


@dataclass(frozen=True)
class Reset:
    """Discard the session and clear the share link. Valid from: any phase"""
    pass


Command = (
    ChooseTopic | SubmitAnswer | RequestMoreQuestions | RequestSummary |
    SendChatMessage | ResumeSurvey | OpenReview | OpenHistory | GoBack | Reset
)
