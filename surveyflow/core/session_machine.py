"""
Survey Session Machine - client-side survey flow (Functional Core)

Responsibilities:
- Validate commands against the session's current phase
- Drive question rounds, answer collection and completion detection
- Call the survey service through a client (questions, summary, chat, history)
- Turn failed external calls into notifications without partial writes
- Keep the shareable deep-link fragment in sync with the session

Design principles:
- Session in, result out: handle() never mutates the caller's session
  beyond the busy flag; accepted commands work on a copy
- A failed call returns the pre-call session untouched; a failed resume
  falls back to a fresh idle session
- One logical operation in flight per session
- Thin orchestration (HTTP, prompts and storage live elsewhere)

Result contract:
    TransitionResult: command accepted (the call itself may have failed,
                      see .notification)
    IllegalCommand:   command does not fit the phase or its input is invalid
"""

import logging
from typing import List, Optional, Sequence, Union

from surveyflow.commands import (
    ChooseTopic,
    GoBack,
    OpenHistory,
    OpenReview,
    RequestMoreQuestions,
    RequestSummary,
    ResumeSurvey,
    Reset,
    SendChatMessage,
    SubmitAnswer,
)
from surveyflow.contracts import (
    BOOLEAN_ANSWERS,
    QUESTION_TYPE_BOOLEAN,
    QUESTION_TYPE_SCALE,
    ROLE_ASSISTANT,
    ROLE_USER,
    SCALE_MAX,
    SCALE_MIN,
    AnsweredQuestion,
    ChatTurn,
    Question,
)
from surveyflow.core.deep_link import DeepLinkResolver
from surveyflow.core.session_state import SurveySession
from surveyflow.errors import EmptyResult, SurveyError
from surveyflow.results import IllegalCommand, Notification, TransitionResult
from surveyflow.utils.helpers import parse_timestamp, utc_timestamp
from surveyflow.utils.session_phases import (
    HISTORY_ORIGINS,
    MORE_QUESTIONS_ORIGINS,
    REVIEW_ORIGINS,
    SIDE_PHASES,
    SessionPhase,
)

logger = logging.getLogger(__name__)

HandleResult = Union[TransitionResult, IllegalCommand]

# Toast texts
QUESTIONS_FAILED = "Failed to load questions. Please try again."
SUMMARY_FAILED = "Failed to generate summary. Please try again."
CHAT_FAILED = "Failed to get a reply. Please try again."
HISTORY_FAILED = "Failed to load history."
RESUME_FAILED = "Failed to load survey details."

TYPE_LABELS = {
    QUESTION_TYPE_BOOLEAN: "Yes/No",
    QUESTION_TYPE_SCALE: f"{SCALE_MIN}-{SCALE_MAX}",
}


def normalize_answer(question: Question, raw) -> str:
    """
    Validate and canonicalize an answer for a question.

    Boolean questions take 'yes' / 'no' (any case). Scale questions take a
    whole number in SCALE_MIN..SCALE_MAX, as int or numeric string.

    Returns:
        Canonical answer text ('yes', 'no', '7', ...)

    Raises:
        ValueError: If the answer does not fit the question type
    """
    if question.type == QUESTION_TYPE_BOOLEAN:
        text = str(raw).strip().lower()
        if text not in BOOLEAN_ANSWERS:
            raise ValueError("Answer must be 'yes' or 'no'")
        return text

    if question.type == QUESTION_TYPE_SCALE:
        if isinstance(raw, bool):
            raise ValueError(f"Answer must be a whole number from {SCALE_MIN} to {SCALE_MAX}")
        try:
            value = int(str(raw).strip())
        except ValueError:
            raise ValueError(f"Answer must be a whole number from {SCALE_MIN} to {SCALE_MAX}")
        if not SCALE_MIN <= value <= SCALE_MAX:
            raise ValueError(f"Answer must be a whole number from {SCALE_MIN} to {SCALE_MAX}")
        return str(value)

    raise ValueError(f"Unsupported question type: {question.type}")


def review_rows(answers: Sequence[AnsweredQuestion]) -> List[dict]:
    """Numbered rows for the review screen, in issue order"""
    return [
        {
            'number': i,
            'label': item.question.label,
            'answer': item.answer,
            'type': TYPE_LABELS.get(item.question.type, item.question.type),
        }
        for i, item in enumerate(answers, 1)
    ]


class SurveySessionMachine:
    """
    Drives one survey session through its phases.

    Functional core design:
    - Collaborators (client, resolver) cached, session state external
    - handle() maps (command, session) → result deterministically,
      given the client's responses
    """

    REQUIRED_CLIENT_METHODS = (
        'generate_questions', 'submit_survey', 'chat', 'get_survey', 'list_surveys'
    )

    def __init__(self, client, resolver: Optional[DeepLinkResolver] = None,
                 toast_seconds: float = 4.0):
        """
        Args:
            client: SurveyApiClient or InProcessSurveyClient
            resolver: DeepLinkResolver (built on client if None)
            toast_seconds: Auto-dismiss delay for notifications

        Raises:
            TypeError: If client lacks a required method
        """
        for method in self.REQUIRED_CLIENT_METHODS:
            if not callable(getattr(client, method, None)):
                raise TypeError(f"client must have callable {method}() method")

        self.client = client
        self.resolver = resolver or DeepLinkResolver(client)
        self.toast_seconds = toast_seconds

        self._handlers = {
            ChooseTopic: self._choose_topic,
            SubmitAnswer: self._submit_answer,
            RequestMoreQuestions: self._request_more_questions,
            RequestSummary: self._request_summary,
            SendChatMessage: self._send_chat_message,
            ResumeSurvey: self._resume_survey,
            OpenReview: self._open_review,
            OpenHistory: self._open_history,
            GoBack: self._go_back,
            Reset: self._reset,
        }

        logger.info("Survey Session Machine initialized")

    # ==================== PUBLIC API ====================

    def handle(self, command, session: Optional[SurveySession] = None) -> HandleResult:
        """
        Apply one command to a session.

        Args:
            command: One of the command types in surveyflow.commands
            session: Current session (None starts a fresh one in IDLE)

        Returns:
            TransitionResult or IllegalCommand
        """
        if session is None:
            session = SurveySession()

        command_type = type(command).__name__
        handler = self._handlers.get(type(command))
        if handler is None:
            return IllegalCommand(f"Unknown command: {command_type}", command_type)

        if session.busy:
            return IllegalCommand("Another operation is in progress", command_type)

        session.busy = True
        try:
            result = handler(command, session)
        finally:
            session.busy = False

        if isinstance(result, TransitionResult) and result.session is not session:
            self.resolver.sync(result.session)
            if result.session.phase != session.phase:
                logger.info(
                    f"{command_type}: {session.phase.value} → {result.session.phase.value}"
                )
        return result

    # ==================== ROUNDS ====================

    def _choose_topic(self, command: ChooseTopic, session: SurveySession) -> HandleResult:
        if session.phase != SessionPhase.IDLE:
            return self._illegal(command, session)

        topic = (command.topic or "").strip()
        if not topic:
            return IllegalCommand("Topic must not be empty", type(command).__name__)

        working = session.copy()
        working.topic = topic
        return self._start_round(session, working)

    def _request_more_questions(self, command: RequestMoreQuestions,
                                session: SurveySession) -> HandleResult:
        if session.phase not in MORE_QUESTIONS_ORIGINS:
            return self._illegal(command, session)
        return self._start_round(session, session.copy())

    def _start_round(self, session: SurveySession, working: SurveySession,
                     trail: Sequence[SessionPhase] = ()) -> TransitionResult:
        """
        Request a question batch for working and present its first question.

        On failure the session passed as `session` is returned untouched.
        """
        trail = list(trail) + [SessionPhase.LOADING]
        working.phase = SessionPhase.LOADING

        try:
            survey_id, questions = self.client.generate_questions(
                working.topic, working.survey_id or None, list(working.answers)
            )
            if not questions:
                raise EmptyResult("Service returned no questions")
        except SurveyError as e:
            logger.warning(f"Question round failed for '{working.topic}': {e}")
            return self._failed(session, trail, QUESTIONS_FAILED)

        working.survey_id = survey_id
        working.batch = list(questions)
        working.cursor = 0
        working.rounds += 1
        working.phase = SessionPhase.PRESENTING_QUESTION
        trail.append(working.phase)

        logger.info(f"Round {working.rounds} for {survey_id}: {len(questions)} question(s)")
        return TransitionResult(session=working, trail=tuple(trail))

    def _submit_answer(self, command: SubmitAnswer, session: SurveySession) -> HandleResult:
        question = session.current_question()
        if question is None:
            return self._illegal(command, session)

        try:
            answer = normalize_answer(question, command.answer)
        except ValueError as e:
            return IllegalCommand(str(e), type(command).__name__)

        working = session.copy()
        working.answers.append(AnsweredQuestion(question=question, answer=answer))
        working.cursor += 1
        if working.cursor >= len(working.batch):
            working.phase = SessionPhase.ROUND_COMPLETE

        return TransitionResult(session=working, trail=(working.phase,))

    # ==================== SUMMARY & CHAT ====================

    def _request_summary(self, command: RequestSummary, session: SurveySession) -> HandleResult:
        if session.phase != SessionPhase.ROUND_COMPLETE:
            return self._illegal(command, session)
        if not session.answers or not session.survey_id:
            return IllegalCommand("Nothing to summarize yet", type(command).__name__)

        working = session.copy()
        working.phase = SessionPhase.LOADING
        trail = [SessionPhase.LOADING]

        try:
            summary = self.client.submit_survey(working.survey_id, list(working.answers))
        except SurveyError as e:
            logger.warning(f"Summary failed for {working.survey_id}: {e}")
            return self._failed(session, trail, SUMMARY_FAILED)

        working.summary = summary
        working.phase = SessionPhase.SUMMARIZED
        trail.append(working.phase)
        return TransitionResult(session=working, trail=tuple(trail))

    def _send_chat_message(self, command: SendChatMessage,
                           session: SurveySession) -> HandleResult:
        if session.phase != SessionPhase.SUMMARIZED:
            return self._illegal(command, session)

        message = (command.message or "").strip()
        if not message:
            return IllegalCommand("Message must not be empty", type(command).__name__)

        working = session.copy()
        prior_turns = list(working.chat_history)
        working.chat_history.append(ChatTurn(role=ROLE_USER, content=message, ts=utc_timestamp()))
        working.phase = SessionPhase.CHATTING
        trail = [SessionPhase.CHATTING]

        try:
            reply = self.client.chat(working.survey_id, message, prior_turns)
        except SurveyError as e:
            # Optimistic user turn is discarded with the working copy
            logger.warning(f"Chat turn failed for {working.survey_id}: {e}")
            return self._failed(session, trail, CHAT_FAILED)

        working.chat_history.append(ChatTurn(role=ROLE_ASSISTANT, content=reply, ts=utc_timestamp()))
        working.phase = SessionPhase.SUMMARIZED
        trail.append(working.phase)
        return TransitionResult(session=working, trail=tuple(trail))

    # ==================== RESUME ====================

    def _resume_survey(self, command: ResumeSurvey, session: SurveySession) -> HandleResult:
        if self.resolver.parse(command.identifier) is None:
            return IllegalCommand("Not a survey link", type(command).__name__)

        try:
            restored, needs_round = self.resolver.resolve(command.identifier)
        except SurveyError as e:
            logger.warning(f"Resume failed for {command.identifier!r}: {e}")
            return self._failed(SurveySession(), [], RESUME_FAILED)

        if needs_round:
            logger.info(f"Survey {restored.survey_id} has no answers yet; starting a round")
            # Failure falls back to idle
            return self._start_round(SurveySession(), restored)

        return TransitionResult(session=restored, trail=(restored.phase,))

    # ==================== SIDE PHASES ====================

    def _open_review(self, command: OpenReview, session: SurveySession) -> HandleResult:
        if session.phase not in REVIEW_ORIGINS:
            return self._illegal(command, session)

        working = session.copy()
        working.origin_phase = session.phase
        working.phase = SessionPhase.REVIEWING
        return TransitionResult(
            session=working,
            trail=(working.phase,),
            payload={'rows': review_rows(working.answers)},
        )

    def _open_history(self, command: OpenHistory, session: SurveySession) -> HandleResult:
        if session.phase not in HISTORY_ORIGINS:
            return self._illegal(command, session)

        try:
            listings = self.client.list_surveys()
        except SurveyError as e:
            logger.warning(f"History load failed: {e}")
            return self._failed(session, [], HISTORY_FAILED)

        working = session.copy()
        working.history = sorted(
            listings, key=lambda item: parse_timestamp(item.created_at), reverse=True
        )
        working.origin_phase = session.phase
        working.phase = SessionPhase.BROWSING_HISTORY
        return TransitionResult(
            session=working,
            trail=(working.phase,),
            payload={'surveys': [item.to_json() for item in working.history]},
        )

    def _go_back(self, command: GoBack, session: SurveySession) -> HandleResult:
        if session.phase not in SIDE_PHASES:
            return self._illegal(command, session)

        working = session.copy()
        working.phase = session.origin_phase or SessionPhase.IDLE
        working.origin_phase = None
        working.history = []
        return TransitionResult(session=working, trail=(working.phase,))

    def _reset(self, command: Reset, session: SurveySession) -> HandleResult:
        logger.info(f"Session reset (was {session.survey_id or 'unsaved'})")
        fresh = SurveySession()
        return TransitionResult(session=fresh, trail=(fresh.phase,))

    # ==================== INTERNALS ====================

    def _failed(self, session: SurveySession, trail: Sequence[SessionPhase],
                message: str) -> TransitionResult:
        """Pre-call session plus an error toast"""
        return TransitionResult(
            session=session,
            trail=tuple(trail) + (session.phase,),
            notification=Notification(message=message, dismiss_after=self.toast_seconds),
        )

    def _illegal(self, command, session: SurveySession) -> IllegalCommand:
        command_type = type(command).__name__
        return IllegalCommand(
            f"{command_type} is not allowed in phase {session.phase.value}", command_type
        )
