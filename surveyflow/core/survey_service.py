"""
Survey Service - request orchestration behind the HTTP API

Responsibilities:
- Create-or-continue a survey and fetch the next question batch
- Checkpoint cumulative answers into the store
- Summarize and persist the summary
- Run one chat turn with stored survey context
- Read-only lookups (get, list, report)
- Free-form agent chat whose context persists across requests

Design principles:
- Stateless per request: everything needed arrives in the call or the store
- Clients resend the full cumulative answer list; only the unsaved
  suffix is appended, so resending never duplicates answers
- Persistence after a result is already computed is best-effort:
  failures are logged and swallowed, the caller still gets the result
- Agent chat sessions are explicit objects keyed by session key and
  owned by the service instance, never module state
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from surveyflow.contracts import (
    ROLE_ASSISTANT,
    ROLE_USER,
    AnsweredQuestion,
    ChatTurn,
    Question,
    SurveyListing,
    SurveyRecord,
    SurveySummary,
)
from surveyflow.core.report_formatter import ReportFormatter
from surveyflow.errors import SurveyError, SurveyNotFound
from surveyflow.utils.helpers import utc_timestamp

logger = logging.getLogger(__name__)

DEFAULT_AGENT_SESSION = "default"


class SurveyService:
    """Orchestrates store + model collaborators for one request at a time"""

    def __init__(self, store, question_generator, summary_generator, chat_responder,
                 report_formatter=None, agent_chat=None):
        """
        Args:
            store: SurveyStore instance
            question_generator: object with generate(topic, answers)
            summary_generator: object with summarize(answers)
            chat_responder: object with reply(record, history, message)
            report_formatter: ReportFormatter (default instance if None)
            agent_chat: AgentChat for free-form chat (agent routes fail if None)

        Raises:
            TypeError: If any collaborator lacks its required method
        """
        self._validate_modules(store, question_generator, summary_generator, chat_responder,
                               agent_chat)

        self.store = store
        self.question_generator = question_generator
        self.summary_generator = summary_generator
        self.chat_responder = chat_responder
        self.report_formatter = report_formatter or ReportFormatter()
        self.agent_chat = agent_chat
        self._agent_sessions = {}
        self._agent_lock = threading.Lock()

        logger.info("Survey Service initialized")

    def _validate_modules(self, store, question_generator, summary_generator, chat_responder,
                          agent_chat=None):
        """Validate collaborator interfaces"""
        for method in ('create', 'append_answers', 'save_summary', 'append_chat_turns', 'get', 'list'):
            if not callable(getattr(store, method, None)):
                raise TypeError(f"store must have callable {method}() method")

        if not callable(getattr(question_generator, 'generate', None)):
            raise TypeError("question_generator must have callable generate() method")

        if not callable(getattr(summary_generator, 'summarize', None)):
            raise TypeError("summary_generator must have callable summarize() method")

        if not callable(getattr(chat_responder, 'reply', None)):
            raise TypeError("chat_responder must have callable reply() method")

        if agent_chat is not None:
            for method in ('new_session', 'send'):
                if not callable(getattr(agent_chat, method, None)):
                    raise TypeError(f"agent_chat must have callable {method}() method")

    # ==================== QUESTIONS ====================

    def generate_questions(
        self,
        topic: str,
        survey_id: Optional[str],
        answers: Sequence[AnsweredQuestion]
    ) -> Tuple[str, Tuple[Question, ...]]:
        """
        Create-or-continue a round.

        Args:
            topic: Survey topic (falls back to the stored topic if blank)
            survey_id: Existing survey id, or None/'' to create a new survey
            answers: Cumulative answers across all rounds

        Returns:
            (survey_id, questions). questions may be empty.

        Raises:
            SurveyNotFound: If survey_id is given but unknown
        """
        if survey_id:
            record = self._require(survey_id)
        else:
            record = self.store.create(topic)
            survey_id = record.id

        unsaved = self._unsaved_suffix(record, answers)
        if unsaved:
            record = self.store.append_answers(survey_id, unsaved)

        questions = self.question_generator.generate(topic or record.topic, list(answers))
        logger.info(f"Round for {survey_id}: {len(questions)} question(s)")
        return survey_id, tuple(questions)

    # ==================== SUMMARY ====================

    def submit_survey(self, survey_id: str, answers: Sequence[AnsweredQuestion]) -> SurveySummary:
        """
        Persist final answers, summarize, persist the summary.

        Both persistence steps are best-effort. When answers is empty the
        stored answers are summarized instead.
        """
        answers = list(answers)
        record = self.store.get(survey_id)

        if answers and record is not None:
            unsaved = self._unsaved_suffix(record, answers)
            if unsaved:
                try:
                    record = self.store.append_answers(survey_id, unsaved)
                except (SurveyError, OSError) as e:
                    logger.warning(f"Could not persist final answers for {survey_id}: {e}")
        elif record is None:
            logger.warning(f"Summarizing unknown survey {survey_id}; results will not be saved")

        if not answers and record is not None:
            answers = list(record.answers)

        summary = self.summary_generator.summarize(answers)

        try:
            self.store.save_summary(survey_id, summary)
        except (SurveyError, OSError) as e:
            logger.warning(f"Could not persist summary for {survey_id}: {e}")

        return summary

    # ==================== CHAT ====================

    def chat(self, survey_id: str, message: str, history: Sequence[ChatTurn]) -> str:
        """
        One chat turn.

        Raises:
            SurveyNotFound: If survey_id is unknown
        """
        record = self._require(survey_id)
        reply = self.chat_responder.reply(record, list(history), message)

        now = utc_timestamp()
        try:
            self.store.append_chat_turns(survey_id, [
                ChatTurn(role=ROLE_USER, content=message, ts=now),
                ChatTurn(role=ROLE_ASSISTANT, content=reply, ts=now),
            ])
        except (SurveyError, OSError) as e:
            logger.warning(f"Could not persist chat turns for {survey_id}: {e}")

        return reply

    # ==================== AGENT CHAT ====================

    def agent_chat_turn(self, prompt: str,
                        session_key: str = DEFAULT_AGENT_SESSION) -> Dict[str, Any]:
        """
        Send a prompt to the agent conversation under session_key.

        The conversation starts on first use and keeps its context until
        clear_agent_session(). A failed turn leaves it unchanged.

        Returns:
            {'messages': [...], 'message': {...}, 'usage': {...}}

        Raises:
            RuntimeError: If no agent chat is configured
            ValueError: If prompt is blank
        """
        agent_chat = self._require_agent_chat()
        with self._agent_lock:
            session = self._agent_sessions.get(session_key) or agent_chat.new_session()
            updated, output = agent_chat.send(session, prompt)
            self._agent_sessions[session_key] = updated
        return output

    def clear_agent_session(self, session_key: str = DEFAULT_AGENT_SESSION) -> bool:
        """Restart the conversation under session_key from the agent profile"""
        agent_chat = self._require_agent_chat()
        with self._agent_lock:
            self._agent_sessions[session_key] = agent_chat.new_session()
        logger.info(f"Agent session {session_key!r} cleared")
        return True

    # ==================== LOOKUPS ====================

    def get_survey(self, survey_id: str) -> SurveyRecord:
        """Raises SurveyNotFound if unknown"""
        return self._require(survey_id)

    def list_surveys(self) -> List[SurveyListing]:
        return self.store.list()

    def build_report(self, survey_id: str) -> Tuple[str, str]:
        """
        Returns:
            (filename, report text)

        Raises:
            SurveyNotFound: If survey_id is unknown
        """
        record = self._require(survey_id)
        return self.report_formatter.filename_for(record), self.report_formatter.render(record)

    def count(self) -> int:
        return self.store.count()

    # ==================== INTERNALS ====================

    def _require_agent_chat(self):
        if self.agent_chat is None:
            raise RuntimeError("Agent chat is not configured")
        return self.agent_chat

    def _require(self, survey_id: str) -> SurveyRecord:
        record = self.store.get(survey_id)
        if record is None:
            raise SurveyNotFound(survey_id)
        return record

    def _unsaved_suffix(self, record: SurveyRecord, answers: Sequence[AnsweredQuestion]) -> list:
        stored = len(record.answers)
        if len(answers) < stored:
            logger.warning(
                f"Client sent {len(answers)} answer(s) but {record.id} already stores "
                f"{stored}; nothing to append"
            )
            return []
        return list(answers[stored:])
