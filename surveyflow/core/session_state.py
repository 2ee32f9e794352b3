"""
Survey Session - client-held session state

Responsibilities:
- Hold the in-progress reconstruction of one SurveyRecord
- Hold transient cursor state (current batch, position, phase)
- Provide copies so failed transitions can be discarded whole

Design principles:
- Explicit object per client session (no process-wide globals)
- No business logic: SurveySessionMachine decides every transition
- Cumulative answers are append-only and keep issue order
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional

from surveyflow.contracts import (
    AnsweredQuestion,
    ChatTurn,
    Question,
    SurveyListing,
    SurveySummary,
)
from surveyflow.utils.session_phases import SessionPhase


@dataclass
class SurveySession:
    """
    Mutable session state owned by one client.

    Attributes:
        topic: Survey topic ('' until chosen)
        survey_id: Persisted survey id ('' until the first batch arrives)
        answers: Cumulative answers across all rounds, in issue order
        batch: Questions of the active round
        cursor: Index into batch of the question being shown
        summary: Latest summary, if any
        chat_history: Chat turns, oldest first
        phase: Current phase
        origin_phase: Phase to return to from a side phase
        share_fragment: Shareable deep-link fragment ('id=<survey_id>' or '')
        history: Survey listing shown while browsing history
        rounds: Number of question batches received in this session
        busy: True while an external call is in flight
    """
    topic: str = ""
    survey_id: str = ""
    answers: List[AnsweredQuestion] = field(default_factory=list)
    batch: List[Question] = field(default_factory=list)
    cursor: int = 0
    summary: Optional[SurveySummary] = None
    chat_history: List[ChatTurn] = field(default_factory=list)
    phase: SessionPhase = SessionPhase.IDLE
    origin_phase: Optional[SessionPhase] = None
    share_fragment: str = ""
    history: List[SurveyListing] = field(default_factory=list)
    rounds: int = 0
    busy: bool = False

    def current_question(self) -> Optional[Question]:
        """Question at the cursor, or None outside an active round"""
        if self.phase != SessionPhase.PRESENTING_QUESTION:
            return None
        if 0 <= self.cursor < len(self.batch):
            return self.batch[self.cursor]
        return None

    def progress(self) -> str:
        """Human-readable progress, e.g. 'Question 2 of 5'"""
        if self.phase == SessionPhase.PRESENTING_QUESTION:
            return f"Question {self.cursor + 1} of {len(self.batch)}"
        if self.batch and self.cursor >= len(self.batch):
            return f"All {len(self.batch)} questions answered"
        return ""

    def copy(self) -> "SurveySession":
        """
        Independent copy for a tentative transition.

        Contracts are immutable, so a shallow copy of each list suffices.
        """
        clone = copy.copy(self)
        clone.answers = list(self.answers)
        clone.batch = list(self.batch)
        clone.chat_history = list(self.chat_history)
        clone.history = list(self.history)
        clone.busy = False
        return clone
