"""
Deep-Link Resolver - resume a survey from a shareable identifier

Responsibilities:
- Parse a URL fragment ('#id=<survey id>') or a bare id
- Reject implausible identifiers without a lookup (length heuristic)
- Fetch the stored record and rebuild a SurveySession from it
- Keep the session's share fragment in sync with its survey id

Resume rule:
    summary present            → SUMMARIZED
    answers but no summary     → ROUND_COMPLETE
    neither                    → caller restarts round generation
"""

import logging
from typing import Optional, Tuple
from urllib.parse import parse_qs, quote

from surveyflow.contracts import ChatTurn
from surveyflow.core.session_state import SurveySession
from surveyflow.utils.session_phases import SessionPhase

logger = logging.getLogger(__name__)

FRAGMENT_KEY = "id"


class DeepLinkResolver:
    """Map shareable identifiers to rehydrated sessions"""

    def __init__(self, client, min_length: int = 10):
        """
        Args:
            client: Survey client with get_survey(id)
            min_length: Identifiers of this length or shorter are rejected
        """
        if not callable(getattr(client, 'get_survey', None)):
            raise TypeError("client must have callable get_survey() method")
        self.client = client
        self.min_length = min_length

    def parse(self, identifier: str) -> Optional[str]:
        """
        Extract a plausible survey id.

        Accepts '#id=<id>', 'id=<id>' (query-string syntax, may carry other
        keys) or a bare id.

        Returns:
            The id, or None if absent or too short
        """
        text = (identifier or "").strip()
        if text.startswith('#'):
            text = text[1:]

        if '=' in text:
            values = parse_qs(text).get(FRAGMENT_KEY)
            candidate = values[0].strip() if values else ""
        else:
            candidate = text

        if len(candidate) <= self.min_length:
            return None
        return candidate

    def resolve(self, identifier: str) -> Tuple[SurveySession, bool]:
        """
        Fetch and rehydrate.

        Returns:
            (session, needs_round): needs_round is True when the record has
            neither answers nor summary and a new round must be requested

        Raises:
            ValueError: If the identifier is not plausible
            SurveyError: If the lookup fails (SurveyNotFound, TransportFailure)
        """
        survey_id = self.parse(identifier)
        if survey_id is None:
            raise ValueError(f"Not a survey link: {identifier!r}")

        record = self.client.get_survey(survey_id)

        session = SurveySession(
            topic=record.topic,
            survey_id=record.id,
            answers=list(record.answers),
            summary=record.summary,
            chat_history=[ChatTurn(role=t.role, content=t.content, ts=t.ts) for t in record.chat],
        )

        needs_round = False
        if record.summary is not None:
            session.phase = SessionPhase.SUMMARIZED
        elif record.answers:
            session.phase = SessionPhase.ROUND_COMPLETE
        else:
            session.phase = SessionPhase.IDLE
            needs_round = True

        self.sync(session)
        logger.info(
            f"Resolved {survey_id}: {len(record.answers)} answer(s), "
            f"summary={'yes' if record.summary else 'no'} → {session.phase.value}"
        )
        return session, needs_round

    def fragment_for(self, session: SurveySession) -> str:
        if not session.survey_id:
            return ""
        return f"{FRAGMENT_KEY}={quote(session.survey_id, safe='-')}"

    def sync(self, session: SurveySession) -> None:
        """Set the share fragment from the survey id, or clear it"""
        session.share_fragment = self.fragment_for(session)
