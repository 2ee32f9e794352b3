"""
Survey record persistence.

Single JSON document holding every survey record, rewritten whole on
each mutation.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional

from surveyflow.contracts import (
    AnsweredQuestion,
    ChatTurn,
    SurveyListing,
    SurveyRecord,
    SurveySummary,
)
from surveyflow.errors import SurveyNotFound
from surveyflow.utils.helpers import generate_survey_id, utc_timestamp

logger = logging.getLogger(__name__)


class SurveyStore:
    """
    Keyed survey storage backed by one JSON file.

    Layout:
        data/surveys.json
            {"surveys": {"<id>": {...SurveyRecord...}, ...}}

    Design:
    - Whole-document read-modify-write on every mutation
    - Missing or corrupt file reads as an empty store (fail open)
    - A damaged record inside a valid file reads as absent
    - Unknown id on a mutation raises SurveyNotFound and writes nothing
    - Mutations within one process are serialized by a lock; writers in
      other processes can still lose updates (last write wins)
    - Rewrites go through a temp file + os.replace
    """

    def __init__(self, data_dir: str = "data", filename: str = "surveys.json"):
        """
        Initialize persistence layer.

        The directory is created lazily on first access, not here.

        Args:
            data_dir: Directory holding the store file
            filename: Store file name inside data_dir
        """
        self.data_dir = Path(data_dir)
        self.path = self.data_dir / filename
        self._lock = threading.Lock()
        logger.info(f"SurveyStore initialized: {self.path}")

    # ==================== PUBLIC API ====================

    def create(self, topic: str) -> SurveyRecord:
        """
        Create a new survey record.

        Args:
            topic: Free-text topic chosen by the respondent

        Returns:
            SurveyRecord: Freshly persisted record with empty answers/chat
        """
        record = SurveyRecord(
            id=generate_survey_id(),
            topic=topic,
            created_at=utc_timestamp(),
        )
        with self._lock:
            surveys = self._load()
            surveys[record.id] = record.to_json()
            self._save(surveys)

        logger.info(f"Created survey {record.id} (topic: {topic!r})")
        return record

    def append_answers(self, survey_id: str, answers: List[AnsweredQuestion]) -> SurveyRecord:
        """
        Append answered questions to an existing survey.

        Raises:
            SurveyNotFound: If survey_id is unknown (nothing is written)
        """
        answers = list(answers)
        record = self._mutate(survey_id, lambda r: r.with_answers(answers))
        logger.info(
            f"Appended {len(answers)} answer(s) to {survey_id} "
            f"(total {len(record.answers)})"
        )
        return record

    def save_summary(self, survey_id: str, summary: SurveySummary) -> SurveyRecord:
        """
        Replace the stored summary wholesale.

        Raises:
            SurveyNotFound: If survey_id is unknown (nothing is written)
        """
        record = self._mutate(survey_id, lambda r: r.with_summary(summary))
        logger.info(f"Saved summary for {survey_id}")
        return record

    def append_chat_turns(self, survey_id: str, turns: List[ChatTurn]) -> SurveyRecord:
        """
        Append chat turns (typically one user + one assistant turn).

        Raises:
            SurveyNotFound: If survey_id is unknown (nothing is written)
        """
        turns = list(turns)
        record = self._mutate(survey_id, lambda r: r.with_chat(turns))
        logger.info(f"Appended {len(turns)} chat turn(s) to {survey_id}")
        return record

    def get(self, survey_id: str) -> Optional[SurveyRecord]:
        """
        Look up a single record.

        Returns:
            SurveyRecord if it exists, None otherwise (also for a damaged
            entry). Never raises for an unknown id.
        """
        with self._lock:
            data = self._load().get(survey_id)
        if data is None:
            return None
        return self._decode(survey_id, data)

    def list(self) -> List[SurveyListing]:
        """
        List every survey as (id, topic, createdAt).

        No ordering guarantee; callers sort by created_at if they care.
        Damaged records are skipped.
        """
        with self._lock:
            surveys = self._load()

        listings = []
        for survey_id, data in surveys.items():
            record = self._decode(survey_id, data)
            if record is not None:
                listings.append(record.listing())
        return listings

    def exists(self, survey_id: str) -> bool:
        with self._lock:
            return survey_id in self._load()

    def count(self) -> int:
        with self._lock:
            return len(self._load())

    # ==================== INTERNALS ====================

    def _mutate(
        self,
        survey_id: str,
        change: Callable[[SurveyRecord], SurveyRecord]
    ) -> SurveyRecord:
        with self._lock:
            surveys = self._load()
            data = surveys.get(survey_id)
            current = None if data is None else self._decode(survey_id, data)
            if current is None:
                logger.warning(f"Survey not found: {survey_id}")
                raise SurveyNotFound(survey_id)

            record = change(current)
            surveys[survey_id] = record.to_json()
            self._save(surveys)
        return record

    def _decode(self, survey_id: str, data) -> Optional[SurveyRecord]:
        """Stored dict to SurveyRecord; None (logged) if the entry is damaged"""
        try:
            return SurveyRecord.from_json(data)
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping damaged survey record {survey_id!r}: {e}")
            return None

    def _ensure_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _load(self) -> Dict[str, dict]:
        self._ensure_dir()
        if not self.path.exists():
            return {}

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable store file {self.path}, treating as empty: {e}")
            return {}

        surveys = document.get('surveys') if isinstance(document, dict) else None
        if not isinstance(surveys, dict):
            logger.warning(f"Store file {self.path} has no 'surveys' object, treating as empty")
            return {}
        return surveys

    def _save(self, surveys: Dict[str, dict]) -> None:
        self._ensure_dir()
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.data_dir)
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump({'surveys': surveys}, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
