"""
Report Formatter - plain-text survey report

Deterministic assembly of a stored survey into a downloadable text
document: header, topic, summary (if any), numbered answers, chat log.
No model calls.
"""

import logging

from surveyflow.contracts import ROLE_USER, SurveyRecord
from surveyflow.utils.helpers import generate_report_filename, parse_timestamp

logger = logging.getLogger(__name__)

RULE = "=" * 60
THIN_RULE = "-" * 60


class ReportFormatter:
    """Render SurveyRecord objects as text reports"""

    TITLE = "SURVEY INSIGHTS REPORT"

    def filename_for(self, record: SurveyRecord) -> str:
        return generate_report_filename(record.topic)

    def render(self, record: SurveyRecord) -> str:
        """
        Build the full report text.

        Sections are omitted when empty (no summary, no answers, no chat).
        """
        created = parse_timestamp(record.created_at).strftime("%Y-%m-%d %H:%M UTC")
        lines = [RULE, self.TITLE.center(60).rstrip(), created.center(60).rstrip(), RULE, ""]
        lines.append(f"Topic: {record.topic}")
        lines.append("")

        if record.summary:
            lines.extend(["EXECUTIVE SUMMARY", THIN_RULE, record.summary.summary, ""])
            lines.extend(self._numbered("KEY INSIGHTS", record.summary.insights))
            lines.extend(self._numbered("RECOMMENDATIONS", record.summary.recommendations))

        if record.answers:
            lines.extend(["DETAILED RESPONSES", THIN_RULE])
            for i, item in enumerate(record.answers, 1):
                lines.append(f"Q{i}: {item.question.label}")
                lines.append(f"    A: {item.answer}")
            lines.append("")

        if record.chat:
            lines.extend(["CONSULTATION LOG", THIN_RULE])
            for turn in record.chat:
                speaker = "You" if turn.role == ROLE_USER else "Assistant"
                lines.append(f"{speaker}: {turn.content}")
            lines.append("")

        logger.info(
            f"Rendered report for {record.id}: {len(record.answers)} answer(s), "
            f"{len(record.chat)} chat turn(s)"
        )
        return "\n".join(lines).rstrip() + "\n"

    def _numbered(self, heading, items):
        if not items:
            return []
        out = [heading, THIN_RULE]
        out.extend(f"{i}. {item}" for i, item in enumerate(items, 1))
        out.append("")
        return out
