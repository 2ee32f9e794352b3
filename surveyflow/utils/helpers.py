"""
Utility helpers for the survey flow

Simple utility functions for ID, timestamp and filename generation.
"""

import re
import uuid
from datetime import datetime, timezone


def generate_survey_id():
    """
    Generate unique survey identifier

    Returns:
        str: Full UUID4 in canonical 36-char form

    Examples:
        >>> generate_survey_id()
        '3f1c2a9e-4b7d-4c1e-9a2f-0d6b8e5c7a41'
    """
    return str(uuid.uuid4())


def utc_timestamp():
    """
    Current time as ISO-8601 UTC string with millisecond precision

    Examples:
        >>> utc_timestamp()
        '2026-10-18T09:41:07.123Z'
    """
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value):
    """
    Parse an ISO-8601 timestamp (with 'Z' or offset) into an aware datetime.

    Unparseable values sort as the epoch so listings never fail on bad data.
    """
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return datetime.fromtimestamp(0, timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def generate_report_filename(topic, extension="txt"):
    """
    Build a download filename from the survey topic

    Format: Survey_{Topic_With_Underscores}.{extension}

    Examples:
        >>> generate_report_filename("sleep quality")
        'Survey_sleep_quality.txt'
    """
    slug = re.sub(r"\s+", "_", topic.strip())
    slug = re.sub(r"[^\w\-]", "", slug) or "report"
    return f"Survey_{slug}.{extension}"


def validate_model_client(client, required=('generate_json', 'is_loaded')):
    """
    Check a model client exposes the methods a collaborator needs

    Raises:
        TypeError: If a required method is missing or not callable
        RuntimeError: If the client reports its model is not loaded
    """
    for name in required:
        if not callable(getattr(client, name, None)):
            raise TypeError(f"model client must have callable {name}() method")

    if 'is_loaded' in required and not client.is_loaded():
        raise RuntimeError("Model client not loaded")
