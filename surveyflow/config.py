from __future__ import annotations
import os
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


DATA_DIR = os.getenv("SURVEY_DATA_DIR", "data").strip() or "data"
DATA_FILENAME = "surveys.json"

MODEL_NAME = os.getenv("SURVEY_MODEL_NAME", "Qwen/Qwen2.5-3B-Instruct").strip()
LOAD_IN_4BIT = _flag("SURVEY_LOAD_IN_4BIT", "true")
DEVICE = os.getenv("SURVEY_DEVICE", "cuda").strip()
MAX_NEW_TOKENS = int(os.getenv("SURVEY_MAX_NEW_TOKENS", "768"))

API_URL = os.getenv("SURVEY_API_URL", "http://localhost:5000/api").rstrip("/")
HOST = os.getenv("SURVEY_HOST", "0.0.0.0")
PORT = int(os.getenv("SURVEY_PORT", "5000"))

# Agent chat (free-form conversation outside surveys)
AGENT_SYSTEM_PROMPT = os.getenv("SURVEY_AGENT_SYSTEM_PROMPT", "").strip()

# Deep-link identifiers at or below this length are rejected without a lookup
DEEP_LINK_MIN_LENGTH = int(os.getenv("SURVEY_DEEP_LINK_MIN_LENGTH", "10"))
TOAST_SECONDS = float(os.getenv("SURVEY_TOAST_SECONDS", "4.0"))
