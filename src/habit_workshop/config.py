import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

LLM_API_KEY = os.getenv("LLM_API_KEY", "")
LLM_BASE_URL = (os.getenv("LLM_BASE_URL") or "").strip().rstrip("/") or "https://api.openai.com/v1"
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-3.5-turbo")
LLM_TEMPERATURE = 0.7
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))

WORKSPACE_DIR = Path(
    os.getenv("WORKSHOP_DATA_DIR") or str(Path.home() / "Documents" / "habit-workshop")
)

DEFAULT_LANGUAGE = "zh"
MAX_QUESTIONS = 6  # AI-authored turns before the final evaluation is forced
GOLDEN_THRESHOLD = 60
SAVE_DEBOUNCE_SECONDS = 1.0
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")  # console handler only; the file log is always DEBUG
