import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import config

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

# HTTP client chatter from the OpenAI SDK floods the debug log
NOISY_LOGGERS = ("openai", "httpx", "httpcore")


def setup_logging(log_dir: Path | None = None, console_level: str | None = None):
    logger = logging.getLogger("workshop")

    # Guard against duplicate handlers on repeated calls (Streamlit reruns)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(LOG_FORMAT)

    log_dir = Path(log_dir) if log_dir is not None else config.WORKSPACE_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_dir / "workshop.log",
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel((console_level or config.LOG_LEVEL).upper())
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
