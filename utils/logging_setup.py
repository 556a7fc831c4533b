from __future__ import annotations

import logging
import os
import sys
from typing import Any

from config.settings import get_settings


_INITIALIZED: bool = False

# HTTP client chatter from the OpenAI SDK drowns out ledger and ranking lines
_NOISY_LOGGERS = ("openai", "httpx", "httpcore")


class SafeExtraFormatter(logging.Formatter):
    """Formatter that tolerates missing extra fields by injecting defaults."""

    DEFAULTS: dict[str, Any] = {
        "step": "-",
        "status": "-",
        "duration_ms": "-",
        "provider": "-",
        "feature": "-",
        "user_id": "-",
        "error": "-",
        "run_id": "-",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        for key, value in self.DEFAULTS.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return super().format(record)


class RunIdFilter(logging.Filter):
    """Stamp records with RUN_ID from the environment unless the caller passed one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            run_id = os.getenv("RUN_ID")
            if run_id:
                record.run_id = run_id
        return True


def init_logging(level: str | None = None) -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return

    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.addFilter(RunIdFilter())
        handler.setFormatter(
            SafeExtraFormatter(
                fmt=(
                    "%(asctime)s %(levelname)s %(name)s %(message)s "
                    "step=%(step)s status=%(status)s duration_ms=%(duration_ms)s "
                    "provider=%(provider)s feature=%(feature)s user_id=%(user_id)s "
                    "error=%(error)s run_id=%(run_id)s"
                )
            )
        )
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _INITIALIZED = True
