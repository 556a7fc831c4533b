from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


def _load_env() -> None:
    # Centralized dotenv loading; safe if .env missing
    load_dotenv()


def _as_bool(value: str | None, default: str = "false") -> bool:
    return (value or default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    log_level: str

    # Core/runtime
    db_path: str
    run_env: str

    openai_api_key: str | None
    openai_model: str

    # AI gating
    ai_enabled: bool
    ai_provider: str  # stub | openai

    # Limits/Concurrency/Timeouts
    inference_timeout_seconds: float
    match_concurrency: int
    enrich_concurrency: int
    default_match_limit: int

    # Billing
    default_token_allowance: int
    default_billing_plan: str
    overage_reference_model: str

    # Logging/tracing
    llm_trace: bool = False
    llm_log_path: str = "logs/llm_calls.jsonl"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    _load_env()
    ai_enabled = _as_bool(os.getenv("AI_ENABLED"))
    ai_provider = os.getenv("AI_PROVIDER", "stub").lower()
    openai_api_key = os.getenv("OPENAI_API_KEY")

    if ai_enabled and ai_provider == "openai" and not openai_api_key:
        raise RuntimeError(
            "OPENAI_API_KEY required when AI_PROVIDER=openai and AI_ENABLED=true"
        )
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        db_path=os.getenv("DB_PATH", "matching.db"),
        run_env=os.getenv("RUN_ENV", "local"),
        openai_api_key=openai_api_key,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        ai_enabled=ai_enabled,
        ai_provider=ai_provider,
        inference_timeout_seconds=float(os.getenv("INFERENCE_TIMEOUT_SECONDS", "30")),
        match_concurrency=max(1, int(os.getenv("MATCH_CONCURRENCY", "4"))),
        enrich_concurrency=max(1, int(os.getenv("ENRICH_CONCURRENCY", "2"))),
        default_match_limit=int(os.getenv("DEFAULT_MATCH_LIMIT", "10")),
        default_token_allowance=int(os.getenv("DEFAULT_TOKEN_ALLOWANCE", "10000")),
        default_billing_plan=os.getenv("DEFAULT_BILLING_PLAN", "free_basic"),
        overage_reference_model=os.getenv("OVERAGE_REFERENCE_MODEL", "gpt-4o"),
        llm_trace=_as_bool(os.getenv("LLM_TRACE")),
        llm_log_path=os.getenv("LLM_LOG_PATH", "logs/llm_calls.jsonl"),
    )
