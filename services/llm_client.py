from __future__ import annotations

import json
import re
import time
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from config.llm_routes import ROUTES, feature_for
from config.settings import Settings, get_settings
from models.usage import TokenUsage
from ports.inference import InferenceResponse
from services.errors import InferenceError
from utils.llm_logger import log_call, sha256_text


M = TypeVar("M", bound=BaseModel)


def extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Parse a JSON object from raw text, a fenced code block, or the outermost braces."""
    if not text:
        return None
    candidates: List[str] = [text]
    m = re.search(r"```(?:json)?\n([\s\S]*?)\n```", text)
    if m:
        candidates.append(m.group(1))
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _usage_from(resp: Any, model: str) -> TokenUsage:
    usage = getattr(resp, "usage", None)
    prompt_tokens = getattr(usage, "prompt_tokens", None) or 0
    completion_tokens = getattr(usage, "completion_tokens", None) or 0
    return TokenUsage(model=model, input_tokens=int(prompt_tokens), output_tokens=int(completion_tokens))


class LLMClient:
    """Inference gateway: per-use-case routing, bounded timeout, JSON validation and tracing.

    Implements ports.inference.InferencePort. Token usage is reported under
    the route's configured model name so the ledger bills the pinned rate.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Any = None) -> None:
        self.settings = settings or get_settings()
        self._client = client

    def _openai(self) -> Any:
        if self._client is None:
            from openai import OpenAI
            self._client = OpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.inference_timeout_seconds,
                max_retries=0,
            )
        return self._client

    def request(
        self,
        *,
        use_case: str,
        system_instructions: str,
        user_prompt: str,
        response_schema: Type[M],
    ) -> InferenceResponse[M]:
        route = ROUTES.get(use_case, {})
        provider = route.get("provider", "openai")
        model = route.get("model") or self.settings.openai_model
        op = route.get("operation", use_case)
        temp = route.get("temperature")

        if provider != "openai":
            raise NotImplementedError(f"Provider not implemented: {provider}")

        def _log(status: str, *, duration_ms: int, error: Optional[str] = None, usage: Optional[TokenUsage] = None) -> None:
            log_call(
                caller=f"llm_client.request:{use_case}",
                provider=provider,
                model=model,
                operation=op,
                prompt_hash=sha256_text(user_prompt),
                duration_ms=duration_ms,
                status=status,
                error=error,
                usage={
                    "prompt_tokens": usage.input_tokens,
                    "completion_tokens": usage.output_tokens,
                    "total_tokens": usage.total_tokens,
                } if usage else None,
                feature=feature_for(use_case),
            )

        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_instructions},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
            "timeout": self.settings.inference_timeout_seconds,
        }
        # Only pass temperature if explicitly provided (some models only accept default)
        if temp is not None:
            kwargs["temperature"] = temp

        t0 = time.time()
        try:
            resp = self._openai().chat.completions.create(**kwargs)
        except Exception as e:
            dt_ms = int((time.time() - t0) * 1000)
            _log("error", duration_ms=dt_ms, error=str(e))
            raise InferenceError(f"{use_case} call failed: {e}") from e
        dt_ms = int((time.time() - t0) * 1000)

        usage = _usage_from(resp, model)
        content = resp.choices[0].message.content if getattr(resp, "choices", None) else None
        data = extract_json(content)
        if data is None:
            _log("error", duration_ms=dt_ms, error="malformed JSON", usage=usage)
            raise InferenceError(f"{use_case} returned malformed JSON", usage=usage)
        try:
            parsed = response_schema.model_validate(data)
        except ValidationError as e:
            _log("error", duration_ms=dt_ms, error="schema mismatch", usage=usage)
            raise InferenceError(
                f"{use_case} response did not match {response_schema.__name__}: {e.error_count()} errors",
                usage=usage,
            ) from e

        _log("ok", duration_ms=dt_ms, usage=usage)
        return InferenceResponse(data=parsed, usage=usage)


class StubLLMClient:
    """Inference disabled: every call fails, so callers substitute their defaults."""

    def request(
        self,
        *,
        use_case: str,
        system_instructions: str,
        user_prompt: str,
        response_schema: Type[M],
    ) -> InferenceResponse[M]:
        raise InferenceError(f"{use_case}: stub provider has no inference backend")


def build_inference_client(settings: Optional[Settings] = None) -> Any:
    settings = settings or get_settings()
    if settings.ai_enabled and settings.ai_provider == "openai":
        return LLMClient(settings)
    # Stub provider allowed only in test environment
    if (settings.run_env or "").lower() != "test":
        raise RuntimeError("Stub inference provider is only allowed when RUN_ENV=test")
    return StubLLMClient()
