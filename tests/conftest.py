from __future__ import annotations

import os
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pytest


def pytest_configure():
    # Ensure project root is on sys.path for absolute imports like 'services.usage_ledger'
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))
    # Set test environment knobs
    os.environ.setdefault("RUN_ENV", "test")


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    monkeypatch.setenv("RUN_ENV", "test")
    monkeypatch.setenv("AI_ENABLED", "false")
    monkeypatch.setenv("AI_PROVIDER", "stub")
    monkeypatch.delenv("LLM_TRACE", raising=False)
    from config.settings import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def conn(tmp_path):
    from db import schema
    from db.connection import get_connection

    db = get_connection(str(tmp_path / "t.db"))
    schema.bootstrap(db)
    try:
        yield db
    finally:
        db.close()


class FixedClock:
    """Mutable clock for billing-cycle tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))


Responder = Union[Dict[str, Any], Exception, Callable[[str], Any]]


class FakeInference:
    """InferencePort double: canned payload, exception, or callable(prompt) per use case."""

    def __init__(
        self,
        responses: Optional[Dict[str, Responder]] = None,
        model: str = "gpt-4o",
        input_tokens: int = 100,
        output_tokens: int = 50,
    ) -> None:
        self.responses = responses or {}
        self.model = model
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.calls: List[Dict[str, str]] = []
        self._lock = threading.Lock()

    def request(self, *, use_case, system_instructions, user_prompt, response_schema):
        from pydantic import ValidationError

        from models.usage import TokenUsage
        from ports.inference import InferenceResponse
        from services.errors import InferenceError

        with self._lock:
            self.calls.append({"use_case": use_case, "prompt": user_prompt})
        responder = self.responses.get(use_case)
        if responder is None:
            raise InferenceError(f"no canned response for {use_case}")
        if isinstance(responder, Exception):
            raise responder
        payload = responder(user_prompt) if callable(responder) else responder
        usage = TokenUsage(model=self.model, input_tokens=self.input_tokens, output_tokens=self.output_tokens)
        try:
            data = response_schema.model_validate(payload)
        except ValidationError as e:
            raise InferenceError("schema mismatch", usage=usage) from e
        return InferenceResponse(data=data, usage=usage)

    def count(self, use_case: str) -> int:
        return sum(1 for c in self.calls if c["use_case"] == use_case)


@pytest.fixture
def fake_inference_cls():
    return FakeInference


PERSONALITY_PAYLOAD = {
    "bigFive": {
        "openness": 80,
        "conscientiousness": 70,
        "extraversion": 65,
        "agreeableness": 60,
        "neuroticism": 20,
    },
    "communicationStyle": "direct",
    "workStyle": "leadership",
    "decisionMaking": "quick-decisive",
    "networkingMotivation": "deal-making",
}

GOALS_PAYLOAD = {
    "primaryGoals": ["Raise seed round", "Find a CTO"],
    "careerStage": "entrepreneur",
    "businessObjectives": "fundraising",
    "timeHorizon": "short-term",
    "successMetrics": ["Term sheet signed"],
    "challengesAreas": ["Investor access"],
}


def match_payload(factors: List[int], overall: int = 99) -> Dict[str, Any]:
    keys = [
        "personalityAlignment",
        "goalsSynergy",
        "communicationCompatibility",
        "collaborationPotential",
        "networkingStyleMatch",
        "geographicAlignment",
        "industryRelevance",
    ]
    return {
        "overallScore": overall,
        "compatibilityFactors": dict(zip(keys, factors)),
        "aiReasoning": "Strong overlap in fintech.",
        "recommendedTopics": ["Payments"],
        "mutualGoals": ["Partnerships"],
        "collaborationPotential": "investment",
        "meetingSuggestions": {
            "format": "virtual",
            "duration": "30 minutes",
            "suggestedAgenda": ["Intro"],
        },
    }


@pytest.fixture
def payloads():
    return {
        "personality": PERSONALITY_PAYLOAD,
        "goals": GOALS_PAYLOAD,
        "match": match_payload,
    }


@pytest.fixture
def make_profile():
    from models.user_profile import UserProfile

    def _make(user_id: str, **overrides: Any) -> UserProfile:
        fields: Dict[str, Any] = {
            "user_id": user_id,
            "first_name": user_id.capitalize(),
            "last_name": "Example",
            "title": "Founder",
            "company": f"{user_id.capitalize()} Labs",
            "bio": "Building fintech infrastructure.",
            "location": "New York, NY",
            "networking_goal": "Meet investors",
            "industries": ["Fintech"],
            "skills": ["Product"],
        }
        fields.update(overrides)
        return UserProfile(**fields)

    return _make
