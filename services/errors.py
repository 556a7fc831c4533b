from __future__ import annotations

from typing import Optional

from models.usage import TokenUsage


class InferenceError(RuntimeError):
    """An inference call failed: timeout, transport error, malformed or off-schema JSON.

    ``usage`` is set when the provider reported tokens before the failure was
    detected (e.g. a completed call whose payload did not validate).
    """

    def __init__(self, message: str, usage: Optional[TokenUsage] = None) -> None:
        super().__init__(message)
        self.usage = usage


class UnknownModelError(KeyError):
    def __init__(self, model: str) -> None:
        super().__init__(model)
        self.model = model

    def __str__(self) -> str:
        return f"Unknown model: {self.model}"


class ProfileNotFoundError(LookupError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id
