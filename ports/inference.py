from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Protocol, Type, TypeVar

from pydantic import BaseModel

from models.usage import TokenUsage


M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class InferenceResponse(Generic[M]):
    data: M
    usage: TokenUsage


class InferencePort(Protocol):
    def request(
        self,
        *,
        use_case: str,
        system_instructions: str,
        user_prompt: str,
        response_schema: Type[M],
    ) -> InferenceResponse[M]:
        """Return the validated structured response or raise InferenceError."""
        ...
