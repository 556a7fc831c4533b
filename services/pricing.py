from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from collections.abc import Iterator, Mapping

from config.pricing import DEFAULT_MODEL_RATES
from services.errors import UnknownModelError


@dataclass(frozen=True)
class ModelRate:
    """Input/output cost per 1K tokens."""

    input_rate: float
    output_rate: float

    @property
    def blended_rate(self) -> float:
        return (self.input_rate + self.output_rate) / 2

    def cost(self, input_tokens: int, output_tokens: int) -> tuple[float, float]:
        return (input_tokens / 1000) * self.input_rate, (output_tokens / 1000) * self.output_rate


class PricingTable(Mapping[str, ModelRate]):
    """Read-only model -> rate map, injected into the usage ledger."""

    def __init__(self, rates: Mapping[str, ModelRate | tuple[float, float]]) -> None:
        normalized: dict[str, ModelRate] = {}
        for model, rate in rates.items():
            normalized[model] = rate if isinstance(rate, ModelRate) else ModelRate(*rate)
        self._rates = MappingProxyType(normalized)

    def __getitem__(self, model: str) -> ModelRate:
        return self._rates[model]

    def __iter__(self) -> Iterator[str]:
        return iter(self._rates)

    def __len__(self) -> int:
        return len(self._rates)

    def rate_for(self, model: str) -> ModelRate:
        try:
            return self._rates[model]
        except KeyError:
            raise UnknownModelError(model) from None

    def with_rates(self, overrides: Mapping[str, ModelRate | tuple[float, float]]) -> "PricingTable":
        merged: dict[str, ModelRate | tuple[float, float]] = dict(self._rates)
        merged.update(overrides)
        return PricingTable(merged)


DEFAULT_PRICING = PricingTable(DEFAULT_MODEL_RATES)
