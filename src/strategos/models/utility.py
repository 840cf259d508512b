"""Utility function structures for Strategos.

A UtilityFunction scores a factor map independently of any opponent:

    utility = sum(weight[f] * normalize_f(factor[f]))

over the factors present in both the weight map and the factor map.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@runtime_checkable
class Normalizer(Protocol):
    """Maps a raw factor value onto a comparable scale."""

    def __call__(self, value: float) -> float: ...


@dataclass(frozen=True)
class LinearNormalizer:
    """Linear map of [minimum, maximum] onto [0, 1], clamped.

    A degenerate range (minimum == maximum) maps everything to 0.5.
    """

    minimum: float = 0.0
    maximum: float = 1.0

    def __call__(self, value: float) -> float:
        if self.maximum == self.minimum:
            return 0.5
        return max(0.0, min(1.0, (value - self.minimum) / (self.maximum - self.minimum)))


@dataclass(frozen=True)
class SigmoidNormalizer:
    """Logistic map centred on midpoint; steeper for larger steepness."""

    midpoint: float = 0.5
    steepness: float = 1.0

    def __call__(self, value: float) -> float:
        exponent = -self.steepness * (value - self.midpoint)
        # math.exp overflows past ~709
        if exponent > 700:
            return 0.0
        return 1.0 / (1.0 + math.exp(exponent))


@dataclass(frozen=True)
class UtilityFunction:
    """Weighted, normalized scoring function over named factors.

    Attributes:
        weights: Factor name -> weight
        normalizers: Optional factor name -> Normalizer; factors without
            one contribute their raw value
    """

    weights: Mapping[str, float]
    normalizers: Mapping[str, Normalizer] = field(default_factory=dict)

    def calculate(self, factors: Mapping[str, float]) -> float:
        """Evaluate the function. Always returns a finite number."""
        utility = 0.0
        for name, raw in factors.items():
            weight = self.weights.get(name)
            if not weight:
                continue
            normalizer = self.normalizers.get(name)
            value = normalizer(raw) if normalizer is not None else raw
            utility += value * weight
        if not math.isfinite(utility):
            return 0.0
        return utility

    def __call__(self, factors: Mapping[str, float]) -> float:
        return self.calculate(factors)
