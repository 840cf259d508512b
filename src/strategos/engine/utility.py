"""Opponent-independent utility scoring of candidate strategies.

Each role has a default four-factor weight map (summing to 1.0) and a
linear normalization range per factor. Before a candidate strategy is
scored, its factor perturbation table is applied to the base factors, so
identical inputs still rank candidates differently.

Per-candidate confidence follows a fixed heuristic:

    0.5 + 0.1 * |z| + 0.2 * position + min(0.2, u / 100) - min(0.2, cv) + alignment

clamped to [0.1, 1], where z and cv use the population standard deviation
of all candidate utilities and alignment rewards the role's own strategies
(0.2 for the first, minus 0.05 per later position).
"""

from __future__ import annotations

import logging
import math
import statistics
from collections.abc import Mapping, Sequence
from typing import Literal

from strategos.cache import StrategyCache
from strategos.errors import EmptyCandidateSetError, InvalidInputError
from strategos.models.agents import Agent, Context, Role, resolve_role
from strategos.models.matrices import PayoffMatrix
from strategos.models.results import UtilityEvaluation
from strategos.models.utility import LinearNormalizer, Normalizer, SigmoidNormalizer, UtilityFunction
from strategos.parameters import (
    ALIGNMENT_STEP,
    ALIGNMENT_TOP_BONUS,
    BASE_FACTORS,
    DEFAULT_STRATEGIES,
    DEFAULT_UTILITY_RANGES,
    DEFAULT_UTILITY_WEIGHTS,
    ROLE_FACTOR_BOOSTS,
    STRATEGY_FACTOR_MULTIPLIERS,
    STRATEGY_RATIONALE,
    STRATEGY_SETS,
    UTILITY_RANGES,
    UTILITY_WEIGHTS,
)

logger = logging.getLogger(__name__)

UTILITY_NAMESPACE = "utility"

MIN_CANDIDATE_CONFIDENCE = 0.1
SINGLE_CANDIDATE_CONFIDENCE = 0.5


def calculate_utility(factors: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Un-normalized weighted sum over factors present in both maps."""
    total = sum(weights[name] * value for name, value in factors.items() if name in weights)
    return total if math.isfinite(total) else 0.0


def create_normalizer(kind: Literal["linear", "sigmoid"], **params: float) -> Normalizer:
    """Build a normalizer by name.

    Linear takes minimum/maximum (default 0/1); sigmoid takes
    midpoint/steepness (default 0.5/1).

    Raises:
        InvalidInputError: for an unknown kind
    """
    if kind == "linear":
        return LinearNormalizer(params.get("minimum", 0.0), params.get("maximum", 1.0))
    if kind == "sigmoid":
        return SigmoidNormalizer(params.get("midpoint", 0.5), params.get("steepness", 1.0))
    raise InvalidInputError(f"Unknown normalizer kind: {kind!r}")


def combine(functions: Sequence[UtilityFunction], weights: Sequence[float]) -> UtilityFunction:
    """Weighted combination of utility functions.

    The mixing weights are renormalized to sum to 1, then each function's
    factor weights are scaled and summed. Where several functions normalize
    the same factor, the first one's normalizer is kept.

    Raises:
        InvalidInputError: on mismatched lengths, no functions, or weights
            that do not sum to a positive number
    """
    if not functions:
        raise InvalidInputError("combine() needs at least one utility function")
    if len(functions) != len(weights):
        raise InvalidInputError(f"Got {len(functions)} functions but {len(weights)} weights")
    total = sum(weights)
    if total <= 0:
        raise InvalidInputError(f"Combination weights must sum to a positive number, got {total}")

    combined: dict[str, float] = {}
    normalizers: dict[str, Normalizer] = {}
    for function, weight in zip(functions, weights):
        share = weight / total
        for name, factor_weight in function.weights.items():
            combined[name] = combined.get(name, 0.0) + factor_weight * share
        for name, normalizer in function.normalizers.items():
            normalizers.setdefault(name, normalizer)
    return UtilityFunction(weights=combined, normalizers=normalizers)


def perturb_factors(strategy: str, factors: Mapping[str, float]) -> dict[str, float]:
    """Apply a strategy's factor multipliers.

    A multiplier on a missing factor yields 0. Unknown strategies get the
    factors back unchanged.
    """
    perturbed = dict(factors)
    for name, multiplier in STRATEGY_FACTOR_MULTIPLIERS.get(strategy, {}).items():
        perturbed[name] = factors.get(name, 0.0) * multiplier
    return perturbed


def alignment_bonus(strategy: str, aligned: Sequence[str]) -> float:
    if strategy not in aligned:
        return 0.0
    return ALIGNMENT_TOP_BONUS - ALIGNMENT_STEP * aligned.index(strategy)


def expected_utility(
    matrix: PayoffMatrix,
    profile: Mapping[str, str],
    weights_by_player: Mapping[str, Mapping[str, float]],
) -> dict[str, float]:
    """Utility each player draws from a strategy profile.

    The player's payoff under the profile is scored as the single factor
    "payoff" with that player's weights. A player without weights gets 0.
    """
    return {
        player: calculate_utility({"payoff": matrix.profile_payoff(player, profile)}, weights_by_player.get(player, {}))
        for player in matrix.players
    }


class UtilityEvaluator:
    """Scores strategies with role utility functions.

    Utility functions are memoized per (role, weights) in the injected
    StrategyCache.
    """

    def __init__(self, cache: StrategyCache | None = None):
        self.cache = cache if cache is not None else StrategyCache()

    def create_function(self, role: Role | str, custom_weights: Mapping[str, float] | None = None) -> UtilityFunction:
        """Utility function for role.

        custom_weights replace the role defaults outright; they are not
        merged. Factors with a known range for the role are normalized
        linearly, others contribute their raw value.

        Raises:
            UnknownRoleError: if role is unrecognized
        """
        resolved = resolve_role(role)
        weights = dict(custom_weights) if custom_weights is not None else dict(UTILITY_WEIGHTS[resolved])
        key = (resolved.value, tuple(sorted(weights.items())))
        return self.cache.get_or_create(
            UTILITY_NAMESPACE,
            key,
            lambda: self._make_function(weights, UTILITY_RANGES[resolved]),
        )

    def default_function(self) -> UtilityFunction:
        """Role-agnostic function used when the role cannot be resolved."""
        return self.cache.get_or_create(
            UTILITY_NAMESPACE,
            ("default", tuple(sorted(DEFAULT_UTILITY_WEIGHTS.items()))),
            lambda: self._make_function(DEFAULT_UTILITY_WEIGHTS, DEFAULT_UTILITY_RANGES),
        )

    @staticmethod
    def _make_function(weights: Mapping[str, float], ranges: Mapping[str, tuple[float, float]]) -> UtilityFunction:
        normalizers = {name: LinearNormalizer(*ranges[name]) for name in weights if name in ranges}
        return UtilityFunction(weights=dict(weights), normalizers=normalizers)

    def evaluate_strategies(
        self,
        role: Role | str,
        strategies: Sequence[str],
        factors: Mapping[str, float],
        custom_weights: Mapping[str, float] | None = None,
    ) -> list[UtilityEvaluation]:
        """Rank strategies by utility, best first.

        Raises:
            EmptyCandidateSetError: if strategies is empty
            UnknownRoleError: if role is unrecognized
        """
        if not strategies:
            raise EmptyCandidateSetError("Cannot evaluate an empty strategy list")
        resolved = resolve_role(role)
        function = self.create_function(resolved, custom_weights)
        return self._rank(function, strategies, factors, STRATEGY_SETS[resolved], resolved.value)

    def evaluate_with_defaults(self, strategies: Sequence[str], factors: Mapping[str, float]) -> list[UtilityEvaluation]:
        """Rank strategies with the role-agnostic default weights.

        Raises:
            EmptyCandidateSetError: if strategies is empty
        """
        if not strategies:
            raise EmptyCandidateSetError("Cannot evaluate an empty strategy list")
        return self._rank(self.default_function(), strategies, factors, DEFAULT_STRATEGIES, "generic")

    def _rank(
        self,
        function: UtilityFunction,
        strategies: Sequence[str],
        factors: Mapping[str, float],
        aligned: Sequence[str],
        role_label: str,
    ) -> list[UtilityEvaluation]:
        scored = []
        for strategy in strategies:
            perturbed = perturb_factors(strategy, factors)
            scored.append((strategy, function.calculate(perturbed), perturbed))

        utilities = [u for _, u, _ in scored]
        confidences = self._confidences(scored, utilities, aligned)

        evaluations = [
            UtilityEvaluation(
                strategy=strategy,
                utility=utility,
                confidence=confidence,
                reasoning=self._reasoning(strategy, perturbed, utility, role_label, confidence),
            )
            for (strategy, utility, perturbed), confidence in zip(scored, confidences)
        ]
        evaluations.sort(key=lambda e: e.utility, reverse=True)
        logger.debug(f"Utility ranking ({role_label}): {[(e.strategy, round(e.utility, 3)) for e in evaluations]}")
        return evaluations

    @staticmethod
    def _confidences(scored: list, utilities: list[float], aligned: Sequence[str]) -> list[float]:
        if len(utilities) < 2:
            return [SINGLE_CANDIDATE_CONFIDENCE] * len(utilities)

        high, low = max(utilities), min(utilities)
        spread = high - low
        mean = statistics.fmean(utilities)
        stdev = statistics.pstdev(utilities)
        cv = stdev / mean if mean != 0 else 0.0

        confidences = []
        for strategy, utility, _ in scored:
            z = abs(utility - mean) / stdev if stdev > 0 else 0.0
            position = (utility - low) / spread if spread > 0 else 0.0
            confidence = (
                0.5
                + 0.1 * z
                + 0.2 * position
                + min(0.2, utility / 100)
                - min(0.2, cv)
                + alignment_bonus(strategy, aligned)
            )
            confidences.append(max(MIN_CANDIDATE_CONFIDENCE, min(1.0, confidence)))
        return confidences

    @staticmethod
    def _reasoning(strategy: str, factors: Mapping[str, float], utility: float, role_label: str, confidence: float) -> str:
        top = sorted(factors.items(), key=lambda item: item[1], reverse=True)[:3]
        listed = ", ".join(f"{name}: {value:.2f}" for name, value in top)
        parts = [f"Strategy '{strategy}' has utility {utility:.2f}."]
        if listed:
            parts.append(f"Top factors for this {role_label} strategy are {listed}.")
        if strategy in STRATEGY_RATIONALE:
            parts.append(STRATEGY_RATIONALE[strategy])
        parts.append(f"Confidence: {confidence:.2f}.")
        return " ".join(parts)

    def extract_factors(self, agent: Agent, context: Context | None = None) -> dict[str, float]:
        """Base factor map for an agent.

        Layered as BASE_FACTORS, then agent stats, then context factors,
        then the role's additive boosts (skipped for unknown roles).
        """
        factors = dict(BASE_FACTORS)
        factors.update(agent.stats)
        if context is not None:
            factors.update(context.factors)
        if isinstance(agent.role, Role):
            for name, boost in ROLE_FACTOR_BOOSTS[agent.role].items():
                factors[name] = factors.get(name, 0.0) + boost
        return factors
