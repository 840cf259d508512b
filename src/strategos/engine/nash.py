"""Pure-strategy Nash equilibrium enumeration.

Strategy sets hold three labels per role, so exhaustive enumeration over
every profile is cheap. A profile is an equilibrium iff no player gains by
unilaterally switching; it is strict iff every switch is strictly worse.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from strategos.cache import StrategyCache
from strategos.errors import InvalidInputError
from strategos.models.matrices import NashEquilibrium, PayoffMatrix

logger = logging.getLogger(__name__)

EQUILIBRIA_NAMESPACE = "equilibria"


class NashEquilibriumSolver:
    """Finds and ranks pure-strategy equilibria of a PayoffMatrix."""

    def __init__(self, cache: StrategyCache | None = None):
        self.cache = cache if cache is not None else StrategyCache()

    def find_all(self, matrix: PayoffMatrix) -> tuple[NashEquilibrium, ...]:
        """Every pure equilibrium, in row-major profile order. May be empty."""
        return self.cache.get_or_create(EQUILIBRIA_NAMESPACE, matrix.key(), lambda: self._enumerate(matrix))

    def find_best_for(self, matrix: PayoffMatrix, player_id: str) -> NashEquilibrium | None:
        """Equilibrium with the highest payoff for player_id.

        Ties go to the first equilibrium found. Returns None when the matrix
        has no pure equilibrium; that is an expected outcome, not an error.
        """
        equilibria = self.find_all(matrix)
        if not equilibria:
            logger.debug(f"No pure equilibrium for {player_id} in {matrix.shape} matrix")
            return None
        return max(equilibria, key=lambda e: e.payoffs[player_id])

    def find_pareto_optimal(self, matrix: PayoffMatrix) -> list[NashEquilibrium]:
        """Equilibria not Pareto-dominated by another equilibrium."""
        equilibria = self.find_all(matrix)
        return [
            candidate
            for candidate in equilibria
            if not any(_dominates(other, candidate) for other in equilibria if other is not candidate)
        ]

    def is_equilibrium(self, matrix: PayoffMatrix, profile: Mapping[str, str]) -> bool:
        return all(gap >= 0 for player in matrix.players for gap in self._deviation_gaps(matrix, profile, player))

    def is_strict(self, matrix: PayoffMatrix, profile: Mapping[str, str]) -> bool:
        return all(gap > 0 for player in matrix.players for gap in self._deviation_gaps(matrix, profile, player))

    def _deviation_gaps(self, matrix: PayoffMatrix, profile: Mapping[str, str], player: str) -> list[float]:
        """Payoff lost by each unilateral deviation of player (negative = gain)."""
        chosen = profile.get(player)
        if chosen not in matrix.strategies[player]:
            raise InvalidInputError(f"Profile strategy {chosen!r} is not available to {player!r}")
        opponent = matrix.opponent_of(player)
        current = matrix.payoff(player, chosen, profile[opponent])
        return [
            current - matrix.payoff(player, alternative, profile[opponent])
            for alternative in matrix.strategies[player]
            if alternative != chosen
        ]

    def _enumerate(self, matrix: PayoffMatrix) -> tuple[NashEquilibrium, ...]:
        first, second = matrix.players
        found = []
        for own in matrix.strategies[first]:
            for other in matrix.strategies[second]:
                profile = {first: own, second: other}
                if not self.is_equilibrium(matrix, profile):
                    continue
                found.append(
                    NashEquilibrium(
                        profile=profile,
                        payoffs={p: matrix.profile_payoff(p, profile) for p in matrix.players},
                        is_strict=self.is_strict(matrix, profile),
                    )
                )
        logger.debug(f"Found {len(found)} pure equilibria in {matrix.shape} matrix")
        return tuple(found)


def _dominates(a: NashEquilibrium, b: NashEquilibrium) -> bool:
    """True if a is at least as good as b for everyone and better for someone."""
    players = a.payoffs.keys()
    return all(a.payoffs[p] >= b.payoffs[p] for p in players) and any(a.payoffs[p] > b.payoffs[p] for p in players)
