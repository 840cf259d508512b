"""Normal-form game structures for Strategos.

A PayoffMatrix is built fresh for every decision (or served from the
memoization cache) and is never patched after construction. Context
modifiers are folded in by the builder, not applied in place.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class PayoffMatrix:
    """Two-player payoff table.

    payoffs[player][own_strategy][opponent_strategy] is the payoff player
    receives. The table is fully populated for every strategy pair of both
    players.

    Attributes:
        players: The two player ids, row player first
        strategies: Ordered strategy labels per player
        payoffs: Nested payoff table
        is_fallback: True for the hard-coded balanced/aggressive matrix
    """

    players: tuple[str, str]
    strategies: Mapping[str, tuple[str, ...]]
    payoffs: Mapping[str, Mapping[str, Mapping[str, float]]]
    is_fallback: bool = False
    _key: tuple = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate that the table is complete."""
        if len(self.players) != 2 or self.players[0] == self.players[1]:
            raise ValueError(f"A payoff matrix needs two distinct players, got {self.players}")
        for player in self.players:
            opponent = self.opponent_of(player)
            if not self.strategies.get(player):
                raise ValueError(f"Player {player!r} has no strategies")
            for own in self.strategies[player]:
                for other in self.strategies[opponent]:
                    if other not in self.payoffs.get(player, {}).get(own, {}):
                        raise ValueError(f"Missing payoff for {player!r}: ({own}, {other})")
        key = tuple(
            (player, own, other, self.payoffs[player][own][other])
            for player in self.players
            for own in self.strategies[player]
            for other in self.strategies[self.opponent_of(player)]
        )
        object.__setattr__(self, "_key", key)

    def opponent_of(self, player: str) -> str:
        if player == self.players[0]:
            return self.players[1]
        if player == self.players[1]:
            return self.players[0]
        raise KeyError(f"{player!r} is not a player in this matrix")

    def payoff(self, player: str, own_strategy: str, opponent_strategy: str) -> float:
        return self.payoffs[player][own_strategy][opponent_strategy]

    def profile_payoff(self, player: str, profile: Mapping[str, str]) -> float:
        """Payoff of player under a full strategy profile."""
        return self.payoff(player, profile[player], profile[self.opponent_of(player)])

    def average_payoff(self, player: str, strategy: str) -> float:
        """Mean payoff of strategy across every opponent strategy."""
        opponent_strategies = self.strategies[self.opponent_of(player)]
        total = sum(self.payoff(player, strategy, other) for other in opponent_strategies)
        return total / len(opponent_strategies)

    def key(self) -> tuple:
        """Hashable identity of the full table, used for memoization."""
        return self._key

    @property
    def shape(self) -> tuple[int, int]:
        return len(self.strategies[self.players[0]]), len(self.strategies[self.players[1]])


class NashEquilibrium(BaseModel):
    """A pure-strategy Nash equilibrium.

    Attributes:
        profile: Strategy chosen by each player
        payoffs: Payoff realized by each player under the profile
        is_strict: True if every unilateral deviation is strictly worse
        is_pure: Always True; mixed equilibria are not enumerated
    """

    model_config = ConfigDict(frozen=True)

    profile: dict[str, str]
    payoffs: dict[str, float]
    is_strict: bool
    is_pure: bool = True
