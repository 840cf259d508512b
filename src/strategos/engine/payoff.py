"""Payoff matrix construction.

Builds the two-player normal-form game for a pair of agents:

    payoff = ROLE_ADVANTAGE[own][other] + AGGRESSIVENESS[own strategy]
             - COUNTER_PENALTY if the opponent plays a counter

and, when a Context is supplied, folds in the context modifiers in a fixed
order (environment, threat, scarcity, synergy, cooperation, familiarity)
before clamping to [payoff_floor, payoff_ceiling].

Unknown roles raise UnknownRoleError from build(); build_or_fallback()
recovers with the 2x2 balanced/aggressive matrix so downstream components
never see an empty game.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence

from strategos.cache import StrategyCache
from strategos.config import EngineSettings
from strategos.errors import EmptyCandidateSetError, InvalidInputError, UnknownRoleError
from strategos.models.agents import Agent, Context, Role, resolve_role, role_name
from strategos.models.matrices import PayoffMatrix
from strategos.parameters import (
    AGGRESSIVENESS,
    COUNTER_PENALTY,
    COUNTER_STRATEGIES,
    ENVIRONMENT_MODIFIERS,
    FALLBACK_MATRIX_PAYOFFS,
    FALLBACK_MATRIX_STRATEGIES,
    FAMILIARITY_CAP,
    NON_AGGRESSIVE_EXCLUSIONS,
    ROLE_ADVANTAGE,
    ROLE_SYNERGY,
    SCARCITY_MODIFIERS,
    SCARCITY_THRESHOLD,
    SOCIAL_THRESHOLD,
    STRATEGY_SETS,
    THREAT_MODIFIERS,
    THREAT_THRESHOLD,
)

logger = logging.getLogger(__name__)

MATRIX_NAMESPACE = "matrix"

PayoffFn = Callable[[str, str, str], float]
"""payoff_fn(player, own_strategy, opponent_strategy) -> payoff."""


def round_half_up(value: float) -> float:
    """Round to the nearest integer, halves towards +infinity."""
    return float(math.floor(value + 0.5))


class PayoffMatrixEngine:
    """Builds PayoffMatrix instances for agent pairs.

    The engine holds no state of its own; memoized matrices live in the
    injected StrategyCache.
    """

    def __init__(self, cache: StrategyCache | None = None, settings: EngineSettings | None = None):
        self.cache = cache if cache is not None else StrategyCache()
        self.settings = settings if settings is not None else EngineSettings()

    def strategies_for(self, role: Role | str) -> tuple[str, ...]:
        """Fixed strategy set of a role.

        Raises:
            UnknownRoleError: if role names no Role
        """
        return STRATEGY_SETS[resolve_role(role)]

    def build_matrix(
        self,
        players: tuple[str, str],
        strategies: Mapping[str, Sequence[str]],
        payoff_fn: PayoffFn,
    ) -> PayoffMatrix:
        """Build a matrix for arbitrary players and strategy sets.

        Args:
            players: Row player id, column player id
            strategies: Strategy labels per player id
            payoff_fn: Called once per (player, own, opponent) triple

        Raises:
            EmptyCandidateSetError: if either player has no strategies
        """
        for player in players:
            if not strategies.get(player):
                raise EmptyCandidateSetError(f"Player {player!r} has an empty strategy set")

        first, second = players
        payoffs: dict[str, dict[str, dict[str, float]]] = {}
        for player, opponent in ((first, second), (second, first)):
            payoffs[player] = {
                own: {other: float(payoff_fn(player, own, other)) for other in strategies[opponent]}
                for own in strategies[player]
            }
        return PayoffMatrix(
            players=(first, second),
            strategies={p: tuple(strategies[p]) for p in players},
            payoffs=payoffs,
        )

    def build_symmetric(
        self,
        strategies: Sequence[str],
        table: Mapping[str, Mapping[str, float]],
        players: tuple[str, str] = ("player1", "player2"),
    ) -> PayoffMatrix:
        """Build a symmetric game from one payoff table.

        table[own][other] is the payoff of playing own against other, for
        either player. The column player's payoffs are the transpose of the
        row player's.

        Raises:
            EmptyCandidateSetError: if strategies is empty
            InvalidInputError: if the table misses a strategy pair
        """
        for own in strategies:
            for other in strategies:
                if other not in table.get(own, {}):
                    raise InvalidInputError(f"Symmetric payoff table has no entry for ({own}, {other})")

        return self.build_matrix(
            players,
            {player: strategies for player in players},
            lambda player, own, other: table[own][other],
        )

    def build(self, agent: Agent, opponent: Agent, context: Context | None = None) -> PayoffMatrix:
        """Build (or fetch from cache) the matrix for agent vs opponent.

        Raises:
            UnknownRoleError: if either role is unrecognized
        """
        own_role = resolve_role(agent.role)
        other_role = resolve_role(opponent.role)
        key = (
            agent.id,
            own_role.value,
            opponent.id,
            other_role.value,
            context.fingerprint() if context is not None else None,
            self.settings.payoff_floor,
            self.settings.payoff_ceiling,
        )
        return self.cache.get_or_create(
            MATRIX_NAMESPACE,
            key,
            lambda: self._build(agent.id, own_role, opponent.id, other_role, context),
        )

    def build_or_fallback(self, agent: Agent, opponent: Agent, context: Context | None = None) -> PayoffMatrix:
        """Like build(), but answers an unknown role with the fallback matrix."""
        try:
            return self.build(agent, opponent, context)
        except UnknownRoleError as exc:
            logger.warning(
                f"{exc}; using fallback matrix for {agent.id} ({role_name(agent.role)}) "
                f"vs {opponent.id} ({role_name(opponent.role)})"
            )
            return self.fallback_matrix(agent.id, opponent.id)

    def fallback_matrix(self, agent_id: str, opponent_id: str) -> PayoffMatrix:
        """The fixed 2x2 balanced/aggressive game, symmetric in both players."""
        strategies = {agent_id: FALLBACK_MATRIX_STRATEGIES, opponent_id: FALLBACK_MATRIX_STRATEGIES}
        payoffs = {
            player: {own: dict(row) for own, row in FALLBACK_MATRIX_PAYOFFS.items()}
            for player in (agent_id, opponent_id)
        }
        return PayoffMatrix(
            players=(agent_id, opponent_id),
            strategies=strategies,
            payoffs=payoffs,
            is_fallback=True,
        )

    def strategy_payoff(
        self,
        own_role: Role,
        other_role: Role,
        own_strategy: str,
        other_strategy: str,
        other_id: str,
        context: Context | None = None,
    ) -> float:
        """Payoff of one cell from the own player's point of view."""
        payoff = ROLE_ADVANTAGE[own_role][other_role] + AGGRESSIVENESS.get(own_strategy, 0)
        if other_strategy in COUNTER_STRATEGIES.get(own_strategy, frozenset()):
            payoff -= COUNTER_PENALTY
        if context is None:
            return float(payoff)
        return self._apply_context(payoff, own_role, other_role, own_strategy, other_strategy, other_id, context)

    def _build(
        self,
        agent_id: str,
        own_role: Role,
        opponent_id: str,
        other_role: Role,
        context: Context | None,
    ) -> PayoffMatrix:
        roles = {agent_id: (own_role, other_role, opponent_id), opponent_id: (other_role, own_role, agent_id)}

        def payoff_fn(player: str, own: str, other: str) -> float:
            mine, theirs, their_id = roles[player]
            return self.strategy_payoff(mine, theirs, own, other, their_id, context)

        matrix = self.build_matrix(
            (agent_id, opponent_id),
            {agent_id: STRATEGY_SETS[own_role], opponent_id: STRATEGY_SETS[other_role]},
            payoff_fn,
        )
        logger.debug(f"Built {matrix.shape} payoff matrix for {own_role.value} vs {other_role.value}")
        return matrix

    def _apply_context(
        self,
        payoff: float,
        own_role: Role,
        other_role: Role,
        own_strategy: str,
        other_strategy: str,
        other_id: str,
        context: Context,
    ) -> float:
        if context.environment is not None:
            payoff += ENVIRONMENT_MODIFIERS.get(context.environment, {}).get(own_strategy, 0)

        threat = context.threat_level
        if threat is not None and threat > THREAT_THRESHOLD and own_strategy in THREAT_MODIFIERS:
            payoff += math.floor(THREAT_MODIFIERS[own_strategy] * (threat - THREAT_THRESHOLD) * 2)

        scarcity = context.resource_scarcity
        if scarcity is not None and scarcity > SCARCITY_THRESHOLD and own_strategy in SCARCITY_MODIFIERS:
            payoff += math.floor(SCARCITY_MODIFIERS[own_strategy] * (scarcity - SCARCITY_THRESHOLD) * 2)

        payoff = round_half_up(payoff * ROLE_SYNERGY[own_role][other_role])

        social = context.social_factor
        if (
            social is not None
            and social > SOCIAL_THRESHOLD
            and own_strategy not in NON_AGGRESSIVE_EXCLUSIONS
            and other_strategy not in NON_AGGRESSIVE_EXCLUSIONS
        ):
            payoff += math.floor((social - SOCIAL_THRESHOLD) * 4)

        interactions = context.interactions_with(other_id)
        if interactions > 0:
            payoff += min(FAMILIARITY_CAP, math.log2(interactions + 1))

        return float(max(self.settings.payoff_floor, min(self.settings.payoff_ceiling, payoff)))
