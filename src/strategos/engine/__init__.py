"""Decision engines for Strategos.

This module contains the five components of the decision engine:
- payoff: Payoff matrix construction from agent roles and context
- nash: Pure-strategy Nash equilibrium enumeration and ranking
- decision_tree: Bounded-depth decision trees and path search
- utility: Opponent-independent utility scoring of candidate strategies
- arbiter: Runs the applicable engines and fuses their answers

Usage:
    from strategos.engine import create_arbiter
    from strategos.models import Agent, Context

    arbiter = create_arbiter()
    attacker = Agent(id="a1", role="attack", stats={"health": 80})
    defender = Agent(id="d1", role="defense")

    rec = arbiter.decide(attacker, defender, Context(environment="battle"))
    print(rec.strategy, rec.confidence)
    print(rec.detailed_analysis.combination_method)
"""

from strategos.engine.arbiter import (
    FALLBACK_METHOD,
    LAST_RESORT_METHOD,
    StrategyArbiter,
    create_arbiter,
    path_confidence,
    positional_decay,
)
from strategos.engine.decision_tree import DecisionTreeEngine, node_count, state_adjustments
from strategos.engine.nash import NashEquilibriumSolver
from strategos.engine.payoff import PayoffMatrixEngine, round_half_up
from strategos.engine.utility import (
    UtilityEvaluator,
    alignment_bonus,
    calculate_utility,
    combine,
    create_normalizer,
    expected_utility,
    perturb_factors,
)

__all__ = [
    # Arbiter
    "StrategyArbiter",
    "create_arbiter",
    "path_confidence",
    "positional_decay",
    "FALLBACK_METHOD",
    "LAST_RESORT_METHOD",
    # Engines
    "PayoffMatrixEngine",
    "NashEquilibriumSolver",
    "DecisionTreeEngine",
    "UtilityEvaluator",
    # Helpers
    "round_half_up",
    "node_count",
    "state_adjustments",
    "alignment_bonus",
    "calculate_utility",
    "combine",
    "create_normalizer",
    "expected_utility",
    "perturb_factors",
]
