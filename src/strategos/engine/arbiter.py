"""Strategy arbitration: runs the engines and fuses their answers.

Which engines run depends on the inputs:
- Nash (payoff matrix + equilibrium solver) when an opponent is present
- Utility always
- Decision tree when the context marks a multi-step scenario

Each engine's output becomes per-strategy scores. Nash and tree add
weight * confidence for their pick and weight * confidence * e^(-pos/2)
for alternatives; utility adds weight * normalized_utility * confidence
for every candidate. The highest score wins.

Engine failures are logged and excluded from the fusion. If nothing
survives, the arbiter answers with a utility-only fallback; the host
always receives a Recommendation. The one exception is
EmptyCandidateSetError, which signals a broken strategy table and is
re-raised.
"""

from __future__ import annotations

import logging
import math
import statistics
import threading
from collections.abc import Callable, Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import TypeVar

from strategos.cache import StrategyCache
from strategos.config import EngineSettings, load_settings
from strategos.engine.decision_tree import DecisionTreeEngine
from strategos.engine.nash import NashEquilibriumSolver
from strategos.engine.payoff import PayoffMatrixEngine
from strategos.engine.utility import UtilityEvaluator
from strategos.errors import AllEnginesFailedError, EmptyCandidateSetError, MalformedTreeError, StrategyEngineError
from strategos.models.agents import Agent, Context, Role, role_name
from strategos.models.matrices import PayoffMatrix
from strategos.models.results import (
    NASH,
    TREE,
    UTILITY,
    DetailedAnalysis,
    EngineWeights,
    MultiStepDecisionResult,
    Recommendation,
    StrategyDecisionResult,
    StrategyScore,
    UtilityEvaluation,
)
from strategos.models.trees import DecisionPath
from strategos.parameters import (
    DEFAULT_ENGINE_WEIGHTS,
    DEFAULT_STRATEGIES,
    LAST_RESORT_CONFIDENCE,
    NO_EQUILIBRIUM_CONFIDENCE,
    STRATEGY_SETS,
    STRICT_EQUILIBRIUM_BONUS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_METHOD = "Fallback to utility-only"
LAST_RESORT_METHOD = "Last-resort default"

ENGINE_TAGS = {"nash": NASH, "utility": UTILITY, "tree": TREE}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def positional_decay(position: int) -> float:
    """Weight of the alternative at 1-based position: e^(-position/2)."""
    return math.exp(-position / 2)


def path_confidence(path: DecisionPath) -> float:
    """Heuristic confidence of a decision path from its payoff and length."""
    confidence = 0.6
    if path.total_payoff > 20:
        confidence += 0.2
    elif path.total_payoff > 10:
        confidence += 0.1
    elif path.total_payoff < 5:
        confidence -= 0.1

    steps = len(path.decisions)
    if steps > 4:
        confidence -= 0.1
    elif steps <= 2:
        confidence += 0.1
    return clamp(confidence, 0.0, 1.0)


@dataclass(frozen=True)
class _EngineSet:
    """Engines wired to one settings snapshot. Swapped whole on reconfigure."""

    settings: EngineSettings
    payoff: PayoffMatrixEngine
    solver: NashEquilibriumSolver
    tree: DecisionTreeEngine
    utility: UtilityEvaluator

    @classmethod
    def wire(cls, settings: EngineSettings, cache: StrategyCache) -> "_EngineSet":
        return cls(
            settings=settings,
            payoff=PayoffMatrixEngine(cache, settings),
            solver=NashEquilibriumSolver(cache),
            tree=DecisionTreeEngine(cache, settings),
            utility=UtilityEvaluator(cache),
        )


class StrategyArbiter:
    """Entry point for host applications.

    Construct once and share: the arbiter is safe to call from several
    threads at once. The only shared mutable state is the memoization cache.

    Example:
        >>> arbiter = StrategyArbiter()
        >>> rec = arbiter.decide(Agent(id="a1", role="attack"), Agent(id="d1", role="defense"))
        >>> rec.strategy, rec.confidence
    """

    def __init__(self, settings: EngineSettings | None = None, cache: StrategyCache | None = None):
        settings = settings if settings is not None else EngineSettings()
        self.cache = cache if cache is not None else StrategyCache(settings.cache_size)
        self._lock = threading.Lock()
        self._engines = _EngineSet.wire(settings, self.cache)

    @property
    def settings(self) -> EngineSettings:
        return self._engines.settings

    @property
    def payoff_engine(self) -> PayoffMatrixEngine:
        return self._engines.payoff

    @property
    def solver(self) -> NashEquilibriumSolver:
        return self._engines.solver

    @property
    def tree_engine(self) -> DecisionTreeEngine:
        return self._engines.tree

    @property
    def utility_evaluator(self) -> UtilityEvaluator:
        return self._engines.utility

    # =========================================================================
    # Configuration
    # =========================================================================

    def reconfigure(self, settings: EngineSettings) -> None:
        """Swap settings and drop every memoized structure.

        Concurrent reconfigures are serialized by the arbiter lock; the cache
        clears under its own lock. Decisions already running finish on the
        engine snapshot they started with, and anything they cache afterwards
        is keyed by the old settings.
        """
        with self._lock:
            self.cache.resize(settings.cache_size)
            self._engines = _EngineSet.wire(settings, self.cache)
        logger.info(
            f"Reconfigured arbiter: max_depth={settings.max_depth}, "
            f"payoff_multiplier={settings.payoff_multiplier}, cache_size={settings.cache_size}"
        )

    def invalidate_caches(self) -> int:
        """Drop every memoized matrix, equilibrium set, tree and utility function."""
        removed = self.cache.invalidate()
        logger.info(f"Invalidated {removed} cached entries")
        return removed

    # =========================================================================
    # Individual engines
    # =========================================================================

    def determine_strategy(
        self, agent: Agent, opponent: Agent, context: Context | None = None
    ) -> StrategyDecisionResult:
        """Nash path: payoff matrix, then best-for-self equilibrium.

        With no pure equilibrium, picks the strategy with the highest
        average payoff across the opponent's strategies at confidence 0.5.
        """
        return self._determine_strategy(self._engines, agent, opponent, context)

    def evaluate_with_utility(
        self,
        agent: Agent,
        context: Context | None = None,
        strategies: Sequence[str] | None = None,
        custom_weights: Mapping[str, float] | None = None,
    ) -> list[UtilityEvaluation]:
        """Utility ranking of strategies (default: the agent's role set), best first."""
        return self._evaluate_with_utility(self._engines, agent, context, strategies, custom_weights)

    def determine_multi_step(self, agent: Agent, context: Context | None = None) -> MultiStepDecisionResult:
        """Decision tree path for the agent, state taken from stats and context factors."""
        return self._determine_multi_step(self._engines, agent, context)

    def _determine_strategy(
        self, engines: _EngineSet, agent: Agent, opponent: Agent, context: Context | None
    ) -> StrategyDecisionResult:
        matrix = engines.payoff.build_or_fallback(agent, opponent, context)
        player = agent.id
        equilibrium = engines.solver.find_best_for(matrix, player)
        if equilibrium is None:
            logger.warning(f"No Nash equilibrium for {agent.id} vs {opponent.id}; using max average payoff")
            return self._max_average_result(matrix, player)

        chosen = equilibrium.profile[player]
        expected = equilibrium.payoffs[player]
        opponent_strategy = equilibrium.profile[matrix.opponent_of(player)]

        def against_equilibrium(strategy: str) -> float:
            return matrix.payoff(player, strategy, opponent_strategy)

        alternatives = sorted(
            (s for s in matrix.strategies[player] if s != chosen),
            key=against_equilibrium,
            reverse=True,
        )
        advantage = expected - against_equilibrium(alternatives[0]) if alternatives else 0.0
        ratio = min(advantage / max(1.0, expected), 0.5) if advantage > 0 else 0.0
        strict_bonus = STRICT_EQUILIBRIUM_BONUS if equilibrium.is_strict else 0.0
        confidence = min(1.0, 0.5 + strict_bonus + ratio)

        kind = "strict" if equilibrium.is_strict else "weak"
        parts = [
            f"Strategy '{chosen}' is a {kind} Nash equilibrium with expected payoff {expected:g}.",
            f"{role_name(agent.role)} vs {role_name(opponent.role)} interaction favors this approach.",
        ]
        if matrix.is_fallback:
            parts.append("Fallback balanced/aggressive matrix used for an unrecognized role.")
        if context is not None:
            if context.environment is not None:
                parts.append(f"The {context.environment} environment was a factor in this decision.")
            if context.threat_level is not None and context.threat_level > 0.7:
                parts.append(f"High threat level ({context.threat_level:.2f}) influenced the decision.")
            if context.resource_scarcity is not None and context.resource_scarcity > 0.5:
                parts.append(f"Resource scarcity ({context.resource_scarcity:.2f}) was considered.")

        result = StrategyDecisionResult(
            chosen_strategy=chosen,
            expected_payoff=expected,
            confidence=confidence,
            alternative_strategies=alternatives,
            reasoning=" ".join(parts),
            equilibrium=equilibrium,
            used_fallback_matrix=matrix.is_fallback,
        )
        logger.debug(f"Nash pick for {agent.id}: {chosen} (confidence {confidence:.3f})")
        return result

    @staticmethod
    def _max_average_result(matrix: PayoffMatrix, player: str) -> StrategyDecisionResult:
        ranked = sorted(matrix.strategies[player], key=lambda s: matrix.average_payoff(player, s), reverse=True)
        best = ranked[0]
        return StrategyDecisionResult(
            chosen_strategy=best,
            expected_payoff=matrix.average_payoff(player, best),
            confidence=NO_EQUILIBRIUM_CONFIDENCE,
            alternative_strategies=ranked[1:],
            reasoning=f"No Nash equilibrium found. Strategy '{best}' chosen based on maximum average payoff.",
            used_fallback_matrix=matrix.is_fallback,
        )

    def _evaluate_with_utility(
        self,
        engines: _EngineSet,
        agent: Agent,
        context: Context | None,
        strategies: Sequence[str] | None,
        custom_weights: Mapping[str, float] | None,
    ) -> list[UtilityEvaluation]:
        candidates = strategies if strategies is not None else engines.payoff.strategies_for(agent.role)
        factors = engines.utility.extract_factors(agent, context)
        return engines.utility.evaluate_strategies(agent.role, candidates, factors, custom_weights)

    def _determine_multi_step(
        self, engines: _EngineSet, agent: Agent, context: Context | None
    ) -> MultiStepDecisionResult:
        state = {**agent.stats, **(context.factors if context is not None else {})}
        tree = engines.tree.build(agent.id, agent.role, state=state)
        best, alternatives = engines.tree.evaluate(tree, state)

        confidence = path_confidence(best)
        if alternatives:
            gap = best.total_payoff - alternatives[0].total_payoff
            confidence += min(0.2, max(0.0, gap) / max(1.0, best.total_payoff))
        confidence = clamp(confidence, 0.0, 1.0)

        decisions = best.decisions
        parts = [
            f"Multi-step strategy: {' -> '.join(decisions) or 'hold'} with total payoff {best.total_payoff:.2f}.",
            f"Based on {role_name(agent.role)} role characteristics and current conditions.",
        ]
        if best.conditions_failed:
            parts.append("Some step conditions are unmet, so the path payoff was halved.")
        if context is not None and context.environment is not None:
            parts.append(f"Consideration given to {context.environment} environment factors.")
        parts.append(f"Decision path optimized for {len(decisions)} steps ahead.")

        return MultiStepDecisionResult(
            decisions=decisions,
            expected_total_payoff=best.total_payoff,
            confidence=confidence,
            alternative_paths=[p.decisions for p in alternatives],
            alternative_payoffs=[p.total_payoff for p in alternatives],
            reasoning=" ".join(parts),
            conditions_failed=best.conditions_failed,
        )

    # =========================================================================
    # Fusion
    # =========================================================================

    def decide(self, agent: Agent, opponent: Agent | None = None, context: Context | None = None) -> Recommendation:
        """Run the applicable engines and fuse them into one recommendation.

        Raises:
            EmptyCandidateSetError: if a strategy table is empty
        """
        engines = self._engines
        failures: dict[str, BaseException] = {}

        nash_result = None
        if opponent is not None:
            nash_result = self._attempt(
                "nash", failures, lambda: self._determine_strategy(engines, agent, opponent, context)
            )

        utility_ranking = self._attempt(
            "utility", failures, lambda: self._evaluate_with_utility(engines, agent, context, None, None)
        )

        tree_result = None
        if context is not None and context.is_multi_step:
            tree_result = self._attempt("tree", failures, lambda: self._determine_multi_step(engines, agent, context))
            if tree_result is not None and not tree_result.decisions:
                # root-only path: evaluate() already recovered from a malformed tree
                failures["tree"] = MalformedTreeError(f"Decision tree for {agent.id} yielded no decisions")
                logger.warning(f"tree engine unavailable: {failures['tree']}")

        active = []
        if nash_result is not None:
            active.append("nash")
        if utility_ranking:
            active.append("utility")
        if tree_result is not None and tree_result.decisions:
            active.append("tree")

        if not active:
            return self._fallback(engines, agent, context, failures)

        weights = self.engine_weights(context, active)
        scores = self._score(weights, nash_result, utility_ranking, tree_result)

        ranked = sorted(scores.values(), key=lambda s: s.score, reverse=True)
        best = ranked[0]
        alternatives = [s.strategy for s in ranked[1 : 1 + engines.settings.max_alternatives]]

        gap_bonus = 0.0
        if len(ranked) > 1:
            gap_bonus = min(0.3, (best.score - ranked[1].score) / max(0.01, best.score))

        top_picks = {}
        if "nash" in active:
            top_picks[NASH] = nash_result.chosen_strategy
        if "utility" in active:
            top_picks[UTILITY] = utility_ranking[0].strategy
        if "tree" in active:
            top_picks[TREE] = tree_result.decisions[0]
        agreeing = [engine for engine, pick in top_picks.items() if pick == best.strategy]

        method = self.combination_method(best, top_picks, agreeing)
        agreement_bonus = min(0.2, 0.1 * max(0, len(agreeing) - 1))
        confidence = clamp(best.mean_confidence + gap_bonus + agreement_bonus, 0.0, 1.0)

        reasoning = (
            f"Strategy '{best.strategy}' selected using {method} approach. "
            f"Based on {', '.join(best.sources)} with confidence {confidence:.2f}. "
            f"Expected value: {best.mean_raw_score:.1f}."
        )
        if alternatives:
            reasoning += f" Alternative strategies: {', '.join(alternatives)}."

        logger.debug(f"Decision for {agent.id}: {best.strategy} via {method} (confidence {confidence:.3f})")
        return Recommendation(
            strategy=best.strategy,
            confidence=confidence,
            reasoning=reasoning,
            alternatives=alternatives,
            detailed_analysis=DetailedAnalysis(
                nash_equilibrium=nash_result,
                utility_ranking=utility_ranking,
                decision_tree=tree_result,
                combination_method=method,
                weights=weights,
                failed_engines=list(failures),
            ),
        )

    @staticmethod
    def _attempt(engine: str, failures: dict[str, BaseException], run: Callable[[], T]) -> T | None:
        """Run one engine, recording its failure instead of aborting the decision."""
        try:
            return run()
        except EmptyCandidateSetError:
            raise
        except StrategyEngineError as exc:
            logger.warning(f"{engine} engine unavailable: {exc}")
            failures[engine] = exc
        except Exception as exc:
            logger.exception(f"{engine} engine failed; excluding it from fusion")
            failures[engine] = exc
        return None

    @staticmethod
    def engine_weights(context: Context | None, active: Collection[str]) -> EngineWeights:
        """Context-adjusted engine weights, renormalized over the active engines.

        Inactive engines get 0. Active weights sum to 1.
        """
        nash = DEFAULT_ENGINE_WEIGHTS["nash"]
        utility = DEFAULT_ENGINE_WEIGHTS["utility"]
        tree = DEFAULT_ENGINE_WEIGHTS["tree"]

        if context is not None:
            if context.nash_reliability is not None:
                nash = clamp(context.nash_reliability, 0.1, 0.8)
            if context.utility_reliability is not None:
                utility = clamp(context.utility_reliability, 0.1, 0.8)
            if context.tree_reliability is not None:
                tree = clamp(context.tree_reliability, 0.1, 0.8)

            if context.complexity_score is not None:
                complexity = clamp(context.complexity_score, 0.0, 1.0)
                tree = min(0.6, tree + complexity * 0.2)
                nash = max(0.2, nash - complexity * 0.1)

            if context.environment == "battle":
                nash = min(0.7, nash * 1.25)
            elif context.environment == "cooperation":
                utility = min(0.7, utility * 1.25)
            elif context.environment == "exploration":
                tree = min(0.6, tree * 1.5)

            horizon = context.time_horizon
            if horizon > 3:
                tree = min(0.7, tree + horizon * 0.05)
                nash = max(0.1, nash - horizon * 0.03)

        raw = {"nash": nash, "utility": utility, "tree": tree}
        total = sum(raw[name] for name in active)
        if total <= 0:
            raise ValueError(f"No active engine carries weight: {sorted(active)}")
        return EngineWeights(**{name: (value / total if name in active else 0.0) for name, value in raw.items()})

    @staticmethod
    def _score(
        weights: EngineWeights,
        nash_result: StrategyDecisionResult | None,
        utility_ranking: list[UtilityEvaluation] | None,
        tree_result: MultiStepDecisionResult | None,
    ) -> dict[str, StrategyScore]:
        scores: dict[str, StrategyScore] = {}

        def entry(strategy: str) -> StrategyScore:
            if strategy not in scores:
                scores[strategy] = StrategyScore(strategy)
            return scores[strategy]

        if nash_result is not None and weights.nash > 0:
            confidence = nash_result.confidence
            payoff = nash_result.expected_payoff
            entry(nash_result.chosen_strategy).add(NASH, NASH, weights.nash * confidence, confidence, payoff)
            for position, alternative in enumerate(nash_result.alternative_strategies, start=1):
                decay = positional_decay(position)
                entry(alternative).add(
                    "Nash-alt", NASH, weights.nash * confidence * decay, confidence * decay, payoff * decay
                )

        if utility_ranking and weights.utility > 0:
            utilities = [e.utility for e in utility_ranking]
            low = min(utilities)
            spread = (max(utilities) - low) or 1.0
            mean = statistics.fmean(utilities)
            stdev = statistics.pstdev(utilities)
            for evaluation in utility_ranking:
                signal = (evaluation.utility - low) / spread
                z = abs(evaluation.utility - mean) / stdev if stdev > 0 else 0.0
                confidence = 0.5 + min(0.3, z * 0.1)
                entry(evaluation.strategy).add(
                    UTILITY, UTILITY, weights.utility * signal * confidence, confidence, evaluation.utility
                )

        if tree_result is not None and tree_result.decisions and weights.tree > 0:
            confidence = tree_result.confidence
            total = tree_result.expected_total_payoff
            entry(tree_result.decisions[0]).add(TREE, TREE, weights.tree * confidence, confidence, total)
            for position, path in enumerate(tree_result.alternative_paths, start=1):
                if not path:
                    continue
                decay = positional_decay(position)
                entry(path[0]).add("Tree-alt", TREE, weights.tree * confidence * decay, confidence * decay, total * decay)

        return scores

    @staticmethod
    def combination_method(best: StrategyScore, top_picks: Mapping[str, str], agreeing: Sequence[str]) -> str:
        """Label naming how the winner was reached.

        "Full consensus" when every active engine (two or more) picked the
        winner, "<A>-<B> agreement" when exactly two did, otherwise
        "<Engine>-dominated" for the engine contributing most to the winner.
        """
        if len(top_picks) > 1 and len(agreeing) == len(top_picks):
            return "Full consensus"
        if len(agreeing) == 2:
            return f"{agreeing[0]}-{agreeing[1]} agreement"
        dominant = max(best.contributions, key=lambda engine: best.contributions[engine])
        return f"{dominant}-dominated"

    # =========================================================================
    # Fallbacks
    # =========================================================================

    def _fallback(
        self,
        engines: _EngineSet,
        agent: Agent,
        context: Context | None,
        failures: dict[str, BaseException],
    ) -> Recommendation:
        logger.error(str(AllEnginesFailedError(failures)))
        role = agent.role if isinstance(agent.role, Role) else None
        strategies = STRATEGY_SETS[role] if role is not None else DEFAULT_STRATEGIES
        limit = engines.settings.max_alternatives

        try:
            factors = engines.utility.extract_factors(agent, context)
            if role is not None:
                ranking = engines.utility.evaluate_strategies(role, strategies, factors)
            else:
                ranking = engines.utility.evaluate_with_defaults(strategies, factors)
        except EmptyCandidateSetError:
            raise
        except Exception:
            logger.exception(f"Utility-only fallback failed for {agent.id}; returning default strategy")
            return Recommendation(
                strategy=strategies[0],
                confidence=LAST_RESORT_CONFIDENCE,
                reasoning=f"Default strategy '{strategies[0]}' returned because no engine could evaluate the situation.",
                alternatives=list(strategies[1 : 1 + limit]),
                detailed_analysis=DetailedAnalysis(
                    combination_method=LAST_RESORT_METHOD,
                    weights=EngineWeights(),
                    failed_engines=list(failures),
                ),
                is_fallback=True,
            )

        top = ranking[0]
        return Recommendation(
            strategy=top.strategy,
            confidence=engines.settings.fallback_confidence,
            reasoning=f"Fallback strategy after all engines failed. {top.reasoning}",
            alternatives=[e.strategy for e in ranking[1 : 1 + limit]],
            detailed_analysis=DetailedAnalysis(
                utility_ranking=ranking,
                combination_method=FALLBACK_METHOD,
                weights=EngineWeights(utility=1.0),
                failed_engines=list(failures),
            ),
            is_fallback=True,
        )


def create_arbiter(settings: EngineSettings | None = None) -> StrategyArbiter:
    """Create an arbiter, reading settings from the environment if none are given.

    Raises:
        pydantic.ValidationError: if an environment value is out of range
    """
    return StrategyArbiter(settings=settings if settings is not None else load_settings())
