"""Determinism and thread-safety properties.

Tests verify:
1. Identical inputs give byte-identical serialized recommendations
2. Cold and warm caches give the same answers
3. Parallel evaluation of independent pairs matches sequential evaluation
4. Confidence stays in [0, 1] for every role pairing
"""

import itertools
from concurrent.futures import ThreadPoolExecutor

import pytest

from strategos.cache import StrategyCache
from strategos.config import EngineSettings
from strategos.engine.arbiter import StrategyArbiter
from strategos.models.agents import Agent, Context, Role

CONTEXTS = [
    None,
    Context(),
    Context(environment="battle", threat_level=0.8, resource_scarcity=0.6),
    Context(environment="cooperation", social_factor=0.9, previous_interactions={"opponent": 3}),
    Context(environment="exploration", time_horizon=4, factors={"energy_level": 60, "enemy_nearby": 1}),
    Context(complex_scenario=True, complexity_score=0.5, factors={"enemy_health": 20, "own_health": 35}),
]

PAIRS = [
    (Agent(id="agent", role=own, stats={"health": 70, "energy": 40}), Agent(id="opponent", role=other))
    for own, other in itertools.product(list(Role), repeat=2)
]


def decide_json(arbiter, agent, opponent, context):
    return arbiter.decide(agent, opponent, context).model_dump_json()


class TestDeterminism:
    """Repeated calls return identical structures."""

    @pytest.mark.parametrize("context", CONTEXTS)
    def test_repeated_calls_identical(self, arbiter, attacker, defender, context):
        first = decide_json(arbiter, attacker, defender, context)
        second = decide_json(arbiter, attacker, defender, context)
        assert first == second

    @pytest.mark.parametrize("context", CONTEXTS)
    def test_cold_and_warm_cache_agree(self, attacker, defender, context):
        warm = StrategyArbiter()
        decide_json(warm, attacker, defender, context)
        cold = StrategyArbiter(cache=StrategyCache(max_size=0))
        assert decide_json(warm, attacker, defender, context) == decide_json(cold, attacker, defender, context)

    def test_component_results_repeat(self, arbiter, attacker, defender):
        context = CONTEXTS[5]
        assert arbiter.determine_strategy(attacker, defender, context) == arbiter.determine_strategy(
            attacker, defender, context
        )
        assert arbiter.determine_multi_step(attacker, context) == arbiter.determine_multi_step(attacker, context)
        assert arbiter.evaluate_with_utility(attacker, context) == arbiter.evaluate_with_utility(attacker, context)


class TestConfidenceBounds:
    """Every confidence lies in [0, 1]."""

    @pytest.mark.parametrize("agent,opponent", PAIRS)
    @pytest.mark.parametrize("context", CONTEXTS)
    def test_all_confidences_bounded(self, arbiter, agent, opponent, context):
        rec = arbiter.decide(agent, opponent, context)
        analysis = rec.detailed_analysis
        confidences = [rec.confidence]
        if analysis.nash_equilibrium is not None:
            confidences.append(analysis.nash_equilibrium.confidence)
        if analysis.decision_tree is not None:
            confidences.append(analysis.decision_tree.confidence)
        confidences.extend(e.confidence for e in analysis.utility_ranking or [])
        assert all(0.0 <= c <= 1.0 for c in confidences)
        assert analysis.weights.total == pytest.approx(1.0, abs=1e-9)


@pytest.mark.slow
class TestConcurrency:
    """Independent pairs evaluated in parallel share one cache safely."""

    def test_parallel_matches_sequential(self):
        jobs = [(agent, opponent, context) for agent, opponent in PAIRS for context in CONTEXTS]

        sequential = StrategyArbiter()
        expected = [decide_json(sequential, *job) for job in jobs]

        shared = StrategyArbiter(cache=StrategyCache(max_size=64))
        with ThreadPoolExecutor(max_workers=8) as pool:
            for _ in range(3):
                results = list(pool.map(lambda job: decide_json(shared, *job), jobs))
                assert results == expected

    def test_reconfigure_during_decisions(self):
        arbiter = StrategyArbiter()
        agent, opponent = PAIRS[1]
        context = CONTEXTS[4]

        def work(i):
            if i % 10 == 0:
                arbiter.reconfigure(EngineSettings())
            return decide_json(arbiter, agent, opponent, context)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = set(pool.map(work, range(100)))
        assert len(results) == 1
