"""Tests for utility functions and strategy evaluation.

Tests verify:
1. Role default weights and linear normalization
2. Custom weights replace the defaults outright
3. Function combination renormalizes mixing weights
4. Strategy perturbations make identical factors rank differently
5. Per-candidate confidence stays in [0.1, 1]
"""

import math

import pytest

from strategos.engine.payoff import PayoffMatrixEngine
from strategos.engine.utility import (
    UtilityEvaluator,
    alignment_bonus,
    calculate_utility,
    combine,
    create_normalizer,
    expected_utility,
    perturb_factors,
)
from strategos.errors import EmptyCandidateSetError, InvalidInputError, UnknownRoleError
from strategos.models.agents import Agent, Context, Role
from strategos.models.utility import LinearNormalizer, SigmoidNormalizer, UtilityFunction
from strategos.parameters import STRATEGY_SETS, UTILITY_WEIGHTS


@pytest.fixture
def evaluator(cache):
    return UtilityEvaluator(cache)


# =============================================================================
# Normalizers and functions
# =============================================================================


class TestNormalizers:
    """Tests for linear and sigmoid normalizers."""

    def test_linear_maps_range(self):
        normalizer = LinearNormalizer(0, 10)
        assert normalizer(5) == 0.5
        assert normalizer(-3) == 0.0
        assert normalizer(30) == 1.0

    def test_linear_degenerate_range(self):
        assert LinearNormalizer(4, 4)(100) == 0.5

    def test_sigmoid_midpoint(self):
        assert SigmoidNormalizer(10, 2)(10) == 0.5

    def test_sigmoid_extremes_stay_finite(self):
        normalizer = SigmoidNormalizer(0, 1)
        assert normalizer(-10_000) == 0.0
        assert normalizer(10_000) == pytest.approx(1.0)

    def test_create_normalizer(self):
        assert create_normalizer("linear", minimum=0, maximum=4)(1) == 0.25
        assert isinstance(create_normalizer("sigmoid"), SigmoidNormalizer)
        with pytest.raises(InvalidInputError):
            create_normalizer("cubic")


class TestUtilityFunction:
    """Tests for weighted, normalized evaluation."""

    def test_role_defaults_sum_to_one(self):
        for role, weights in UTILITY_WEIGHTS.items():
            assert len(weights) == 4, role
            assert sum(weights.values()) == pytest.approx(1.0), role

    def test_attack_function(self, evaluator):
        function = evaluator.create_function(Role.ATTACK)
        factors = {"damage": 50, "speed": 5, "health": 100, "energy": 0}
        assert function.calculate(factors) == pytest.approx(0.5)

    def test_factors_outside_weights_ignored(self, evaluator):
        function = evaluator.create_function(Role.ATTACK)
        assert function({"influence": 100}) == 0.0

    def test_custom_weights_replace_defaults(self, evaluator):
        function = evaluator.create_function(Role.ATTACK, {"damage": 1.0})
        assert function({"damage": 50, "speed": 10}) == pytest.approx(0.5)

    def test_unranged_factor_contributes_raw_value(self, evaluator):
        function = evaluator.create_function(Role.CORE, {"morale": 2.0})
        assert function({"morale": 3}) == pytest.approx(6.0)

    def test_non_finite_result_reported_as_zero(self):
        function = UtilityFunction(weights={"x": 1.0})
        assert function({"x": math.inf}) == 0.0
        assert function({"x": math.nan}) == 0.0

    def test_functions_are_memoized(self, evaluator):
        assert evaluator.create_function("defense") is evaluator.create_function(Role.DEFENSE)

    def test_unknown_role(self, evaluator):
        with pytest.raises(UnknownRoleError):
            evaluator.create_function("wizard")

    def test_calculate_utility_is_unnormalized(self):
        assert calculate_utility({"a": 2, "b": 3, "c": 4}, {"a": 1, "b": 0.5}) == pytest.approx(3.5)


class TestCombine:
    """Tests for weighted combination of utility functions."""

    def test_mixing_weights_renormalized(self):
        combined = combine([UtilityFunction({"a": 1.0}), UtilityFunction({"b": 1.0})], [3, 1])
        assert combined.weights == pytest.approx({"a": 0.75, "b": 0.25})

    def test_shared_factor_weights_add(self):
        combined = combine([UtilityFunction({"a": 0.5}), UtilityFunction({"a": 1.0})], [1, 1])
        assert combined.weights["a"] == pytest.approx(0.75)

    def test_first_normalizer_wins(self):
        first = UtilityFunction({"a": 1.0}, {"a": LinearNormalizer(0, 10)})
        second = UtilityFunction({"a": 1.0}, {"a": LinearNormalizer(0, 100)})
        assert combine([first, second], [1, 1]).normalizers["a"] == LinearNormalizer(0, 10)

    @pytest.mark.parametrize(
        "functions,weights",
        [
            ([], []),
            ([UtilityFunction({"a": 1.0})], [1, 2]),
            ([UtilityFunction({"a": 1.0})], [0]),
        ],
    )
    def test_invalid_combinations(self, functions, weights):
        with pytest.raises(InvalidInputError):
            combine(functions, weights)


# =============================================================================
# Strategy evaluation
# =============================================================================


class TestPerturbation:
    """Tests for per-strategy factor multipliers."""

    def test_aggressive_multipliers(self):
        perturbed = perturb_factors("aggressive", {"damage": 10, "energy": 10})
        assert perturbed == pytest.approx({"damage": 13, "energy": 8, "health": 0})

    def test_unknown_label_untouched(self):
        factors = {"damage": 10}
        assert perturb_factors("meditative", factors) == factors

    def test_input_not_mutated(self):
        factors = {"health": 40}
        perturb_factors("protective", factors)
        assert factors == {"health": 40}


class TestEvaluateStrategies:
    """Tests for ranked strategy evaluation."""

    def test_protective_beats_evasive_when_hurt(self, evaluator):
        ranking = evaluator.evaluate_strategies(
            Role.DEFENSE, ["protective", "counter", "evasive"], {"health": 40, "under_attack": 1}
        )
        order = [e.strategy for e in ranking]
        assert order.index("protective") < order.index("evasive")
        assert ranking[0].strategy == "protective"
        assert ranking[0].utility == pytest.approx(0.26)

    def test_sorted_descending(self, evaluator):
        ranking = evaluator.evaluate_strategies(Role.ATTACK, STRATEGY_SETS[Role.ATTACK], {"damage": 60, "speed": 4})
        utilities = [e.utility for e in ranking]
        assert utilities == sorted(utilities, reverse=True)

    def test_confidence_bounds(self, evaluator):
        for role in Role:
            ranking = evaluator.evaluate_strategies(
                role, STRATEGY_SETS[role], {"health": 90, "energy": 5, "damage": 70, "speed": 9}
            )
            assert all(0.1 <= e.confidence <= 1.0 for e in ranking)

    def test_single_candidate_confidence(self, evaluator):
        ranking = evaluator.evaluate_strategies(Role.CORE, ["balanced"], {"energy": 50})
        assert ranking[0].confidence == 0.5

    def test_identical_utilities_have_no_spread_bonus(self, evaluator):
        ranking = evaluator.evaluate_strategies(Role.CONTROL, ["mystery", "enigma"], {"influence": 50})
        assert ranking[0].utility == ranking[1].utility
        assert [e.strategy for e in ranking] == ["mystery", "enigma"]
        assert ranking[0].confidence == pytest.approx(0.5 + 0.1 * 0 + 0 + min(0.2, ranking[0].utility / 100))

    def test_empty_candidates_is_an_error(self, evaluator):
        with pytest.raises(EmptyCandidateSetError):
            evaluator.evaluate_strategies(Role.ATTACK, [], {})

    def test_reasoning_mentions_strategy(self, evaluator):
        ranking = evaluator.evaluate_strategies(Role.DEFENSE, ["protective"], {"health": 40})
        assert "protective" in ranking[0].reasoning
        assert "survival" in ranking[0].reasoning

    def test_defaults_for_unknown_roles(self, evaluator):
        ranking = evaluator.evaluate_with_defaults(["balanced", "aggressive", "evasive"], {"health": 50})
        assert len(ranking) == 3


class TestAlignment:
    """Tests for the role alignment bonus."""

    def test_bonus_by_position(self):
        aligned = STRATEGY_SETS[Role.MOVEMENT]
        assert alignment_bonus("swift", aligned) == pytest.approx(0.2)
        assert alignment_bonus("flanking", aligned) == pytest.approx(0.15)
        assert alignment_bonus("unpredictable", aligned) == pytest.approx(0.1)
        assert alignment_bonus("aggressive", aligned) == 0.0


class TestExtractFactors:
    """Tests for base factor extraction."""

    def test_layers_and_role_boost(self, evaluator, attacker):
        factors = evaluator.extract_factors(attacker, Context(factors={"speed": 7}))
        assert factors == {"health": 80, "energy": 50, "damage": 40, "speed": 7, "position": 0}

    def test_context_overrides_stats(self, evaluator):
        agent = Agent(id="c", role="core", stats={"energy": 20})
        factors = evaluator.extract_factors(agent, Context(factors={"energy": 70}))
        assert factors["energy"] == 80

    def test_unknown_role_has_no_boost(self, evaluator):
        factors = evaluator.extract_factors(Agent(id="x", role="wizard"))
        assert factors == {"health": 50, "energy": 50, "damage": 20, "speed": 5, "position": 0}


class TestExpectedUtility:
    """Tests for per-player utility of a strategy profile."""

    @pytest.fixture
    def dilemma(self, cache):
        table = {
            "cooperate": {"cooperate": 3, "defect": 0},
            "defect": {"cooperate": 5, "defect": 1},
        }
        return PayoffMatrixEngine(cache).build_symmetric(["cooperate", "defect"], table)

    def test_payoff_times_weight(self, dilemma):
        profile = {"player1": "defect", "player2": "cooperate"}
        utilities = expected_utility(dilemma, profile, {"player1": {"payoff": 2.0}, "player2": {"payoff": 0.5}})
        assert utilities == pytest.approx({"player1": 10.0, "player2": 0.0})

    def test_mutual_cooperation(self, dilemma):
        profile = {"player1": "cooperate", "player2": "cooperate"}
        utilities = expected_utility(dilemma, profile, {"player1": {"payoff": 1.0}, "player2": {"payoff": 0.5}})
        assert utilities == pytest.approx({"player1": 3.0, "player2": 1.5})

    def test_missing_weights_score_zero(self, dilemma):
        profile = {"player1": "defect", "player2": "defect"}
        utilities = expected_utility(dilemma, profile, {"player1": {"payoff": 1.0}})
        assert utilities == {"player1": 1.0, "player2": 0.0}

    def test_unrelated_weights_ignored(self, dilemma):
        profile = {"player1": "cooperate", "player2": "defect"}
        utilities = expected_utility(dilemma, profile, {"player1": {"health": 1.0}, "player2": {"payoff": 1.0}})
        assert utilities == {"player1": 0.0, "player2": 5.0}
