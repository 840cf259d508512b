"""Tests for payoff matrix construction.

Tests verify:
1. Base payoffs combine role advantage, aggressiveness and counter penalties
2. Counter and protective stances punish aggression
3. Context modifiers apply in order and the result is clamped
4. Unknown roles fall back to the 2x2 balanced/aggressive matrix
5. Matrices are memoized per (agents, roles, context)
"""

import math

import pytest

from strategos.cache import StrategyCache
from strategos.config import EngineSettings
from strategos.engine.payoff import MATRIX_NAMESPACE, PayoffMatrixEngine, round_half_up
from strategos.errors import EmptyCandidateSetError, InvalidInputError, UnknownRoleError
from strategos.models.agents import Agent, Context, Role
from strategos.models.matrices import PayoffMatrix
from strategos.parameters import STRATEGY_SETS


@pytest.fixture
def engine(cache, settings):
    return PayoffMatrixEngine(cache, settings)


# =============================================================================
# Base payoffs
# =============================================================================


class TestBasePayoffs:
    """Tests for payoffs built without a context."""

    def test_attack_vs_defense_is_three_by_three(self, engine, attacker, defender):
        matrix = engine.build(attacker, defender)
        assert matrix.shape == (3, 3)
        assert matrix.strategies["attacker"] == STRATEGY_SETS[Role.ATTACK]
        assert matrix.strategies["defender"] == STRATEGY_SETS[Role.DEFENSE]

    def test_protective_punishes_aggression(self, engine, attacker, defender):
        """[aggressive][protective] < [aggressive][evasive].

        Advantage(attack, defense) = -5, aggressive +3, protective counters
        aggressive for -5: -7 against protective, -2 against evasive.
        """
        matrix = engine.build(attacker, defender)
        against_protective = matrix.payoff("attacker", "aggressive", "protective")
        against_evasive = matrix.payoff("attacker", "aggressive", "evasive")
        assert against_protective < against_evasive
        assert against_protective == -7
        assert against_evasive == -2

    def test_counter_punishes_aggression(self, engine, attacker, defender):
        matrix = engine.build(attacker, defender)
        assert matrix.payoff("attacker", "aggressive", "counter") == -7

    def test_no_clamp_without_context(self, engine, attacker, defender):
        matrix = engine.build(attacker, defender)
        assert min(matrix.payoffs["attacker"]["aggressive"].values()) < 1

    def test_defender_side_uses_own_role_advantage(self, engine, attacker, defender):
        """Defense vs Attack advantage is +10; protective aggressiveness +2."""
        matrix = engine.build(attacker, defender)
        assert matrix.payoff("defender", "protective", "tactical") == 12

    def test_table_is_fully_populated(self, engine, attacker, defender):
        matrix = engine.build(attacker, defender)
        for player in matrix.players:
            opponent = matrix.opponent_of(player)
            for own in matrix.strategies[player]:
                for other in matrix.strategies[opponent]:
                    assert math.isfinite(matrix.payoff(player, own, other))


# =============================================================================
# Context modifiers
# =============================================================================


class TestContextModifiers:
    """Tests for environment, threat, scarcity, synergy, social and familiarity bonuses."""

    @pytest.fixture
    def pair(self):
        return (
            Agent(id="a", role=Role.ATTACK),
            Agent(id="b", role=Role.CONTROL),
        )

    def test_payoffs_clamped_to_range(self, engine, attacker, defender):
        matrix = engine.build(attacker, defender, Context(threat_level=1.0))
        for player in matrix.players:
            for row in matrix.payoffs[player].values():
                assert all(1.0 <= v <= 20.0 for v in row.values())

    def test_custom_clamp_bounds(self, cache, attacker, defender):
        engine = PayoffMatrixEngine(cache, EngineSettings(payoff_floor=-50, payoff_ceiling=50))
        matrix = engine.build(attacker, defender, Context())
        assert matrix.payoff("attacker", "aggressive", "protective") < 1

    def test_battle_environment_bonus(self, engine, pair):
        """Attack vs Control base 5 + aggressive 3 = 8; battle +2.5; synergy 1.5 -> 15.75 -> 16."""
        agent, other = pair
        matrix = engine.build(agent, other, Context(environment="battle"))
        assert matrix.payoff("a", "aggressive", "commanding") == 16

    def test_synergy_rounds_half_up(self, engine, pair):
        """Attack vs Control: tactical 5 + 1 = 6, x1.5 = 9."""
        agent, other = pair
        matrix = engine.build(agent, other, Context())
        assert matrix.payoff("a", "tactical", "commanding") == 9

    def test_threat_bonus_for_defensive_labels(self, engine):
        agent = Agent(id="d", role=Role.DEFENSE)
        other = Agent(id="c", role=Role.CORE)
        calm = engine.build(agent, other, Context(threat_level=0.5))
        tense = engine.build(agent, other, Context(threat_level=1.0))
        assert tense.payoff("d", "protective", "balanced") > calm.payoff("d", "protective", "balanced")

    def test_threat_at_threshold_has_no_effect(self, engine, pair):
        agent, other = pair
        baseline = engine.build(agent, other, Context())
        at_threshold = engine.build(agent, other, Context(threat_level=0.5))
        assert baseline.payoffs == at_threshold.payoffs

    def test_scarcity_bonus_for_opportunistic_labels(self, engine, pair):
        """opportunistic: floor(3 * 0.6 * 2) = 3 before synergy."""
        agent, other = pair
        plain = engine.build(agent, other, Context())
        scarce = engine.build(agent, other, Context(resource_scarcity=1.0))
        assert plain.payoff("a", "opportunistic", "supportive") == round_half_up((5 + 2) * 1.5)
        assert scarce.payoff("a", "opportunistic", "supportive") == round_half_up((5 + 2 + 3) * 1.5)

    def test_cooperative_bonus_requires_non_aggressive_pair(self, engine, pair):
        agent, other = pair
        plain = engine.build(agent, other, Context())
        social = engine.build(agent, other, Context(social_factor=1.0))
        assert social.payoff("a", "tactical", "supportive") == plain.payoff("a", "tactical", "supportive") + 2
        assert social.payoff("a", "aggressive", "supportive") == plain.payoff("a", "aggressive", "supportive")

    def test_familiarity_bonus_capped(self, engine, pair):
        agent, other = pair
        plain = engine.build(agent, other, Context())
        once = engine.build(agent, other, Context(previous_interactions={"b": 1}))
        often = engine.build(agent, other, Context(previous_interactions={"b": 100}))
        base = plain.payoff("a", "tactical", "commanding")
        assert once.payoff("a", "tactical", "commanding") == pytest.approx(base + 1.0)
        assert often.payoff("a", "tactical", "commanding") == pytest.approx(base + 2.0)

    def test_familiarity_ignores_other_opponents(self, engine, pair):
        agent, other = pair
        plain = engine.build(agent, other, Context())
        unrelated = engine.build(agent, other, Context(previous_interactions={"someone": 9}))
        assert plain.payoffs == unrelated.payoffs


# =============================================================================
# Fallbacks and generic construction
# =============================================================================


class TestFallbacks:
    """Tests for unknown-role handling."""

    def test_build_raises_for_unknown_role(self, engine, attacker):
        stranger = Agent(id="x", role="wizard")
        with pytest.raises(UnknownRoleError) as exc_info:
            engine.build(attacker, stranger)
        assert exc_info.value.role == "wizard"

    def test_build_or_fallback_returns_two_by_two(self, engine, attacker):
        stranger = Agent(id="x", role="wizard")
        matrix = engine.build_or_fallback(attacker, stranger)
        assert matrix.is_fallback
        assert matrix.shape == (2, 2)
        assert matrix.payoff("attacker", "balanced", "balanced") == 5
        assert matrix.payoff("attacker", "balanced", "aggressive") == 3
        assert matrix.payoff("attacker", "aggressive", "balanced") == 7
        assert matrix.payoff("attacker", "aggressive", "aggressive") == 2
        assert matrix.payoff("x", "aggressive", "balanced") == 7

    def test_strategies_for_unknown_role(self, engine):
        with pytest.raises(UnknownRoleError):
            engine.strategies_for("wizard")


class TestBuildMatrix:
    """Tests for the generic matrix builder."""

    def test_builds_from_callable(self, engine):
        matrix = engine.build_matrix(
            ("p", "q"),
            {"p": ["up", "down"], "q": ["left", "right"]},
            lambda player, own, other: len(own) + len(other),
        )
        assert isinstance(matrix, PayoffMatrix)
        assert matrix.payoff("p", "down", "right") == 9
        assert matrix.payoff("q", "left", "up") == 6

    def test_empty_strategy_set_is_an_error(self, engine):
        with pytest.raises(EmptyCandidateSetError):
            engine.build_matrix(("p", "q"), {"p": [], "q": ["left"]}, lambda *_: 0)

    def test_same_player_twice_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.build_matrix(("p", "p"), {"p": ["a"]}, lambda *_: 0)


class TestBuildSymmetric:
    """Tests for symmetric games built from one table."""

    TABLE = {
        "cooperate": {"cooperate": 3, "defect": 0},
        "defect": {"cooperate": 5, "defect": 1},
    }

    def test_default_players(self, engine):
        matrix = engine.build_symmetric(["cooperate", "defect"], self.TABLE)
        assert matrix.players == ("player1", "player2")
        assert matrix.strategies["player2"] == ("cooperate", "defect")

    def test_column_player_reads_transpose(self, engine):
        matrix = engine.build_symmetric(["cooperate", "defect"], self.TABLE)
        for row in ("cooperate", "defect"):
            for column in ("cooperate", "defect"):
                profile = {"player1": row, "player2": column}
                assert matrix.profile_payoff("player1", profile) == self.TABLE[row][column]
                assert matrix.profile_payoff("player2", profile) == self.TABLE[column][row]

    def test_sucker_payoff(self, engine):
        matrix = engine.build_symmetric(["cooperate", "defect"], self.TABLE, players=("me", "you"))
        profile = {"me": "cooperate", "you": "defect"}
        assert matrix.profile_payoff("me", profile) == 0
        assert matrix.profile_payoff("you", profile) == 5

    def test_missing_pair_is_an_error(self, engine):
        with pytest.raises(InvalidInputError):
            engine.build_symmetric(["cooperate", "defect"], {"cooperate": {"cooperate": 3}})

    def test_empty_strategies_is_an_error(self, engine):
        with pytest.raises(EmptyCandidateSetError):
            engine.build_symmetric([], {})


class TestMemoization:
    """Tests for matrix caching."""

    def test_same_inputs_hit_cache(self, cache, engine, attacker, defender):
        context = Context(environment="battle", factors={"health": 40})
        first = engine.build(attacker, defender, context)
        second = engine.build(attacker, defender, Context(factors={"health": 40}, environment="battle"))
        assert first is second
        assert cache.stats().hits >= 1

    def test_different_context_builds_new_matrix(self, engine, attacker, defender):
        first = engine.build(attacker, defender, Context(environment="battle"))
        second = engine.build(attacker, defender, Context(environment="cooperation"))
        assert first is not second

    def test_invalidation_drops_matrices(self, cache, engine, attacker, defender):
        engine.build(attacker, defender)
        assert cache.invalidate(MATRIX_NAMESPACE) == 1
        assert len(cache) == 0


class TestRoundHalfUp:
    """Tests for the synergy rounding helper."""

    @pytest.mark.parametrize(
        "value,expected",
        [(2.5, 3.0), (-2.5, -2.0), (2.49, 2.0), (15.75, 16.0), (0.0, 0.0)],
    )
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected
