"""Static strategy tables for the Strategos decision engine.

This module is the SINGLE SOURCE OF TRUTH for every role-keyed table the
engines consult. Engines never hard-code numbers; they look them up here.

Table Categories:
- Strategy sets: the three labels each role may play
- Payoff matrix: role advantage, aggressiveness, counter pairs
- Context modifiers: environment, threat, scarcity, synergy
- Decision trees: per-role base payoffs and branch conditions
- Utility: per-role weights, normalization ranges, factor perturbations

Usage:
    from strategos.parameters import STRATEGY_SETS, ROLE_ADVANTAGE

Every table keyed by Role covers every Role member; this is checked at
import time by _assert_role_coverage().
"""

from strategos.models.agents import Role
from strategos.models.trees import FactorCondition

# =============================================================================
# STRATEGY SETS
# =============================================================================

STRATEGY_SETS: dict[Role, tuple[str, str, str]] = {
    Role.ATTACK: ("aggressive", "tactical", "opportunistic"),
    Role.DEFENSE: ("protective", "counter", "evasive"),
    Role.CONTROL: ("commanding", "disruptive", "supportive"),
    Role.MOVEMENT: ("swift", "flanking", "unpredictable"),
    Role.CORE: ("balanced", "adaptive", "resilient"),
}
"""Ordered strategy labels per role. Fixed; never mutated at runtime.

The order matters: decision-tree configuration, role alignment bonuses and
tie-breaking all follow it.
"""

DEFAULT_STRATEGIES: tuple[str, str, str] = ("balanced", "aggressive", "evasive")
"""Strategy labels used when a role cannot be resolved (last-resort fallback)."""

NON_AGGRESSIVE_EXCLUSIONS = frozenset({"aggressive", "opportunistic"})
"""Labels that disqualify a strategy pair from the cooperative bonus."""


# =============================================================================
# PAYOFF MATRIX TABLES
# =============================================================================

ROLE_ADVANTAGE: dict[Role, dict[Role, float]] = {
    Role.ATTACK: {
        Role.ATTACK: 0,
        Role.DEFENSE: -5,
        Role.CONTROL: 5,
        Role.MOVEMENT: 10,
        Role.CORE: 0,
    },
    Role.DEFENSE: {
        Role.ATTACK: 10,
        Role.DEFENSE: 0,
        Role.CONTROL: -5,
        Role.MOVEMENT: 0,
        Role.CORE: 5,
    },
    Role.CONTROL: {
        Role.ATTACK: 0,
        Role.DEFENSE: 10,
        Role.CONTROL: 0,
        Role.MOVEMENT: -5,
        Role.CORE: 5,
    },
    Role.MOVEMENT: {
        Role.ATTACK: -5,
        Role.DEFENSE: 5,
        Role.CONTROL: 10,
        Role.MOVEMENT: 0,
        Role.CORE: 0,
    },
    Role.CORE: {
        Role.ATTACK: 5,
        Role.DEFENSE: 0,
        Role.CONTROL: -5,
        Role.MOVEMENT: 5,
        Role.CORE: 0,
    },
}
"""Base payoff for ROLE_ADVANTAGE[own][other]. Asymmetric, range [-10, 10].

Reads as a rock-paper-scissors ring: Attack beats Movement, Movement beats
Control, Control beats Defense, Defense beats Attack. Core is a mild
generalist.
"""

AGGRESSIVENESS: dict[str, float] = {
    "aggressive": 3,
    "tactical": 1,
    "opportunistic": 2,
    "protective": 2,
    "counter": 3,
    "evasive": 1,
    "commanding": 3,
    "disruptive": 2,
    "supportive": 1,
    "swift": 3,
    "flanking": 2,
    "unpredictable": 1,
    "balanced": 2,
    "adaptive": 3,
    "resilient": 1,
}
"""Per-label payoff modifier added to the own strategy's base payoff."""

COUNTER_STRATEGIES: dict[str, frozenset[str]] = {
    "aggressive": frozenset({"counter", "protective"}),
    "tactical": frozenset({"unpredictable"}),
    "opportunistic": frozenset({"protective"}),
    "protective": frozenset({"disruptive"}),
    "counter": frozenset({"swift"}),
    "evasive": frozenset({"commanding"}),
    "commanding": frozenset({"resilient"}),
    "disruptive": frozenset({"adaptive"}),
    "supportive": frozenset({"aggressive"}),
    "swift": frozenset({"tactical"}),
    "flanking": frozenset({"evasive"}),
    "unpredictable": frozenset({"flanking"}),
    "balanced": frozenset({"opportunistic"}),
    "adaptive": frozenset({"supportive"}),
    "resilient": frozenset({"balanced"}),
}
"""COUNTER_STRATEGIES[own] = opponent labels that punish the own label.

Counter and protective stances both punish raw aggression.
"""

COUNTER_PENALTY = 5.0
"""Payoff subtracted when the opponent plays a counter to the own strategy."""

FALLBACK_MATRIX_STRATEGIES: tuple[str, str] = ("balanced", "aggressive")
"""Strategy labels of the fallback 2x2 matrix."""

FALLBACK_MATRIX_PAYOFFS: dict[str, dict[str, float]] = {
    "balanced": {"balanced": 5, "aggressive": 3},
    "aggressive": {"balanced": 7, "aggressive": 2},
}
"""Symmetric payoff table of the fallback 2x2 matrix (own -> opponent)."""


# =============================================================================
# CONTEXT MODIFIERS
# =============================================================================

ENVIRONMENT_MODIFIERS: dict[str, dict[str, float]] = {
    "battle": {
        "aggressive": 2.5,
        "tactical": 2,
        "counter": 2,
        "opportunistic": 1.5,
        "evasive": 1,
    },
    "cooperation": {
        "supportive": 3,
        "balanced": 2,
        "adaptive": 2,
        "commanding": 1.5,
    },
    "exploration": {
        "unpredictable": 2.5,
        "swift": 2,
        "flanking": 1.5,
        "adaptive": 1.5,
    },
    "evolution": {
        "adaptive": 3,
        "resilient": 2.5,
        "balanced": 1.5,
    },
}
"""Flat payoff bonus per environment kind and own strategy label."""

THREAT_MODIFIERS: dict[str, float] = {
    "protective": 3,
    "evasive": 2.5,
    "counter": 2,
    "tactical": 1.5,
    "resilient": 1.5,
}
"""Defensive labels rewarded when threat_level exceeds THREAT_THRESHOLD.

Bonus = floor(modifier * (threat - THREAT_THRESHOLD) * 2), so at most 3.
"""

THREAT_THRESHOLD = 0.5

SCARCITY_MODIFIERS: dict[str, float] = {
    "aggressive": 2.5,
    "opportunistic": 3,
    "tactical": 1.5,
    "disruptive": 2,
}
"""Opportunistic labels rewarded when resource_scarcity exceeds SCARCITY_THRESHOLD."""

SCARCITY_THRESHOLD = 0.4

SOCIAL_THRESHOLD = 0.5
"""social_factor above which non-aggressive pairs earn floor((s - 0.5) * 4)."""

FAMILIARITY_CAP = 2.0
"""Upper bound of the log2(prior_interactions + 1) familiarity bonus."""

ROLE_SYNERGY: dict[Role, dict[Role, float]] = {
    Role.ATTACK: {
        Role.ATTACK: 0.8,
        Role.DEFENSE: 1.2,
        Role.CONTROL: 1.5,
        Role.MOVEMENT: 1.3,
        Role.CORE: 1.1,
    },
    Role.DEFENSE: {
        Role.ATTACK: 1.2,
        Role.DEFENSE: 0.9,
        Role.CONTROL: 1.4,
        Role.MOVEMENT: 0.9,
        Role.CORE: 1.3,
    },
    Role.CONTROL: {
        Role.ATTACK: 1.4,
        Role.DEFENSE: 1.3,
        Role.CONTROL: 0.7,
        Role.MOVEMENT: 1.2,
        Role.CORE: 1.1,
    },
    Role.MOVEMENT: {
        Role.ATTACK: 1.3,
        Role.DEFENSE: 1.0,
        Role.CONTROL: 1.1,
        Role.MOVEMENT: 0.8,
        Role.CORE: 1.2,
    },
    Role.CORE: {
        Role.ATTACK: 1.1,
        Role.DEFENSE: 1.3,
        Role.CONTROL: 1.2,
        Role.MOVEMENT: 1.1,
        Role.CORE: 1.0,
    },
}
"""ROLE_SYNERGY[own][other] multiplies a player's payoff given the pairing.

Same-role pairings have diminishing returns (< 1.0).
"""


# =============================================================================
# DECISION TREE CONFIGURATION
# =============================================================================

TREE_BASE_PAYOFFS: dict[Role, tuple[float, float, float]] = {
    Role.ATTACK: (10, 8, 6),
    Role.DEFENSE: (8, 10, 6),
    Role.CONTROL: (6, 8, 10),
    Role.MOVEMENT: (10, 6, 8),
    Role.CORE: (8, 10, 6),
}
"""Base payoff per strategy label, aligned with STRATEGY_SETS order."""

TREE_CONDITIONS: dict[Role, tuple[FactorCondition, FactorCondition, FactorCondition]] = {
    Role.ATTACK: (
        FactorCondition("enemy_health", "lt", 50),
        FactorCondition("own_health", "gt", 70),
        FactorCondition("enemy_count", "gt", 1),
    ),
    Role.DEFENSE: (
        FactorCondition("own_health", "lt", 50),
        FactorCondition("under_attack", "is_true"),
        FactorCondition("allies_nearby", "is_true"),
    ),
    Role.CONTROL: (
        FactorCondition("control_points", "gt", 0),
        FactorCondition("allies_nearby", "is_true"),
        FactorCondition("enemy_disrupted", "is_false"),
    ),
    Role.MOVEMENT: (
        FactorCondition("obstacles_nearby", "is_true"),
        FactorCondition("enemy_nearby", "is_true"),
        FactorCondition("allies_scattered", "is_true"),
    ),
    Role.CORE: (
        FactorCondition("energy_level", "lt", 50),
        FactorCondition("allies_health", "lt", 70),
        FactorCondition("formation_integrity", "lt", 80),
    ),
}
"""Condition each strategy label expects of the state to be fully rewarded."""

TREE_DESCRIPTIONS: dict[Role, tuple[str, str, str]] = {
    Role.ATTACK: (
        "Focus on maximum damage output",
        "Balance damage with positioning",
        "Wait for openings to strike",
    ),
    Role.DEFENSE: (
        "Focus on damage reduction",
        "Return attacks when threatened",
        "Avoid damage through movement",
    ),
    Role.CONTROL: (
        "Direct allies for coordinated actions",
        "Interfere with enemy actions",
        "Enhance ally capabilities",
    ),
    Role.MOVEMENT: (
        "Maximize movement speed",
        "Approach from advantageous angles",
        "Use random patterns to confuse enemies",
    ),
    Role.CORE: (
        "Maintain equal focus on all aspects",
        "Change strategy based on circumstances",
        "Prioritize survival above all else",
    ),
}

DEPTH_SCALE = 0.05
"""Per-level payoff growth: payoff *= 1 + DEPTH_SCALE * level."""

FAILED_CONDITION_PENALTY = 0.5
"""Multiplier applied to a path total when any node condition fails."""


# =============================================================================
# UTILITY TABLES
# =============================================================================

UTILITY_WEIGHTS: dict[Role, dict[str, float]] = {
    Role.ATTACK: {"damage": 0.5, "speed": 0.3, "health": 0.1, "energy": 0.1},
    Role.DEFENSE: {"health": 0.5, "damage_reduction": 0.3, "energy": 0.1, "allies": 0.1},
    Role.CONTROL: {"influence": 0.4, "energy": 0.3, "allies": 0.2, "position": 0.1},
    Role.MOVEMENT: {"speed": 0.5, "position": 0.3, "energy": 0.1, "obstacles": 0.1},
    Role.CORE: {"energy": 0.4, "health": 0.3, "allies": 0.2, "formation": 0.1},
}
"""Default utility weights per role. Each map has 4 factors summing to 1.0."""

DEFAULT_UTILITY_WEIGHTS: dict[str, float] = {
    "health": 0.25,
    "energy": 0.25,
    "position": 0.25,
    "allies": 0.25,
}
"""Weights used by the last-resort fallback when the role is unknown."""

UTILITY_RANGES: dict[Role, dict[str, tuple[float, float]]] = {
    Role.ATTACK: {"damage": (0, 100), "speed": (0, 10), "health": (0, 100), "energy": (0, 100)},
    Role.DEFENSE: {"health": (0, 100), "damage_reduction": (0, 0.9), "energy": (0, 100), "allies": (0, 10)},
    Role.CONTROL: {"influence": (0, 100), "energy": (0, 100), "allies": (0, 10), "position": (-1, 1)},
    Role.MOVEMENT: {"speed": (0, 10), "position": (-1, 1), "energy": (0, 100), "obstacles": (0, 10)},
    Role.CORE: {"energy": (0, 100), "health": (0, 100), "allies": (0, 10), "formation": (0, 100)},
}
"""Linear normalization range (min, max) per role and factor."""

DEFAULT_UTILITY_RANGES: dict[str, tuple[float, float]] = {
    "health": (0, 100),
    "energy": (0, 100),
    "position": (-1, 1),
    "allies": (0, 10),
}

STRATEGY_FACTOR_MULTIPLIERS: dict[str, dict[str, float]] = {
    "aggressive": {"damage": 1.3, "energy": 0.8, "health": 0.9},
    "tactical": {"damage": 1.1, "position": 1.2, "energy": 0.9},
    "opportunistic": {"damage": 1.2, "speed": 1.2, "health": 0.8},
    "protective": {"health": 1.3, "damage_reduction": 1.4, "energy": 0.9, "damage": 0.7},
    "counter": {"damage_reduction": 1.2, "damage": 1.1, "speed": 0.8},
    "evasive": {"speed": 1.4, "health": 0.8, "damage": 0.7},
    "commanding": {"influence": 1.5, "allies": 1.3, "energy": 0.8},
    "disruptive": {"influence": 1.2, "position": 1.3, "energy": 0.9},
    "supportive": {"allies": 1.5, "energy": 1.2, "damage": 0.6},
    "swift": {"speed": 1.5, "energy": 0.8},
    "flanking": {"position": 1.4, "speed": 1.2, "energy": 0.9},
    "unpredictable": {"position": 1.3, "speed": 1.1, "obstacles": 0.7},
    "balanced": {"damage": 1.1, "health": 1.1, "energy": 1.1, "speed": 1.1},
    "adaptive": {"energy": 1.3, "allies": 1.2, "health": 1.1},
    "resilient": {"health": 1.4, "energy": 1.2, "damage": 0.8},
}
"""Multiplicative factor perturbation applied before scoring a candidate.

Identical base factors therefore yield a different utility per strategy.
Unknown labels are scored on the unperturbed factors.
"""

STRATEGY_RATIONALE: dict[str, str] = {
    "aggressive": "Emphasizes damage output at the cost of sustainability.",
    "protective": "Prioritizes survival and damage reduction over offense.",
    "evasive": "Focuses on mobility and avoiding direct confrontation.",
    "balanced": "Provides moderate boosts to all attributes without specialization.",
    "supportive": "Maximizes ally effectiveness while reducing direct damage output.",
}
"""Short explanation appended to utility reasoning for well-known labels."""

BASE_FACTORS: dict[str, float] = {
    "health": 50,
    "energy": 50,
    "damage": 20,
    "speed": 5,
    "position": 0,
}
"""Factor values assumed when neither the agent nor the context supply one."""

ROLE_FACTOR_BOOSTS: dict[Role, dict[str, float]] = {
    Role.ATTACK: {"damage": 10},
    Role.DEFENSE: {"health": 10, "damage_reduction": 0.2},
    Role.CONTROL: {"influence": 10},
    Role.MOVEMENT: {"speed": 3},
    Role.CORE: {"energy": 10},
}
"""Additive factor boosts reflecting what each role brings to the field."""

ALIGNMENT_TOP_BONUS = 0.2
ALIGNMENT_STEP = 0.05
"""Role alignment bonus = ALIGNMENT_TOP_BONUS - ALIGNMENT_STEP * position in set."""


# =============================================================================
# FUSION
# =============================================================================

DEFAULT_ENGINE_WEIGHTS: dict[str, float] = {"nash": 0.4, "utility": 0.4, "tree": 0.2}
"""Starting weight of each engine before context adjustments."""

NO_EQUILIBRIUM_CONFIDENCE = 0.5
"""Confidence of the max-average-payoff pick when no equilibrium exists."""

STRICT_EQUILIBRIUM_BONUS = 0.3

LAST_RESORT_CONFIDENCE = 0.2
"""Confidence reported when even the utility-only fallback cannot be computed."""


def _assert_role_coverage() -> None:
    tables = {
        "STRATEGY_SETS": STRATEGY_SETS,
        "ROLE_ADVANTAGE": ROLE_ADVANTAGE,
        "ROLE_SYNERGY": ROLE_SYNERGY,
        "TREE_BASE_PAYOFFS": TREE_BASE_PAYOFFS,
        "TREE_CONDITIONS": TREE_CONDITIONS,
        "TREE_DESCRIPTIONS": TREE_DESCRIPTIONS,
        "UTILITY_WEIGHTS": UTILITY_WEIGHTS,
        "UTILITY_RANGES": UTILITY_RANGES,
        "ROLE_FACTOR_BOOSTS": ROLE_FACTOR_BOOSTS,
    }
    for name, table in tables.items():
        missing = set(Role) - set(table)
        if missing:
            raise RuntimeError(f"{name} is missing roles: {sorted(r.value for r in missing)}")
    for name, table in {"ROLE_ADVANTAGE": ROLE_ADVANTAGE, "ROLE_SYNERGY": ROLE_SYNERGY}.items():
        for role, row in table.items():
            missing = set(Role) - set(row)
            if missing:
                raise RuntimeError(f"{name}[{role.value}] is missing roles: {sorted(r.value for r in missing)}")


_assert_role_coverage()
