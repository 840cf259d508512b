"""Caller-facing input records: roles, agents and situational context.

Agents and contexts are supplied by the host application and are immutable
for the duration of one decision.
"""

from __future__ import annotations

import hashlib
import json
import math
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from strategos.errors import UnknownRoleError


class Role(Enum):
    """Closed set of agent roles. Every role table covers all five."""

    ATTACK = "attack"
    DEFENSE = "defense"
    CONTROL = "control"
    MOVEMENT = "movement"
    CORE = "core"


EnvironmentKind = Literal["battle", "cooperation", "exploration", "evolution"]


def resolve_role(role: Role | str) -> Role:
    """Return the Role for a Role or role string.

    Raises:
        UnknownRoleError: if the value names no Role
    """
    if isinstance(role, Role):
        return role
    try:
        return Role(str(role).lower())
    except ValueError:
        raise UnknownRoleError(role) from None


def role_name(role: Role | str) -> str:
    """Display name for a resolved or unresolved role."""
    return role.value if isinstance(role, Role) else str(role)


def require_finite(values: dict[str, float], field: str) -> dict[str, float]:
    """Reject NaN and infinite entries in a numeric map."""
    for name, value in values.items():
        if not math.isfinite(value):
            raise ValueError(f"{field}[{name!r}] must be finite, got {value}")
    return values


class Agent(BaseModel):
    """An agent taking part in a decision.

    Attributes:
        id: Stable identifier, used as the player id in payoff matrices
        role: Role of the agent. Unrecognized strings are preserved so the
            engines can apply their unknown-role fallbacks.
        stats: Raw numeric stat snapshot (health, damage, speed, ...)
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: str = Field(min_length=1)
    role: Role | str
    stats: dict[str, float] = Field(default_factory=dict)

    @field_validator("role", mode="before")
    @classmethod
    def coerce_role(cls, v: object) -> Role | str:
        """Map known role strings onto Role, keep anything else verbatim."""
        if isinstance(v, Role):
            return v
        try:
            return resolve_role(str(v))
        except UnknownRoleError:
            return str(v)

    @field_validator("stats")
    @classmethod
    def validate_stats(cls, v: dict[str, float]) -> dict[str, float]:
        return require_finite(v, "stats")


class Context(BaseModel):
    """Situational modifiers for one decision.

    Every field is optional. factors doubles as the state consulted by
    decision-tree conditions (enemy_health, under_attack, ...) and as the
    factor map scored by utility functions (health, energy, damage, ...).

    Attributes:
        environment: Kind of encounter
        threat_level: 0-1, rewards defensive strategies above 0.5
        resource_scarcity: 0-1, rewards opportunistic strategies above 0.4
        social_factor: 0-1, rewards mutually non-aggressive play above 0.5
        time_horizon: Number of steps ahead the agent cares about (>= 1)
        previous_interactions: Prior encounter counts keyed by opponent id
        factors: Free-form numeric state and utility factors
        complex_scenario: Force multi-step (decision tree) analysis
        complexity_score: 0-1, shifts weight from Nash towards the tree
        nash_reliability: Explicit Nash weight override
        utility_reliability: Explicit utility weight override
        tree_reliability: Explicit tree weight override
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    environment: EnvironmentKind | None = None
    threat_level: float | None = Field(default=None, ge=0.0, le=1.0)
    resource_scarcity: float | None = Field(default=None, ge=0.0, le=1.0)
    social_factor: float | None = Field(default=None, ge=0.0, le=1.0)
    time_horizon: int = Field(default=1, ge=1)
    previous_interactions: dict[str, int] = Field(default_factory=dict)
    factors: dict[str, float] = Field(default_factory=dict)
    complex_scenario: bool = False
    complexity_score: float | None = None
    nash_reliability: float | None = None
    utility_reliability: float | None = None
    tree_reliability: float | None = None

    @field_validator("previous_interactions")
    @classmethod
    def validate_interaction_counts(cls, v: dict[str, int]) -> dict[str, int]:
        for opponent_id, count in v.items():
            if count < 0:
                raise ValueError(f"previous_interactions[{opponent_id!r}] must be non-negative, got {count}")
        return v

    @field_validator("factors")
    @classmethod
    def validate_factors(cls, v: dict[str, float]) -> dict[str, float]:
        return require_finite(v, "factors")

    @property
    def is_multi_step(self) -> bool:
        """Whether the situation calls for decision-tree analysis."""
        return self.complex_scenario or self.time_horizon > 1

    def interactions_with(self, opponent_id: str) -> int:
        return self.previous_interactions.get(opponent_id, 0)

    def fingerprint(self) -> str:
        """Stable structural hash of every field, insensitive to dict order."""
        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()
