"""Strategos data model.

This module exports the records exchanged with the host application and
the internal game-theory structures.
"""

from strategos.models.agents import Agent, Context, EnvironmentKind, Role, resolve_role, role_name
from strategos.models.matrices import NashEquilibrium, PayoffMatrix
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
from strategos.models.trees import DecisionNode, DecisionPath, DecisionTree, FactorCondition
from strategos.models.utility import LinearNormalizer, Normalizer, SigmoidNormalizer, UtilityFunction

__all__ = [
    # Inputs
    "Agent",
    "Context",
    "EnvironmentKind",
    "Role",
    "resolve_role",
    "role_name",
    # Game structures
    "PayoffMatrix",
    "NashEquilibrium",
    "DecisionNode",
    "DecisionTree",
    "DecisionPath",
    "FactorCondition",
    "UtilityFunction",
    "Normalizer",
    "LinearNormalizer",
    "SigmoidNormalizer",
    # Results
    "StrategyDecisionResult",
    "UtilityEvaluation",
    "MultiStepDecisionResult",
    "EngineWeights",
    "DetailedAnalysis",
    "Recommendation",
    "StrategyScore",
    # Source tags
    "NASH",
    "UTILITY",
    "TREE",
]
