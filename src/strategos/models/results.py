"""Result records produced by the engines and the arbiter.

Results are frozen pydantic models so hosts can serialize them with
model_dump_json(); identical inputs yield byte-identical JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict

from strategos.models.matrices import NashEquilibrium

NASH = "Nash"
UTILITY = "Utility"
TREE = "Tree"


class StrategyDecisionResult(BaseModel):
    """Outcome of the payoff-matrix / Nash equilibrium path.

    Attributes:
        chosen_strategy: Own strategy of the best-for-self equilibrium, or the
            max-average-payoff strategy when no equilibrium exists
        expected_payoff: Payoff of the chosen strategy
        confidence: 0-1
        alternative_strategies: Remaining own strategies, best first
        reasoning: Human-readable justification
        equilibrium: The equilibrium used, None on the no-equilibrium path
        used_fallback_matrix: True if a role was unknown and the 2x2
            fallback matrix was analysed instead
    """

    model_config = ConfigDict(frozen=True)

    chosen_strategy: str
    expected_payoff: float
    confidence: float
    alternative_strategies: list[str]
    reasoning: str
    equilibrium: NashEquilibrium | None = None
    used_fallback_matrix: bool = False


class UtilityEvaluation(BaseModel):
    """Utility score of one candidate strategy."""

    model_config = ConfigDict(frozen=True)

    strategy: str
    utility: float
    confidence: float
    reasoning: str


class MultiStepDecisionResult(BaseModel):
    """Outcome of the decision tree search.

    Attributes:
        decisions: Strategy labels along the best path, first step first
        expected_total_payoff: Accumulated payoff of the best path
        confidence: Path confidence including the advantage over the best
            alternative path
        alternative_paths: Decisions of the runner-up paths, best first
        alternative_payoffs: Totals of the runner-up paths, aligned with
            alternative_paths
        reasoning: Human-readable justification
        conditions_failed: Whether the best path violated a node condition
    """

    model_config = ConfigDict(frozen=True)

    decisions: list[str]
    expected_total_payoff: float
    confidence: float
    alternative_paths: list[list[str]]
    alternative_payoffs: list[float]
    reasoning: str
    conditions_failed: bool = False

    @property
    def immediate_decision(self) -> str | None:
        return self.decisions[0] if self.decisions else None


class EngineWeights(BaseModel):
    """Effective fusion weight of each engine.

    Engines that did not run carry 0; the others sum to 1.
    """

    model_config = ConfigDict(frozen=True)

    nash: float = 0.0
    utility: float = 0.0
    tree: float = 0.0

    @property
    def total(self) -> float:
        return self.nash + self.utility + self.tree


class DetailedAnalysis(BaseModel):
    """Raw sub-results behind a recommendation, for inspection and testing."""

    model_config = ConfigDict(frozen=True)

    nash_equilibrium: StrategyDecisionResult | None = None
    utility_ranking: list[UtilityEvaluation] | None = None
    decision_tree: MultiStepDecisionResult | None = None
    combination_method: str
    weights: EngineWeights
    failed_engines: list[str] = []


class Recommendation(BaseModel):
    """Final recommendation handed to the host application.

    confidence is advisory: below roughly 0.3 a host may want to treat the
    answer differently, but a low value is never an error.
    """

    model_config = ConfigDict(frozen=True)

    strategy: str
    confidence: float
    reasoning: str
    alternatives: list[str]
    detailed_analysis: DetailedAnalysis
    is_fallback: bool = False


@dataclass
class StrategyScore:
    """Accumulated fusion score of one candidate strategy.

    Used only inside the arbiter while combining engine outputs.
    """

    strategy: str
    score: float = 0.0
    sources: list[str] = field(default_factory=list)
    confidences: list[float] = field(default_factory=list)
    raw_scores: list[float] = field(default_factory=list)
    contributions: dict[str, float] = field(default_factory=dict)

    def add(self, source: str, engine: str, amount: float, confidence: float, raw: float) -> None:
        self.score += amount
        self.sources.append(source)
        self.confidences.append(confidence)
        self.raw_scores.append(raw)
        self.contributions[engine] = self.contributions.get(engine, 0.0) + amount

    @property
    def mean_confidence(self) -> float:
        if not self.confidences:
            return 0.5
        return sum(self.confidences) / len(self.confidences)

    @property
    def mean_raw_score(self) -> float:
        if not self.raw_scores:
            return 0.0
        return sum(self.raw_scores) / len(self.raw_scores)
