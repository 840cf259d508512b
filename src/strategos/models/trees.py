"""Decision tree structures for Strategos.

Trees use arena storage: a DecisionTree owns a flat tuple of nodes and
every node refers to its children by integer index. Indices always point
forward (child index > parent index), so a tree cannot contain a cycle.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Literal

ConditionOp = Literal["lt", "gt", "is_true", "is_false"]


@dataclass(frozen=True)
class FactorCondition:
    """Predicate over a factor map.

    A missing factor never satisfies a condition, whatever the operator.

    Examples:
        >>> FactorCondition("enemy_health", "lt", 50)({"enemy_health": 20})
        True
        >>> FactorCondition("under_attack", "is_true")({})
        False
    """

    factor: str
    op: ConditionOp
    threshold: float = 0.0

    def __call__(self, state: Mapping[str, float]) -> bool:
        value = state.get(self.factor)
        if value is None:
            return False
        if self.op == "lt":
            return value < self.threshold
        if self.op == "gt":
            return value > self.threshold
        if self.op == "is_true":
            return bool(value)
        if self.op == "is_false":
            return not value
        raise ValueError(f"Unknown condition operator: {self.op}")

    def describe(self) -> str:
        symbols = {"lt": "<", "gt": ">"}
        if self.op in symbols:
            return f"{self.factor} {symbols[self.op]} {self.threshold:g}"
        return f"{self.factor} is {'set' if self.op == 'is_true' else 'unset'}"


@dataclass(frozen=True)
class DecisionNode:
    """One decision in the arena.

    Attributes:
        index: Position of this node in DecisionTree.nodes
        id: Human-readable unique id (role_label_depth_index)
        label: Strategy label this decision represents ("root" for the root)
        description: Short explanation of the decision
        depth: 0 for the root, 1..max_depth below it
        payoff: Payoff contribution of taking this decision
        condition: Optional predicate the state should satisfy
        children: Indices of child nodes, in strategy-set order
    """

    index: int
    id: str
    label: str
    description: str
    depth: int
    payoff: float
    condition: FactorCondition | None = None
    children: tuple[int, ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children


@dataclass(frozen=True)
class DecisionTree:
    """Bounded-depth tree of sequential decisions for one agent."""

    tree_id: str
    role: str
    max_depth: int
    nodes: tuple[DecisionNode, ...]

    @property
    def root(self) -> DecisionNode:
        return self.nodes[0]

    def node(self, index: int) -> DecisionNode:
        return self.nodes[index]

    def children(self, node: DecisionNode) -> list[DecisionNode]:
        return [self.nodes[i] for i in node.children]

    def leaves(self) -> Iterator[DecisionNode]:
        return (n for n in self.nodes if n.is_leaf)

    @property
    def decision_count(self) -> int:
        """Number of non-root nodes."""
        return len(self.nodes) - 1


@dataclass(frozen=True)
class DecisionPath:
    """A root-to-leaf walk with its accumulated payoff.

    Attributes:
        nodes: Visited nodes, root first
        total_payoff: Sum of node payoffs, halved if any condition failed
        conditions_failed: Whether any visited node's condition was false
    """

    nodes: tuple[DecisionNode, ...]
    total_payoff: float
    conditions_failed: bool = False

    @property
    def decisions(self) -> list[str]:
        """Labels of the decisions taken, excluding the root."""
        return [n.label for n in self.nodes if n.depth > 0]

    @property
    def indices(self) -> tuple[int, ...]:
        return tuple(n.index for n in self.nodes)
