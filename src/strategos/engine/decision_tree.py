"""Multi-step decision tree search.

A tree of depth d holds the role's three strategy labels at every level,
so it has (3^(d+1) - 3) / 2 decision nodes below the root. Node payoffs
follow

    payoff = base[label] * multiplier * (1 + DEPTH_SCALE * level) + adjustment[label]

where adjustment is the role-specific bonus derived from the current state.
Trees are built breadth-first into a flat arena, so building never recurses
and indices always point forward.

Paths are scored by summing node payoffs; the total is halved when any
visited node's condition does not hold for the state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from strategos.cache import StrategyCache
from strategos.config import EngineSettings
from strategos.errors import MalformedTreeError
from strategos.models.agents import Role, resolve_role
from strategos.models.trees import DecisionNode, DecisionPath, DecisionTree
from strategos.parameters import (
    DEPTH_SCALE,
    FAILED_CONDITION_PENALTY,
    STRATEGY_SETS,
    TREE_BASE_PAYOFFS,
    TREE_CONDITIONS,
    TREE_DESCRIPTIONS,
)

logger = logging.getLogger(__name__)

TREE_NAMESPACE = "tree"
ROOT_LABEL = "root"


def node_count(max_depth: int, branching: int = 3) -> int:
    """Number of non-root nodes in a full tree of the given depth."""
    if branching == 1:
        return max_depth
    return (branching ** (max_depth + 1) - branching) // (branching - 1)


def state_adjustments(role: Role, state: Mapping[str, float]) -> dict[str, float]:
    """Per-label payoff bonus a role earns from the current state.

    Attack and Defense react to specific fields; the other roles scale
    every label with energy_level.
    """
    labels = STRATEGY_SETS[role]
    adjustments = dict.fromkeys(labels, 0.0)

    if role is Role.ATTACK:
        enemy_health = state.get("enemy_health")
        if enemy_health is not None and enemy_health < 30:
            adjustments["aggressive"] += 5
        own_health = state.get("own_health")
        if own_health is not None and own_health > 80:
            adjustments["tactical"] += 3
        enemy_count = state.get("enemy_count")
        if enemy_count is not None and enemy_count > 1:
            adjustments["opportunistic"] += enemy_count
    elif role is Role.DEFENSE:
        own_health = state.get("own_health")
        if own_health is not None and own_health < 40:
            adjustments["protective"] += (40 - own_health) / 4
        if state.get("under_attack"):
            adjustments["counter"] += 4
        if state.get("allies_nearby"):
            adjustments["evasive"] += 3
    else:
        energy = state.get("energy_level")
        if energy is not None:
            for label in labels:
                adjustments[label] += 2 * energy / 100

    return adjustments


def _state_key(state: Mapping[str, float] | None) -> tuple | None:
    if not state:
        return None
    return tuple(sorted(state.items()))


class DecisionTreeEngine:
    """Builds decision trees and searches them for the best paths."""

    def __init__(self, cache: StrategyCache | None = None, settings: EngineSettings | None = None):
        self.cache = cache if cache is not None else StrategyCache()
        self.settings = settings if settings is not None else EngineSettings()

    def build(
        self,
        tree_id: str,
        role: Role | str,
        max_depth: int | None = None,
        payoff_multiplier: float | None = None,
        state: Mapping[str, float] | None = None,
    ) -> DecisionTree:
        """Build (or fetch from cache) a full tree for role.

        Args:
            tree_id: Identifier of the tree, usually the agent id
            role: Role whose strategy set populates every level
            max_depth: Levels below the root (default: settings.max_depth)
            payoff_multiplier: Scale on base payoffs (default: settings.payoff_multiplier)
            state: Factor map feeding the role's state adjustments

        Raises:
            UnknownRoleError: if role is unrecognized
            ValueError: if max_depth < 1 or payoff_multiplier <= 0
        """
        resolved = resolve_role(role)
        depth = self.settings.max_depth if max_depth is None else max_depth
        multiplier = self.settings.payoff_multiplier if payoff_multiplier is None else payoff_multiplier
        if depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {depth}")
        if multiplier <= 0:
            raise ValueError(f"payoff_multiplier must be positive, got {multiplier}")

        key = (tree_id, resolved.value, depth, multiplier, _state_key(state))
        return self.cache.get_or_create(
            TREE_NAMESPACE,
            key,
            lambda: self._build(tree_id, resolved, depth, multiplier, state or {}),
        )

    def _build(
        self,
        tree_id: str,
        role: Role,
        max_depth: int,
        multiplier: float,
        state: Mapping[str, float],
    ) -> DecisionTree:
        labels = STRATEGY_SETS[role]
        bases = TREE_BASE_PAYOFFS[role]
        conditions = TREE_CONDITIONS[role]
        descriptions = TREE_DESCRIPTIONS[role]
        adjustments = state_adjustments(role, state) if state else {}

        specs: list[dict] = [
            {
                "index": 0,
                "id": f"{tree_id}_{ROOT_LABEL}",
                "label": ROOT_LABEL,
                "description": f"{role.value.capitalize()} decision root",
                "depth": 0,
                "payoff": 0.0,
                "condition": None,
                "children": [],
            }
        ]
        frontier = [0]
        for level in range(1, max_depth + 1):
            next_frontier = []
            for parent in frontier:
                for position, label in enumerate(labels):
                    index = len(specs)
                    payoff = bases[position] * multiplier * (1 + DEPTH_SCALE * level) + adjustments.get(label, 0.0)
                    specs.append(
                        {
                            "index": index,
                            "id": f"{role.value}_{label}_{level}_{index}",
                            "label": label,
                            "description": descriptions[position],
                            "depth": level,
                            "payoff": payoff,
                            "condition": conditions[position],
                            "children": [],
                        }
                    )
                    specs[parent]["children"].append(index)
                    next_frontier.append(index)
            frontier = next_frontier

        nodes = tuple(DecisionNode(**{**spec, "children": tuple(spec["children"])}) for spec in specs)
        logger.debug(f"Built {role.value} tree {tree_id!r}: depth {max_depth}, {len(nodes) - 1} decisions")
        return DecisionTree(tree_id=tree_id, role=role.value, max_depth=max_depth, nodes=nodes)

    def best_path(self, tree: DecisionTree, state: Mapping[str, float] | None = None) -> DecisionPath:
        """Greedy walk from the root.

        At each node take the highest-payoff child whose condition holds. If
        no child qualifies, take the highest-payoff child anyway and mark the
        path as failed, which halves its total.

        Raises:
            MalformedTreeError: if child indices are out of range or backwards
        """
        self.validate(tree)
        state = state or {}
        node = tree.root
        visited = [node]
        total = node.payoff
        failed = False
        while node.children:
            children = tree.children(node)
            eligible = [c for c in children if c.condition is None or c.condition(state)]
            if not eligible:
                eligible = children
                failed = True
            node = max(eligible, key=lambda c: c.payoff)
            visited.append(node)
            total += node.payoff
        if failed:
            total *= FAILED_CONDITION_PENALTY
        return DecisionPath(nodes=tuple(visited), total_payoff=total, conditions_failed=failed)

    def top_paths(self, tree: DecisionTree, state: Mapping[str, float] | None = None, n: int = 3) -> list[DecisionPath]:
        """Enumerate every root-to-leaf path and return the n best.

        Paths are visited left to right; the sort is stable, so equal totals
        keep that order.

        Raises:
            MalformedTreeError: if child indices are out of range or backwards
        """
        self.validate(tree)
        state = state or {}
        paths = []
        stack: list[tuple[int, ...]] = [(0,)]
        while stack:
            indices = stack.pop()
            node = tree.node(indices[-1])
            if node.children:
                stack.extend(indices + (child,) for child in reversed(node.children))
                continue
            visited = tuple(tree.node(i) for i in indices)
            failed = any(v.condition is not None and not v.condition(state) for v in visited)
            total = sum(v.payoff for v in visited)
            if failed:
                total *= FAILED_CONDITION_PENALTY
            paths.append(DecisionPath(nodes=visited, total_payoff=total, conditions_failed=failed))
        paths.sort(key=lambda p: p.total_payoff, reverse=True)
        return paths[:n]

    def evaluate(
        self,
        tree: DecisionTree,
        state: Mapping[str, float] | None = None,
        top_n: int | None = None,
    ) -> tuple[DecisionPath, list[DecisionPath]]:
        """Best path plus up to top_n alternative paths.

        Never raises for a malformed tree: the answer degrades to the
        root-only path with no alternatives.
        """
        count = self.settings.top_paths if top_n is None else top_n
        try:
            best = self.best_path(tree, state)
            ranked = self.top_paths(tree, state, count + 1)
        except MalformedTreeError as exc:
            logger.warning(f"Malformed decision tree {tree.tree_id!r}: {exc}; falling back to root-only path")
            return self.root_only_path(tree), []
        alternatives = [p for p in ranked if p.indices != best.indices][:count]
        return best, alternatives

    def root_only_path(self, tree: DecisionTree) -> DecisionPath:
        if tree.nodes:
            root = tree.root
        else:
            root = DecisionNode(
                index=0,
                id=f"{tree.tree_id}_{ROOT_LABEL}",
                label=ROOT_LABEL,
                description="",
                depth=0,
                payoff=0.0,
            )
        return DecisionPath(nodes=(root,), total_payoff=root.payoff)

    def validate(self, tree: DecisionTree) -> None:
        """Check arena integrity.

        Raises:
            MalformedTreeError: if the tree is empty, a node's index does not
                match its position, or a child index is out of range or does
                not point forward
        """
        if not tree.nodes:
            raise MalformedTreeError(f"Tree {tree.tree_id!r} has no nodes")
        size = len(tree.nodes)
        for position, node in enumerate(tree.nodes):
            if node.index != position:
                raise MalformedTreeError(f"Node {node.id!r} stored at {position} claims index {node.index}")
            for child in node.children:
                if not position < child < size:
                    raise MalformedTreeError(f"Node {node.id!r} has invalid child index {child}")
