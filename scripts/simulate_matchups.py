#!/usr/bin/env python3
"""
Role Matchup Simulation for Strategos

Runs the strategy arbiter over every pairing of the five roles and prints
the recommended strategy, its confidence and the combination method, then
summarizes how often each engine decided the outcome.

Useful for eyeballing table changes in strategos.parameters: a role whose
recommendation never changes across environments, or an engine that never
wins, usually points at an unbalanced table.

Usage:
    python scripts/simulate_matchups.py
    python scripts/simulate_matchups.py --environment battle --threat 0.8
    python scripts/simulate_matchups.py --horizon 4 --depth 2
"""

import itertools
import logging
from collections import Counter

from strategos.config import EngineSettings
from strategos.engine.arbiter import StrategyArbiter
from strategos.models.agents import Agent, Context, Role


def build_context(args) -> Context | None:
    if args.no_context:
        return None
    return Context(
        environment=args.environment,
        threat_level=args.threat,
        resource_scarcity=args.scarcity,
        social_factor=args.social,
        time_horizon=args.horizon,
        complex_scenario=args.complex,
    )


def run_matchups(arbiter: StrategyArbiter, context: Context | None) -> list[tuple[Role, Role, object]]:
    results = []
    for own, other in itertools.product(list(Role), repeat=2):
        agent = Agent(id=f"{own.value}_agent", role=own)
        opponent = Agent(id=f"{other.value}_opponent", role=other)
        results.append((own, other, arbiter.decide(agent, opponent, context)))
    return results


def print_results(results, context: Context | None) -> None:
    print("\n" + "=" * 100)
    print("ROLE MATCHUP RECOMMENDATIONS")
    if context is None:
        print("Context: none")
    else:
        print(f"Context: {context.model_dump(exclude_defaults=True)}")
    print("=" * 100)

    print(f"\n{'Agent':<10} {'Opponent':<10} {'Strategy':<15} {'Conf':>6}  {'Method':<25} {'Weights (N/U/T)':<18}")
    print("-" * 100)
    for own, other, rec in results:
        w = rec.detailed_analysis.weights
        weights = f"{w.nash:.2f}/{w.utility:.2f}/{w.tree:.2f}"
        print(
            f"{own.value:<10} {other.value:<10} {rec.strategy:<15} {rec.confidence:>6.2f}  "
            f"{rec.detailed_analysis.combination_method:<25} {weights:<18}"
        )

    print("\n" + "=" * 100)
    print("COMBINATION METHODS")
    print("=" * 100)
    methods = Counter(rec.detailed_analysis.combination_method for _, _, rec in results)
    for method, count in methods.most_common():
        print(f"{method:<30} {count:>4} ({count / len(results) * 100:.1f}%)")

    print("\n" + "=" * 100)
    print("STRATEGY SPREAD PER ROLE")
    print("=" * 100)
    for role in Role:
        picks = Counter(rec.strategy for own, _, rec in results if own is role)
        spread = ", ".join(f"{s} x{n}" for s, n in picks.most_common())
        print(f"{role.value:<10} {spread}")


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the strategy arbiter over every role pairing")
    parser.add_argument("--environment", choices=["battle", "cooperation", "exploration", "evolution"], default=None)
    parser.add_argument("--threat", type=float, default=None, help="Threat level 0-1")
    parser.add_argument("--scarcity", type=float, default=None, help="Resource scarcity 0-1")
    parser.add_argument("--social", type=float, default=None, help="Social factor 0-1")
    parser.add_argument("--horizon", type=int, default=1, help="Time horizon (>1 enables decision trees)")
    parser.add_argument("--complex", action="store_true", help="Force decision tree analysis")
    parser.add_argument("--depth", type=int, default=3, help="Decision tree depth")
    parser.add_argument("--no-context", action="store_true", help="Run without any context")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show engine debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    arbiter = StrategyArbiter(EngineSettings(max_depth=args.depth))
    context = build_context(args)
    print_results(run_matchups(arbiter, context), context)


if __name__ == "__main__":
    main()
