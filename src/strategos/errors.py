"""Error taxonomy for the Strategos decision engine.

Only EmptyCandidateSetError is meant to reach the host application: it
signals a broken strategy table upstream. Every other condition has a
documented fallback value and is recovered inside the engine:

- UnknownRoleError -> fallback 2x2 matrix / default strategy set
- MalformedTreeError -> root-only decision path
- no equilibrium -> None from the solver, max-average-payoff pick upstream
- AllEnginesFailedError -> utility-only fallback recommendation (logged)
"""


class StrategyEngineError(Exception):
    """Base class for all decision engine errors."""


class InvalidInputError(StrategyEngineError, ValueError):
    """Input could not be interpreted (unknown role, malformed context)."""


class UnknownRoleError(InvalidInputError):
    """A role string does not name any known Role."""

    def __init__(self, role: object):
        self.role = role
        super().__init__(f"Unknown role: {role!r}")


class MalformedTreeError(InvalidInputError):
    """A decision tree references nodes that do not exist."""


class EmptyCandidateSetError(StrategyEngineError):
    """A strategy choice was requested over zero candidates."""


class AllEnginesFailedError(StrategyEngineError):
    """No sub-engine produced a usable result.

    Constructed for logging only; the arbiter never raises it to callers.
    """

    def __init__(self, failures: dict[str, BaseException]):
        self.failures = failures
        detail = ", ".join(f"{name}: {exc!r}" for name, exc in failures.items()) or "no engine ran"
        super().__init__(f"All strategy engines failed ({detail})")
