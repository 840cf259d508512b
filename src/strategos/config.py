"""Engine configuration for Strategos.

Settings are an immutable pydantic model. Hosts either construct one
directly or load it from environment variables:

    STRATEGOS_MAX_DEPTH: decision tree depth (default: 3)
    STRATEGOS_PAYOFF_MULTIPLIER: decision tree payoff multiplier (default: 1.0)
    STRATEGOS_CACHE_SIZE: memoization cache capacity (default: 512)
    STRATEGOS_FALLBACK_CONFIDENCE: confidence of the fallback answer (default: 0.3)
"""

import os

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_MAX_DEPTH = 3
DEFAULT_PAYOFF_MULTIPLIER = 1.0
DEFAULT_CACHE_SIZE = 512
DEFAULT_FALLBACK_CONFIDENCE = 0.3


class EngineSettings(BaseModel):
    """Tunable knobs shared by every engine.

    Attributes:
        max_depth: Depth of generated decision trees (levels below the root)
        payoff_multiplier: Scale applied to decision tree base payoffs
        payoff_floor: Lowest payoff a context-adjusted matrix cell may hold
        payoff_ceiling: Highest payoff a context-adjusted matrix cell may hold
        cache_size: Maximum number of memoized entries across all namespaces
        fallback_confidence: Confidence reported when every engine failed
        top_paths: Number of decision paths considered as alternatives
        max_alternatives: Number of alternative strategies in a recommendation
    """

    model_config = ConfigDict(frozen=True)

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, le=8)
    payoff_multiplier: float = Field(default=DEFAULT_PAYOFF_MULTIPLIER, gt=0.0)
    payoff_floor: float = 1.0
    payoff_ceiling: float = 20.0
    cache_size: int = Field(default=DEFAULT_CACHE_SIZE, ge=0)
    fallback_confidence: float = Field(default=DEFAULT_FALLBACK_CONFIDENCE, ge=0.0, le=1.0)
    top_paths: int = Field(default=3, ge=1)
    max_alternatives: int = Field(default=3, ge=0)

    @model_validator(mode="after")
    def validate_payoff_bounds(self) -> "EngineSettings":
        if self.payoff_floor >= self.payoff_ceiling:
            raise ValueError(
                f"payoff_floor must be below payoff_ceiling, got {self.payoff_floor} >= {self.payoff_ceiling}"
            )
        return self


def get_max_depth() -> int:
    """Get configured decision tree depth from environment."""
    return int(os.environ.get("STRATEGOS_MAX_DEPTH", DEFAULT_MAX_DEPTH))


def get_payoff_multiplier() -> float:
    """Get configured decision tree payoff multiplier from environment."""
    return float(os.environ.get("STRATEGOS_PAYOFF_MULTIPLIER", DEFAULT_PAYOFF_MULTIPLIER))


def get_cache_size() -> int:
    """Get configured cache capacity from environment."""
    return int(os.environ.get("STRATEGOS_CACHE_SIZE", DEFAULT_CACHE_SIZE))


def get_fallback_confidence() -> float:
    """Get configured fallback confidence from environment."""
    return float(os.environ.get("STRATEGOS_FALLBACK_CONFIDENCE", DEFAULT_FALLBACK_CONFIDENCE))


def load_settings() -> EngineSettings:
    """Build EngineSettings from environment variables.

    Returns:
        EngineSettings instance

    Raises:
        pydantic.ValidationError: if an environment value is out of range
        ValueError: if an environment value is not a number
    """
    return EngineSettings(
        max_depth=get_max_depth(),
        payoff_multiplier=get_payoff_multiplier(),
        cache_size=get_cache_size(),
        fallback_confidence=get_fallback_confidence(),
    )
