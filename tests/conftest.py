"""Shared pytest fixtures and markers for all tests."""

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture
def cache():
    """Provide a fresh memoization cache."""
    from strategos.cache import StrategyCache
    return StrategyCache(max_size=256)


@pytest.fixture
def settings():
    """Provide default engine settings."""
    from strategos.config import EngineSettings
    return EngineSettings()


@pytest.fixture
def arbiter(cache, settings):
    """Provide an arbiter wired to the shared test cache."""
    from strategos.engine.arbiter import StrategyArbiter
    return StrategyArbiter(settings=settings, cache=cache)


@pytest.fixture
def attacker():
    """Provide an Attack agent."""
    from strategos.models.agents import Agent
    return Agent(id="attacker", role="attack", stats={"health": 80, "damage": 30})


@pytest.fixture
def defender():
    """Provide a Defense agent."""
    from strategos.models.agents import Agent
    return Agent(id="defender", role="defense", stats={"health": 60})
