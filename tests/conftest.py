"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

NOW_MS = 1_700_000_000_000


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now_ms():
    """Fixed clock for deterministic staleness."""
    return NOW_MS


@pytest.fixture
def config():
    """Engine configuration with default tuning, independent of the environment."""
    from src.funnel.tuning import FunnelConfig

    return FunnelConfig()


@pytest.fixture
def rng():
    """Seeded random source for tie-breaking."""
    return random.Random(1234)


@pytest.fixture
def funnel_state():
    """Fresh, empty funnel state."""
    from src.funnel.store import default_funnel_state

    return default_funnel_state()


@pytest.fixture
def guide_concepts():
    """Eight outline concepts, keyed by normalized name."""
    names = ["alpha", "beta", "gamma", "delta", "epsilon", "zeta", "eta", "theta"]
    return {name: name.title() for name in names}


@pytest.fixture
def sample_item():
    """A multiple-choice item tagged with one concept."""
    from src.funnel.models import CandidateItem

    return CandidateItem(
        id="q1",
        stem="This stem mentions hemostasis once.",
        options=["A", "B"],
        correct_answer="A",
        concept_tags=["Normal Hemostasis"],
    )
