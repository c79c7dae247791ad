# tests/conftest.py
"""Shared fixtures and Hypothesis profiles.

Fixtures:
- execution_log: list the recording processes append executed node ids to
- registry: ProcessRegistry of recording processes (see tests/fixtures/processes.py)
- computing_registry: ProcessRegistry whose processes compute real values

Hypothesis profiles (HYPOTHESIS_PROFILE, default "ci"):
- ci: 100 examples, no deadline
- nightly: 1000 examples
- debug: 10 examples, verbose

    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from procgraph.engine import ProcessRegistry
from tests.fixtures.processes import make_computing_registry, make_registry

# =============================================================================
# Hypothesis profiles
# =============================================================================

_ALL_PHASES = [Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink]

# Graph execution spins up an event loop per example; timings vary on CI
settings.register_profile("ci", max_examples=100, phases=_ALL_PHASES, deadline=None)
settings.register_profile("nightly", max_examples=1000, phases=_ALL_PHASES, deadline=None)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose, phases=_ALL_PHASES, deadline=None)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Process registries
# =============================================================================


@pytest.fixture
def execution_log() -> list[str]:
    """Node ids in the order the recording processes executed them."""
    return []


@pytest.fixture
def registry(execution_log: list[str]) -> ProcessRegistry:
    return make_registry(execution_log)


@pytest.fixture
def computing_registry() -> ProcessRegistry:
    return make_computing_registry()
