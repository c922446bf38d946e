"""
Pytest fixtures and configuration for fleet engine tests

This file contains shared fixtures used across all test modules.
"""

import pytest
import numpy as np
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from fleet.config import load_config  # noqa: E402
from fleet.engine import FleetEngine  # noqa: E402
from fleet.models import LatLng  # noqa: E402
from fleet.persistence import InMemoryFleetStore  # noqa: E402
from fleet.registry import FleetRegistry  # noqa: E402


# =============================================================================
# Deterministic collaborators
# =============================================================================


class FixedRandom:
    """
    Random source with fixed draws.

    random() returns ``value`` (0.3 makes the light walk stand still) and
    uniform() returns the midpoint (no idle drift).
    """

    def __init__(self, value=0.3):
        self.value = value

    def random(self):
        return self.value

    def uniform(self, low, high):
        return (low + high) / 2.0


class ManualClock:
    """Epoch-seconds clock advanced by hand"""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config():
    """Default configuration with an empty seed fleet"""
    cfg = load_config()
    cfg["fleet"]["seed_drones"] = []
    return cfg


@pytest.fixture
def seeded_config():
    """Default configuration including the three bootstrap drones"""
    return load_config()


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def fixed_random():
    return FixedRandom()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    return InMemoryFleetStore()


@pytest.fixture
def registry(config, store, clock):
    return FleetRegistry(config, store=store, clock=clock)


@pytest.fixture
def engine(config, store, fixed_random, clock):
    """Empty engine with deterministic random source and clock"""
    return FleetEngine(config, store=store, rng=fixed_random, clock=clock)


@pytest.fixture
def seeded_engine(seeded_config, store, clock):
    """Bootstrapped engine driven by a seeded numpy generator"""
    return FleetEngine(
        seeded_config, store=store, rng=np.random.default_rng(1234), clock=clock
    )


# =============================================================================
# Position Fixtures
# =============================================================================


@pytest.fixture
def depot():
    return LatLng(39.9042, 116.4074)


@pytest.fixture
def nearby_destination():
    """~0.00014 deg from the depot, inside the arrival tolerance"""
    return {"lat": 39.9043, "lng": 116.4075}


@pytest.fixture
def far_destination():
    """0.003 deg north of the depot, outside the sensor range"""
    return {"lat": 39.9072, "lng": 116.4074}


# =============================================================================
# Helper Functions
# =============================================================================


@pytest.fixture
def run_until_idle():
    """Tick an engine until a drone is idle again; returns all tick results"""

    def _run(engine, drone_id, max_ticks=200):
        results = []
        for _ in range(max_ticks):
            results.append(engine.tick())
            if engine.get_drone(drone_id).current_task is None:
                return results
        raise AssertionError(f"Drone {drone_id} did not arrive in {max_ticks} ticks")

    return _run


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "regression: mark test as a regression test")


def pytest_collection_modifyitems(config, items):
    """Modify test items during collection"""
    for item in items:
        # Auto-mark tests based on directory
        if "unit" in str(item.path):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.path):
            item.add_marker(pytest.mark.integration)
        elif "regression" in str(item.path):
            item.add_marker(pytest.mark.regression)
