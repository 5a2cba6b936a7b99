"""Shared fixtures for the test suite."""

from pathlib import Path

import pytest

from jax_robot_model.config import PreprocessingConfig, ToolboxConfig
from jax_robot_model.geometry import RobotLinkShapeRepresentation

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir():
    return FIXTURES


@pytest.fixture
def fast_preprocessing():
    """Sample-count-bound preprocessing: the wall-clock budgets never trigger."""
    return PreprocessingConfig(
        min_samples=10,
        max_samples=150,
        never_colliding_min_samples=100,
        time_budgets={r.value: 1e6 for r in RobotLinkShapeRepresentation},
    )


@pytest.fixture
def fast_config(fast_preprocessing, tmp_path):
    return ToolboxConfig(assets_dir=tmp_path, preprocessing=fast_preprocessing)
