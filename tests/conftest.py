"""Pytest configuration and fixtures."""

import pytest
import numpy as np


@pytest.fixture
def random_seed():
    """Fixed random seed for reproducibility."""
    return 42


@pytest.fixture
def staircase_cases():
    """Four cases on one gate where the first contender is exact and the second is off by 5."""
    gates = np.array([0.0, 1.0, 2.0, 3.0])
    target = gates.copy()
    contenders = np.column_stack([target, target + 5.0])
    return gates, contenders, target


@pytest.fixture
def regional_cases():
    """One-gate cases where each contender is exact on its own half of the gate axis."""
    gates = np.linspace(-3.0, 3.0, 20)
    target = np.sin(gates)
    left = gates < 0
    contenders = np.column_stack(
        [
            np.where(left, target, target + 1.0),
            np.where(left, target + 1.0, target),
        ]
    )
    return gates, contenders, target


@pytest.fixture
def two_gate_cases(random_seed):
    """Two-gate cases with one accurate and one noisy contender."""
    rng = np.random.RandomState(random_seed)
    gates = rng.standard_normal((40, 2))
    target = gates[:, 0] - gates[:, 1]
    contenders = np.column_stack(
        [
            target + 0.1 * rng.standard_normal(40),
            target + 1.0 * rng.standard_normal(40),
        ]
    )
    return gates, contenders, target
