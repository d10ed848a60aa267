"""Synthetic data generation and gate construction."""

from kernel_gating_combiner.data.loader import (
    build_contender_training_sets,
    generate_regression_dataset,
)
from kernel_gating_combiner.data.preprocessing import GATE_STRATEGIES, build_gates

__all__ = [
    "build_contender_training_sets",
    "generate_regression_dataset",
    "GATE_STRATEGIES",
    "build_gates",
]
