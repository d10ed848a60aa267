"""Evaluation metrics and analysis."""

from kernel_gating_combiner.evaluation.metrics import (
    compute_all_metrics,
    compute_contender_errors,
    compute_weight_statistics,
)

__all__ = [
    "compute_all_metrics",
    "compute_contender_errors",
    "compute_weight_statistics",
]
