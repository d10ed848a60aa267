"""Combiner facade, core gating components and contender models."""

from kernel_gating_combiner.models.model import GatingCombiner
from kernel_gating_combiner.models.components import (
    GatingCase,
    InvalidArgumentError,
    KernelEvaluator,
    TrainingSet,
)

__all__ = [
    "GatingCombiner",
    "GatingCase",
    "InvalidArgumentError",
    "KernelEvaluator",
    "TrainingSet",
]
