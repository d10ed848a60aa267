"""Cross-validated fitness of kernel bandwidths."""

import logging
from typing import Tuple

import numpy as np

from kernel_gating_combiner.models.components import KernelEvaluator

logger = logging.getLogger(__name__)


class BandwidthObjective:
    """Leave-near-out mean squared error as a function of log-bandwidths.

    Instances are plain callables, so they can be handed straight to the
    optimizer; each fit builds its own objective.

    Attributes:
        evaluator: Kernel evaluator over the training set being fitted.
        exclude_radius: Circular radius of the window left out around each case.
        log_bandwidth_limit: Log-bandwidths are clipped to
            [-log_bandwidth_limit, log_bandwidth_limit].
        boundary_penalty: Linear penalty per unit a parameter lies outside the
            clip range.
        bandwidth_: Bandwidth used by the most recent call.
        n_calls_: Number of calls so far.
    """

    def __init__(
        self,
        evaluator: KernelEvaluator,
        exclude_radius: int = 0,
        log_bandwidth_limit: float = 8.0,
        boundary_penalty: float = 10.0,
    ) -> None:
        if log_bandwidth_limit <= 0:
            raise ValueError(f"log_bandwidth_limit must be > 0, got {log_bandwidth_limit}")
        if boundary_penalty < 0:
            raise ValueError(f"boundary_penalty must be >= 0, got {boundary_penalty}")

        self.evaluator = evaluator
        self.exclude_radius = exclude_radius
        self.log_bandwidth_limit = log_bandwidth_limit
        self.boundary_penalty = boundary_penalty

        training_set = evaluator.training_set
        self._excluded = training_set.exclusion_matrix(exclude_radius)
        if self._excluded.all():
            logger.warning(
                f"exclude_radius={exclude_radius} leaves out every case; "
                "fitness will not depend on the bandwidth"
            )

        self.bandwidth_ = np.ones(training_set.n_gates)
        self.n_calls_ = 0

    @property
    def n_params(self) -> int:
        return self.evaluator.training_set.n_gates

    def to_bandwidth(self, params) -> Tuple[np.ndarray, float]:
        """Map log-bandwidth parameters to bandwidths and a boundary penalty.

        Args:
            params: Log-bandwidths of shape (n_gates,).

        Returns:
            Tuple of (bandwidth, penalty).
        """
        params = np.atleast_1d(np.asarray(params, dtype=float))
        if params.size != self.n_params:
            raise ValueError(f"Expected {self.n_params} parameters, got {params.size}")

        overshoot = np.abs(params) - self.log_bandwidth_limit
        penalty = self.boundary_penalty * float(overshoot[overshoot > 0].sum())
        bandwidth = np.exp(np.clip(params, -self.log_bandwidth_limit, self.log_bandwidth_limit))
        return bandwidth, penalty

    def __call__(self, params) -> float:
        bandwidth, penalty = self.to_bandwidth(params)
        self.bandwidth_ = bandwidth
        self.n_calls_ += 1

        training_set = self.evaluator.training_set
        predictions = self.evaluator.leave_out_predictions(bandwidth, self._excluded)
        error = np.mean((training_set.target - predictions) ** 2)
        return float(error) + penalty

    def scalar(self, param: float) -> float:
        """Single-gate form of the objective for scalar line searches."""
        return self(np.array([param], dtype=float))
