"""Bandwidth fitting for the kernel gating combiner."""

import logging
from dataclasses import dataclass

import numpy as np

from kernel_gating_combiner.training.objective import BandwidthObjective
from kernel_gating_combiner.training.optimizer import (
    direction_set_minimize,
    line_minimize,
)

logger = logging.getLogger(__name__)


@dataclass
class FitResult:
    """Fitted bandwidths and how they were found.

    Attributes:
        log_bandwidth: Winning optimizer parameters.
        bandwidth: Bandwidths written by the final objective call.
        fitness: Objective value at the winning parameters.
        converged: False when the optimizer hit its iteration cap.
        n_evaluations: Total objective calls, including the final one.
        method: "line_search", "direction_set" or "trivial".
    """

    log_bandwidth: np.ndarray
    bandwidth: np.ndarray
    fitness: float
    converged: bool
    n_evaluations: int
    method: str


class BandwidthFitter:
    """Drives the optimizer against a bandwidth objective.

    A single gate is fitted with a coarse scan plus Brent refinement; several
    gates are fitted with Powell's direction-set method started at bandwidth 1.

    Attributes:
        scan_low: Lower end of the single-gate log-bandwidth scan.
        scan_high: Upper end of the single-gate log-bandwidth scan.
        scan_points: Number of scan samples.
        line_search_tol: Abscissa tolerance of the Brent refinement.
        line_search_max_iter: Iteration cap of the Brent refinement.
        direction_set_tol: Function tolerance of the Powell search.
        direction_set_max_iter: Sweep cap of the Powell search.
        perfect_fit_tol: Multi-gate fits stop immediately when the starting
            fitness is at or below this value.
    """

    def __init__(
        self,
        scan_low: float = -3.0,
        scan_high: float = 3.0,
        scan_points: int = 15,
        line_search_tol: float = 1e-5,
        line_search_max_iter: int = 50,
        direction_set_tol: float = 1e-4,
        direction_set_max_iter: int = 10,
        perfect_fit_tol: float = 0.0,
    ) -> None:
        self.scan_low = scan_low
        self.scan_high = scan_high
        self.scan_points = scan_points
        self.line_search_tol = line_search_tol
        self.line_search_max_iter = line_search_max_iter
        self.direction_set_tol = direction_set_tol
        self.direction_set_max_iter = direction_set_max_iter
        self.perfect_fit_tol = perfect_fit_tol

    def fit(self, objective: BandwidthObjective) -> FitResult:
        """Optimize the objective and leave it holding the winning bandwidth.

        Args:
            objective: Objective over the training set being fitted.

        Returns:
            FitResult describing the optimum.
        """
        n_params = objective.n_params
        logger.info(f"Fitting {n_params} bandwidth(s)")

        if n_params == 1:
            result = line_minimize(
                objective.scalar,
                low=self.scan_low,
                high=self.scan_high,
                n_points=self.scan_points,
                tol=self.line_search_tol,
                max_iter=self.line_search_max_iter,
            )
            params, converged, method = result.x, result.converged, result.method
            n_evaluations = result.n_evaluations
        else:
            params = np.zeros(n_params)
            initial = objective(params)
            n_evaluations = 1
            if initial <= self.perfect_fit_tol:
                logger.info(f"Starting fitness {initial:.3e} needs no optimization")
                converged, method = True, "trivial"
            else:
                result = direction_set_minimize(
                    objective,
                    params,
                    tol=self.direction_set_tol,
                    max_iter=self.direction_set_max_iter,
                    initial_value=initial,
                )
                params, converged, method = result.x, result.converged, result.method
                n_evaluations += result.n_evaluations

        fitness = objective(params)
        n_evaluations += 1
        bandwidth = objective.bandwidth_.copy()

        logger.info(
            f"Bandwidth fit complete ({method}): bandwidth={np.round(bandwidth, 4).tolist()}, "
            f"fitness={fitness:.6f}, evaluations={n_evaluations}"
        )
        if not converged:
            logger.warning("Bandwidth optimizer did not converge; keeping best point found")

        return FitResult(
            log_bandwidth=np.asarray(params, dtype=float).copy(),
            bandwidth=bandwidth,
            fitness=fitness,
            converged=converged,
            n_evaluations=n_evaluations,
            method=method,
        )
