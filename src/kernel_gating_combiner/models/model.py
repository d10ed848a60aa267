"""Kernel gating combiner: local, accuracy-weighted blending of contender models."""

import logging
from typing import Optional, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from sklearn.metrics import r2_score

from kernel_gating_combiner.models.components import (
    InvalidArgumentError,
    KernelEvaluator,
    TrainingSet,
)
from kernel_gating_combiner.training.fitter import BandwidthFitter, FitResult
from kernel_gating_combiner.training.objective import BandwidthObjective

logger = logging.getLogger(__name__)

ArrayLike = Union[pd.DataFrame, np.ndarray, list]


def _to_array(values: ArrayLike) -> np.ndarray:
    return values.values if isinstance(values, (pd.DataFrame, pd.Series)) else np.asarray(values)


class GatingCombiner(BaseEstimator):
    """Blends several contender predictions using gate-space kernel weighting.

    Near a query point in gate space, each contender is trusted in inverse
    proportion to its kernel-weighted historical squared error on the training
    cases. Per-gate kernel bandwidths are chosen by minimizing the
    leave-near-out cross-validated error of the blend.

    Attributes:
        scan_low: Lower end of the single-gate log-bandwidth scan.
        scan_high: Upper end of the single-gate log-bandwidth scan.
        scan_points: Number of samples in the single-gate scan.
        line_search_tol: Abscissa tolerance of the single-gate refinement.
        line_search_max_iter: Iteration cap of the single-gate refinement.
        direction_set_tol: Function tolerance of the multi-gate search.
        direction_set_max_iter: Sweep cap of the multi-gate search.
        perfect_fit_tol: Multi-gate search is skipped at or below this fitness.
        log_bandwidth_limit: Clip range of log-bandwidths during fitting.
        boundary_penalty: Penalty slope outside the clip range.
        exclude_radius: Circular window left out around each case when fitting.
        training_set_: Copy of the training cases.
        evaluator_: Kernel evaluator over ``training_set_``.
        bandwidth_: Fitted read-only bandwidths, one per gate.
        fit_result_: Details of the bandwidth optimization.
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
        log_bandwidth_limit: float = 8.0,
        boundary_penalty: float = 10.0,
        exclude_radius: int = 0,
    ) -> None:
        """Initialize the combiner.

        Args:
            scan_low: Lower end of the single-gate log-bandwidth scan.
            scan_high: Upper end of the single-gate log-bandwidth scan.
            scan_points: Number of samples in the single-gate scan.
            line_search_tol: Abscissa tolerance of the single-gate refinement.
            line_search_max_iter: Iteration cap of the single-gate refinement.
            direction_set_tol: Function tolerance of the multi-gate search.
            direction_set_max_iter: Sweep cap of the multi-gate search.
            perfect_fit_tol: Multi-gate search is skipped when the fitness at
                bandwidth 1 is at or below this value.
            log_bandwidth_limit: Log-bandwidths are clipped to this magnitude.
            boundary_penalty: Fitness penalty per unit beyond the clip range.
            exclude_radius: Cases within this circular index distance of a case
                are left out when that case is cross-validated.

        Raises:
            ValueError: If a hyperparameter is out of range.
        """
        if not scan_low < scan_high:
            raise ValueError(f"scan_low must be < scan_high, got {scan_low}, {scan_high}")
        if scan_points < 3:
            raise ValueError(f"scan_points must be >= 3, got {scan_points}")
        if line_search_max_iter < 1 or direction_set_max_iter < 1:
            raise ValueError("Iteration caps must be >= 1")
        if log_bandwidth_limit <= 0:
            raise ValueError(f"log_bandwidth_limit must be > 0, got {log_bandwidth_limit}")
        if boundary_penalty < 0:
            raise ValueError(f"boundary_penalty must be >= 0, got {boundary_penalty}")
        if exclude_radius < 0:
            raise ValueError(f"exclude_radius must be >= 0, got {exclude_radius}")

        self.scan_low = scan_low
        self.scan_high = scan_high
        self.scan_points = scan_points
        self.line_search_tol = line_search_tol
        self.line_search_max_iter = line_search_max_iter
        self.direction_set_tol = direction_set_tol
        self.direction_set_max_iter = direction_set_max_iter
        self.perfect_fit_tol = perfect_fit_tol
        self.log_bandwidth_limit = log_bandwidth_limit
        self.boundary_penalty = boundary_penalty
        self.exclude_radius = exclude_radius

        self.training_set_: Optional[TrainingSet] = None
        self.evaluator_: Optional[KernelEvaluator] = None
        self.bandwidth_: Optional[np.ndarray] = None
        self.fit_result_: Optional[FitResult] = None

    @classmethod
    def construct(
        cls,
        n_gates: int,
        n_contenders: int,
        n_cases: int,
        gates,
        contenders,
        target,
        **params,
    ) -> "GatingCombiner":
        """Build and fit a combiner from flat case-major arrays.

        Args:
            n_gates: Number of gate variables (G).
            n_contenders: Number of contenders (M).
            n_cases: Number of training cases (N).
            gates: N*G gate values, case-major.
            contenders: N*M contender predictions, case-major.
            target: N true values.
            **params: Combiner hyperparameters.

        Returns:
            Fitted combiner.

        Raises:
            InvalidArgumentError: If dimensions or array sizes are inconsistent.
        """
        training_set = TrainingSet(n_gates, n_contenders, n_cases, gates, contenders, target)
        return cls(**params)._fit_training_set(training_set)

    def fit(self, gates: ArrayLike, contenders: ArrayLike, target: ArrayLike) -> "GatingCombiner":
        """Copy the training cases and fit the kernel bandwidths.

        Args:
            gates: Gate variables of shape (n_cases, n_gates) or (n_cases,).
            contenders: Contender predictions of shape (n_cases, n_contenders)
                or (n_cases,).
            target: True values of shape (n_cases,).

        Returns:
            Self for method chaining.

        Raises:
            InvalidArgumentError: If the arrays are empty or inconsistent.
        """
        training_set = TrainingSet.from_arrays(
            _to_array(gates), _to_array(contenders), _to_array(target)
        )
        return self._fit_training_set(training_set)

    def _fit_training_set(self, training_set: TrainingSet) -> "GatingCombiner":
        logger.info(
            f"Fitting gating combiner on {training_set.n_cases} cases, "
            f"{training_set.n_gates} gate(s), {training_set.n_contenders} contender(s)"
        )

        evaluator = KernelEvaluator(training_set)
        objective = BandwidthObjective(
            evaluator,
            exclude_radius=self.exclude_radius,
            log_bandwidth_limit=self.log_bandwidth_limit,
            boundary_penalty=self.boundary_penalty,
        )
        fitter = BandwidthFitter(
            scan_low=self.scan_low,
            scan_high=self.scan_high,
            scan_points=self.scan_points,
            line_search_tol=self.line_search_tol,
            line_search_max_iter=self.line_search_max_iter,
            direction_set_tol=self.direction_set_tol,
            direction_set_max_iter=self.direction_set_max_iter,
            perfect_fit_tol=self.perfect_fit_tol,
        )
        fit_result = fitter.fit(objective)

        bandwidth = fit_result.bandwidth.copy()
        bandwidth.flags.writeable = False

        self.training_set_ = training_set
        self.evaluator_ = evaluator
        self.bandwidth_ = bandwidth
        self.fit_result_ = fit_result
        return self

    def _check_fitted(self, operation: str) -> None:
        if getattr(self, "evaluator_", None) is None:
            raise RuntimeError(f"Combiner must be fitted before {operation}")

    @property
    def n_gates_(self) -> int:
        self._check_fitted("n_gates_")
        return self.training_set_.n_gates

    @property
    def n_contenders_(self) -> int:
        self._check_fitted("n_contenders_")
        return self.training_set_.n_contenders

    def evaluate(
        self,
        query_gates: ArrayLike,
        query_contenders: ArrayLike,
        exclude_index: int = -1,
        exclude_radius: int = 0,
    ) -> float:
        """Blend one query's contender predictions, optionally leaving cases out.

        Args:
            query_gates: Gate vector of shape (n_gates,).
            query_contenders: Query-time contender predictions, shape
                (n_contenders,).
            exclude_index: Training case whose neighbourhood is skipped, or
                negative for none.
            exclude_radius: Circular index radius of the skipped window.

        Returns:
            Blended prediction.

        Raises:
            RuntimeError: If the combiner has not been fitted.
            InvalidArgumentError: If the query is malformed.
        """
        self._check_fitted("evaluate")
        return self.evaluator_.evaluate(
            _to_array(query_gates),
            _to_array(query_contenders),
            self.bandwidth_,
            exclude_index=exclude_index,
            exclude_radius=exclude_radius,
        )

    def predict(
        self, query_gates: ArrayLike, query_contenders: ArrayLike
    ) -> Union[float, np.ndarray]:
        """Blend contender predictions using every training case.

        Args:
            query_gates: Gate vector (n_gates,) or batch (n_queries, n_gates).
            query_contenders: Contender predictions (n_contenders,) or batch
                (n_queries, n_contenders).

        Returns:
            A float for a single query, or an array of shape (n_queries,).

        Raises:
            RuntimeError: If the combiner has not been fitted.
        """
        self._check_fitted("predict")
        gates_array = _to_array(query_gates)
        contenders_array = _to_array(query_contenders)

        if gates_array.ndim <= 1 and contenders_array.ndim <= 1:
            return self.evaluate(gates_array, contenders_array)

        if gates_array.ndim == 1 and self.n_gates_ == 1:
            gates_array = gates_array.reshape(-1, 1)
        if contenders_array.ndim == 1 and self.n_contenders_ == 1:
            contenders_array = contenders_array.reshape(-1, 1)
        return self.evaluator_.batch_predict(gates_array, contenders_array, self.bandwidth_)

    def contender_weights(
        self,
        query_gates: ArrayLike,
        exclude_index: int = -1,
        exclude_radius: int = 0,
    ) -> np.ndarray:
        """Local weight of each contender at the query point(s).

        Args:
            query_gates: Gate vector (n_gates,) or batch (n_queries, n_gates).
            exclude_index: Training case whose neighbourhood is skipped, or
                negative for none. Only valid for a single query.
            exclude_radius: Circular index radius of the skipped window.

        Returns:
            Weights of shape (n_contenders,) or (n_queries, n_contenders).
        """
        self._check_fitted("contender_weights")
        gates_array = _to_array(query_gates).astype(float)
        if gates_array.ndim <= 1:
            return self.evaluator_.contender_weights(
                gates_array, self.bandwidth_, exclude_index, exclude_radius
            )
        if exclude_index >= 0:
            raise InvalidArgumentError("exclude_index applies to a single query only")
        return self.evaluator_.batch_weights(gates_array, self.bandwidth_)

    def score(self, gates: ArrayLike, contenders: ArrayLike, target: ArrayLike) -> float:
        """R^2 of the blended predictions against ``target``."""
        predictions = np.atleast_1d(self.predict(gates, contenders))
        return float(r2_score(np.atleast_1d(_to_array(target)).ravel(), predictions))
