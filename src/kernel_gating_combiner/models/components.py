"""Core gating components: training-set storage and the Gaussian kernel evaluator."""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Accumulated local error at or below this is treated as zero.
ERROR_FLOOR = 1e-30
# Reliability assigned to a contender with (near) zero local error.
WEIGHT_SENTINEL = 1e30


class InvalidArgumentError(ValueError):
    """Raised for bad dimensions, inconsistent array sizes or malformed queries."""


@dataclass(frozen=True)
class GatingCase:
    """One labelled gating case.

    Attributes:
        gates: Gate variables of shape (n_gates,).
        contenders: Contender predictions of shape (n_contenders,).
        target: True value for the case.
    """

    gates: np.ndarray
    contenders: np.ndarray
    target: float


def _as_float_array(values, name: str) -> np.ndarray:
    try:
        array = np.array(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"{name} must be numeric: {e}") from e
    if not np.all(np.isfinite(array)):
        raise InvalidArgumentError(f"{name} contains non-finite values")
    return array


class TrainingSet:
    """Immutable snapshot of labelled gating cases.

    Cases are stored contiguously in a single read-only array with one row per
    case laid out as ``gates | contenders | target``. Callers only see the
    structured views exposed below.

    Attributes:
        n_gates: Number of gate variables per case.
        n_contenders: Number of contender predictions per case.
        n_cases: Number of cases.
    """

    def __init__(
        self,
        n_gates: int,
        n_contenders: int,
        n_cases: int,
        gates,
        contenders,
        target,
    ) -> None:
        """Copy caller data into contiguous storage.

        Args:
            n_gates: Number of gate variables (G).
            n_contenders: Number of contenders (M).
            n_cases: Number of training cases (N).
            gates: N*G gate values, flat or shaped (N, G).
            contenders: N*M contender predictions, flat or shaped (N, M).
            target: N true values.

        Raises:
            InvalidArgumentError: If a dimension is non-positive, an array size
                is inconsistent with the dimensions, or data is non-finite.
        """
        for name, value in (
            ("n_gates", n_gates),
            ("n_contenders", n_contenders),
            ("n_cases", n_cases),
        ):
            if int(value) != value or value <= 0:
                raise InvalidArgumentError(f"{name} must be a positive integer, got {value}")

        n_gates, n_contenders, n_cases = int(n_gates), int(n_contenders), int(n_cases)

        gates_array = _as_float_array(gates, "gates")
        contenders_array = _as_float_array(contenders, "contenders")
        target_array = _as_float_array(target, "target")

        if gates_array.size != n_cases * n_gates:
            raise InvalidArgumentError(
                f"gates has {gates_array.size} values, expected {n_cases} x {n_gates}"
            )
        if contenders_array.size != n_cases * n_contenders:
            raise InvalidArgumentError(
                f"contenders has {contenders_array.size} values, "
                f"expected {n_cases} x {n_contenders}"
            )
        if target_array.size != n_cases:
            raise InvalidArgumentError(
                f"target has {target_array.size} values, expected {n_cases}"
            )

        self.n_gates = n_gates
        self.n_contenders = n_contenders
        self.n_cases = n_cases

        cases = np.empty((n_cases, n_gates + n_contenders + 1))
        cases[:, :n_gates] = gates_array.reshape(n_cases, n_gates)
        cases[:, n_gates:-1] = contenders_array.reshape(n_cases, n_contenders)
        cases[:, -1] = target_array.reshape(n_cases)
        cases.flags.writeable = False
        self._cases = cases

        squared_errors = (self.contenders - self.target[:, None]) ** 2
        squared_errors.flags.writeable = False
        self._squared_errors = squared_errors

    @classmethod
    def from_arrays(cls, gates, contenders, target) -> "TrainingSet":
        """Build a training set, inferring dimensions from shaped arrays.

        A 1-D ``gates`` is read as a single gate and a 1-D ``contenders`` as a
        single contender.
        """
        gates_array = np.asarray(gates, dtype=float)
        contenders_array = np.asarray(contenders, dtype=float)
        target_array = np.asarray(target, dtype=float).ravel()

        if gates_array.ndim == 1:
            gates_array = gates_array.reshape(-1, 1)
        if contenders_array.ndim == 1:
            contenders_array = contenders_array.reshape(-1, 1)
        if gates_array.ndim != 2 or contenders_array.ndim != 2:
            raise InvalidArgumentError("gates and contenders must be 1-D or 2-D")

        return cls(
            n_gates=gates_array.shape[1],
            n_contenders=contenders_array.shape[1],
            n_cases=len(target_array),
            gates=gates_array,
            contenders=contenders_array,
            target=target_array,
        )

    @property
    def gates(self) -> np.ndarray:
        return self._cases[:, : self.n_gates]

    @property
    def contenders(self) -> np.ndarray:
        return self._cases[:, self.n_gates : -1]

    @property
    def target(self) -> np.ndarray:
        return self._cases[:, -1]

    @property
    def squared_errors(self) -> np.ndarray:
        """Historical squared error of each contender, shape (n_cases, n_contenders)."""
        return self._squared_errors

    def __len__(self) -> int:
        return self.n_cases

    def __getitem__(self, index: int) -> GatingCase:
        row = self._cases[index]
        return GatingCase(
            gates=row[: self.n_gates],
            contenders=row[self.n_gates : -1],
            target=float(row[-1]),
        )

    def __iter__(self) -> Iterator[GatingCase]:
        for index in range(self.n_cases):
            yield self[index]

    def circular_distance(self, index: int) -> np.ndarray:
        """Distance of every case index from ``index``, wrapping around the ends."""
        offsets = np.abs(np.arange(self.n_cases) - index)
        return np.minimum(offsets, self.n_cases - offsets)

    def exclusion_mask(self, exclude_index: int, exclude_radius: int) -> np.ndarray:
        """Boolean mask of cases skipped for a leave-near-out evaluation.

        Args:
            exclude_index: Reference case index, or negative for no exclusion.
            exclude_radius: Cases within this circular distance are skipped.

        Returns:
            Boolean array of shape (n_cases,), True where a case is skipped.

        Raises:
            InvalidArgumentError: If the index is out of range or the radius
                is negative.
        """
        if exclude_radius < 0:
            raise InvalidArgumentError(f"exclude_radius must be >= 0, got {exclude_radius}")
        if exclude_index < 0:
            return np.zeros(self.n_cases, dtype=bool)
        if exclude_index >= self.n_cases:
            raise InvalidArgumentError(
                f"exclude_index {exclude_index} out of range for {self.n_cases} cases"
            )
        return self.circular_distance(exclude_index) <= exclude_radius

    def exclusion_matrix(self, exclude_radius: int) -> np.ndarray:
        """Row ``i`` is ``exclusion_mask(i, exclude_radius)``."""
        if exclude_radius < 0:
            raise InvalidArgumentError(f"exclude_radius must be >= 0, got {exclude_radius}")
        indices = np.arange(self.n_cases)
        offsets = np.abs(indices[:, None] - indices[None, :])
        return np.minimum(offsets, self.n_cases - offsets) <= exclude_radius


class KernelEvaluator:
    """Blends contender predictions by their kernel-localised historical accuracy.

    For a query point in gate space every training case contributes its
    contenders' squared errors, weighted by a Gaussian kernel of the scaled
    distance to the query. Contenders are then weighted by the inverse of that
    local error, so locally accurate contenders get more voice.

    All scratch arrays are local to each call, so one evaluator can serve
    concurrent read-only queries.

    Attributes:
        training_set: Cases used to estimate local contender reliability.
        chunk_size: Maximum number of queries processed in one vectorised block.
    """

    def __init__(self, training_set: TrainingSet, chunk_size: int = 256) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.training_set = training_set
        self.chunk_size = chunk_size

    def _check_bandwidth(self, bandwidth) -> np.ndarray:
        bandwidth = np.asarray(bandwidth, dtype=float).ravel()
        if bandwidth.size != self.training_set.n_gates:
            raise InvalidArgumentError(
                f"bandwidth has {bandwidth.size} values, expected {self.training_set.n_gates}"
            )
        if not np.all(bandwidth > 0):
            raise InvalidArgumentError("bandwidth values must be strictly positive")
        return bandwidth

    def _check_queries(self, values, width: int, name: str) -> np.ndarray:
        values = np.atleast_1d(np.asarray(values, dtype=float))
        if values.ndim == 1:
            values = values.reshape(1, -1)
        if values.ndim != 2 or values.shape[1] != width:
            raise InvalidArgumentError(
                f"{name} must have {width} values per query, got shape {values.shape}"
            )
        return values

    def kernel_weights(
        self,
        query_gates: np.ndarray,
        bandwidth: np.ndarray,
        excluded: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Gaussian kernel weight between each query and each training case.

        Args:
            query_gates: Query gate vectors of shape (n_queries, n_gates).
            bandwidth: Positive bandwidths of shape (n_gates,).
            excluded: Optional boolean mask of shape (n_queries, n_cases);
                excluded pairs get zero weight.

        Returns:
            Array of shape (n_queries, n_cases).
        """
        scaled = (query_gates[:, None, :] - self.training_set.gates[None, :, :]) / bandwidth
        kernel = np.exp(-np.einsum("qng,qng->qn", scaled, scaled))
        if excluded is not None:
            kernel[excluded] = 0.0
        return kernel

    def batch_weights(
        self,
        query_gates,
        bandwidth,
        excluded: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Per-contender weights for a batch of queries.

        Args:
            query_gates: Query gates of shape (n_queries, n_gates) or (n_gates,).
            bandwidth: Positive bandwidths of shape (n_gates,).
            excluded: Optional boolean mask of shape (n_queries, n_cases).

        Returns:
            Non-negative weights of shape (n_queries, n_contenders), each row
            summing to 1.

        Raises:
            InvalidArgumentError: If shapes do not match the training set.
        """
        query_gates = self._check_queries(query_gates, self.training_set.n_gates, "query_gates")
        bandwidth = self._check_bandwidth(bandwidth)
        n_queries = len(query_gates)
        if excluded is not None and excluded.shape != (n_queries, self.training_set.n_cases):
            raise InvalidArgumentError(
                f"excluded must have shape {(n_queries, self.training_set.n_cases)}, "
                f"got {excluded.shape}"
            )

        weights = np.empty((n_queries, self.training_set.n_contenders))
        for start in range(0, n_queries, self.chunk_size):
            stop = min(start + self.chunk_size, n_queries)
            block_excluded = None if excluded is None else excluded[start:stop]
            kernel = self.kernel_weights(query_gates[start:stop], bandwidth, block_excluded)

            errvals = kernel @ self.training_set.squared_errors
            reliability = np.full_like(errvals, WEIGHT_SENTINEL)
            np.divide(1.0, errvals, out=reliability, where=errvals > ERROR_FLOOR)
            weights[start:stop] = reliability / reliability.sum(axis=1, keepdims=True)

        return weights

    def batch_predict(
        self,
        query_gates,
        query_contenders,
        bandwidth,
        excluded: Optional[np.ndarray] = None,
    ) -> np.ndarray:
        """Blended prediction for a batch of queries, shape (n_queries,)."""
        query_contenders = self._check_queries(
            query_contenders, self.training_set.n_contenders, "query_contenders"
        )
        weights = self.batch_weights(query_gates, bandwidth, excluded)
        if len(weights) != len(query_contenders):
            raise InvalidArgumentError(
                f"got {len(weights)} gate queries but {len(query_contenders)} contender queries"
            )
        return np.einsum("qm,qm->q", weights, query_contenders)

    def contender_weights(
        self,
        query_gates,
        bandwidth,
        exclude_index: int = -1,
        exclude_radius: int = 0,
    ) -> np.ndarray:
        """Per-contender weights for a single query, shape (n_contenders,)."""
        excluded = self.training_set.exclusion_mask(exclude_index, exclude_radius)
        return self.batch_weights(query_gates, bandwidth, excluded[None, :])[0]

    def evaluate(
        self,
        query_gates,
        query_contenders,
        bandwidth,
        exclude_index: int = -1,
        exclude_radius: int = 0,
    ) -> float:
        """Blend query-time contender predictions for one query.

        Args:
            query_gates: Gate vector of shape (n_gates,).
            query_contenders: Contender predictions for the query, shape
                (n_contenders,).
            bandwidth: Positive bandwidths of shape (n_gates,).
            exclude_index: Training case around which cases are skipped, or
                negative for no exclusion.
            exclude_radius: Circular index radius of the skipped window.

        Returns:
            Weighted sum of the query's contender predictions.
        """
        query_contenders = np.asarray(query_contenders, dtype=float).ravel()
        if query_contenders.size != self.training_set.n_contenders:
            raise InvalidArgumentError(
                f"query_contenders has {query_contenders.size} values, "
                f"expected {self.training_set.n_contenders}"
            )
        weights = self.contender_weights(query_gates, bandwidth, exclude_index, exclude_radius)
        return float(weights @ query_contenders)

    def leave_out_predictions(self, bandwidth, excluded: np.ndarray) -> np.ndarray:
        """Predict every training case from the cases its exclusion row keeps.

        Args:
            bandwidth: Positive bandwidths of shape (n_gates,).
            excluded: Boolean matrix of shape (n_cases, n_cases), usually from
                ``TrainingSet.exclusion_matrix``.

        Returns:
            Cross-validated predictions of shape (n_cases,).
        """
        return self.batch_predict(
            self.training_set.gates, self.training_set.contenders, bandwidth, excluded
        )
