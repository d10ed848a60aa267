"""Gate variable construction."""

import logging
from typing import Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

GATE_STRATEGIES = ("after_the_fact", "original", "random", "error_ratio")


def error_ratio_gate(
    contender_outputs: np.ndarray, target: np.ndarray, eps: float = 1e-60
) -> np.ndarray:
    """Log ratio of the first two contenders' absolute errors.

    Args:
        contender_outputs: Contender predictions of shape (n_samples, n_contenders).
        target: True values of shape (n_samples,).
        eps: Added to each absolute error before taking the ratio.

    Returns:
        Gate column of shape (n_samples, 1).

    Raises:
        ValueError: If fewer than two contenders are given or lengths differ.
    """
    contender_outputs = np.asarray(contender_outputs, dtype=float)
    target = np.asarray(target, dtype=float).ravel()
    if contender_outputs.ndim != 2 or contender_outputs.shape[1] < 2:
        raise ValueError("error_ratio gate needs at least two contenders")
    if len(contender_outputs) != len(target):
        raise ValueError("contender_outputs and target must have same length")

    first = np.abs(contender_outputs[:, 0] - target) + eps
    second = np.abs(contender_outputs[:, 1] - target) + eps
    return np.log(first / second).reshape(-1, 1)


def build_gates(
    strategy: str,
    features: Union[pd.DataFrame, np.ndarray],
    contender_outputs: np.ndarray,
    target: Optional[np.ndarray] = None,
    rng: Optional[np.random.RandomState] = None,
) -> np.ndarray:
    """Build gate variables for a set of cases.

    Strategies:
        after_the_fact: the contender outputs themselves.
        original: the raw input features.
        random: one standard-normal column carrying no information.
        error_ratio: log ratio of the first two contenders' errors. This uses
            the true target, so at query time it is an oracle benchmark.

    Args:
        strategy: One of GATE_STRATEGIES.
        features: Raw input features of shape (n_samples, n_features).
        contender_outputs: Contender predictions of shape (n_samples, n_contenders).
        target: True values, required by 'error_ratio'.
        rng: Random state, required by 'random'.

    Returns:
        Gates of shape (n_samples, n_gates).

    Raises:
        ValueError: If the strategy is unknown or its inputs are missing.
    """
    features_array = features.values if isinstance(features, pd.DataFrame) else np.asarray(features)
    contender_outputs = np.asarray(contender_outputs, dtype=float)
    if contender_outputs.ndim == 1:
        contender_outputs = contender_outputs.reshape(-1, 1)

    if strategy == "after_the_fact":
        gates = contender_outputs.copy()
    elif strategy == "original":
        gates = np.asarray(features_array, dtype=float).reshape(len(features_array), -1).copy()
    elif strategy == "random":
        if rng is None:
            raise ValueError("random gates need a random state")
        gates = rng.standard_normal((len(contender_outputs), 1))
    elif strategy == "error_ratio":
        if target is None:
            raise ValueError("error_ratio gates need the target")
        gates = error_ratio_gate(contender_outputs, target)
    else:
        raise ValueError(
            f"Unknown gate strategy: {strategy}. Supported: {', '.join(GATE_STRATEGIES)}"
        )

    if len(gates) != len(contender_outputs):
        raise ValueError("features and contender_outputs must have same length")
    return gates
