"""Evaluation metrics for the gating combiner."""

import logging
from typing import Dict, Any

import numpy as np
from sklearn.metrics import (
    mean_absolute_error,
    mean_squared_error,
    r2_score,
)

logger = logging.getLogger(__name__)


def compute_all_metrics(y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
    """
    Compute standard regression metrics.

    Args:
        y_true: True values
        y_pred: Predicted values

    Returns:
        Dictionary of metric name to value
    """
    mse = mean_squared_error(y_true, y_pred)
    metrics = {
        "mse": float(mse),
        "rmse": float(np.sqrt(mse)),
        "mae": float(mean_absolute_error(y_true, y_pred)),
    }

    # R^2 is undefined for fewer than two samples
    if len(y_true) >= 2:
        metrics["r2"] = float(r2_score(y_true, y_pred))

    return metrics


def compute_contender_errors(y_true: np.ndarray, contender_outputs: np.ndarray) -> np.ndarray:
    """
    Compute the mean squared error of each contender.

    Args:
        y_true: True values of shape (n_samples,)
        contender_outputs: Contender predictions of shape (n_samples, n_contenders)

    Returns:
        Array of shape (n_contenders,)
    """
    y_true = np.asarray(y_true, dtype=float).ravel()
    contender_outputs = np.asarray(contender_outputs, dtype=float)
    if contender_outputs.ndim == 1:
        contender_outputs = contender_outputs.reshape(-1, 1)
    if len(contender_outputs) != len(y_true):
        raise ValueError("y_true and contender_outputs must have same length")

    return np.mean((contender_outputs - y_true[:, None]) ** 2, axis=0)


def compute_gain_over_contenders(
    y_true: np.ndarray, y_pred: np.ndarray, contender_outputs: np.ndarray
) -> Dict[str, float]:
    """
    Compare the blended error with the individual contenders.

    Args:
        y_true: True values
        y_pred: Blended predictions
        contender_outputs: Contender predictions of shape (n_samples, n_contenders)

    Returns:
        Dictionary with the blended error, best and mean contender errors, and
        the ratio of blended to best contender error
    """
    contender_errors = compute_contender_errors(y_true, contender_outputs)
    blended_error = float(mean_squared_error(y_true, y_pred))
    best_error = float(contender_errors.min())

    gain = {
        "blended_mse": blended_error,
        "best_contender_mse": best_error,
        "mean_contender_mse": float(contender_errors.mean()),
        "best_contender": int(contender_errors.argmin()),
        "ratio_to_best": blended_error / best_error if best_error > 0 else float("inf"),
    }
    logger.info(
        f"Blended MSE {blended_error:.4f} vs best contender {gain['best_contender']} "
        f"MSE {best_error:.4f}"
    )
    return gain


def compute_weight_statistics(weights: np.ndarray) -> Dict[str, Any]:
    """
    Summarize contender weights over many queries.

    Args:
        weights: Contender weights of shape (n_queries, n_contenders)

    Returns:
        Dictionary with the mean weight per contender, the mean weight
        entropy and the largest deviation of a row sum from 1
    """
    weights = np.atleast_2d(np.asarray(weights, dtype=float))
    entropy = -np.sum(weights * np.log(weights + 1e-300), axis=1)

    stats = {
        "mean_weights": weights.mean(axis=0).tolist(),
        "weight_entropy": float(entropy.mean()),
        "max_normalization_error": float(np.max(np.abs(weights.sum(axis=1) - 1.0))),
    }
    return stats
