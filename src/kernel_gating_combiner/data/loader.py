"""Synthetic regression data for gating experiments."""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

FEATURE_COLUMNS = ["x1", "x2"]
TARGET_COLUMN = "target"

# Zero-based contender positions trained on corrupted data.
WORTHLESS_CONTENDER = 3
WILD_CONTENDER = 4
WILD_SCALE = 1000.0


def generate_regression_dataset(
    n_samples: int = 50,
    noise_std: float = 0.5,
    random_state: Optional[int] = 42,
    rng: Optional[np.random.RandomState] = None,
) -> pd.DataFrame:
    """
    Generate a two-input regression problem.

    Both inputs are standard normal and the target is ``x1 - x2`` plus
    Gaussian noise with standard deviation ``noise_std``.

    Args:
        n_samples: Number of samples to generate
        noise_std: Standard deviation of the target noise
        random_state: Random seed, ignored when ``rng`` is given
        rng: Random state to draw from

    Returns:
        DataFrame with columns x1, x2 and target

    Raises:
        ValueError: If n_samples is not positive or noise_std is negative
    """
    if n_samples <= 0:
        raise ValueError(f"n_samples must be positive, got {n_samples}")
    if noise_std < 0:
        raise ValueError(f"noise_std must be >= 0, got {noise_std}")

    rng = rng if rng is not None else np.random.RandomState(random_state)
    features = rng.standard_normal((n_samples, 2))
    target = features[:, 0] - features[:, 1] + noise_std * rng.standard_normal(n_samples)

    df = pd.DataFrame(features, columns=FEATURE_COLUMNS)
    df[TARGET_COLUMN] = target
    logger.debug(f"Generated regression dataset with {n_samples} samples")
    return df


def corrupt_targets(df: pd.DataFrame, mode: str, rng: np.random.RandomState) -> pd.DataFrame:
    """
    Return a copy of the dataset with a corrupted target.

    Args:
        df: Dataset with a target column
        mode: 'worthless' replaces the target with independent noise,
            'wild' scales it by 1000
        rng: Random state for the worthless noise

    Returns:
        Corrupted copy of the dataset

    Raises:
        ValueError: If mode is not recognized
    """
    corrupted = df.copy()
    if mode == "worthless":
        corrupted[TARGET_COLUMN] = rng.standard_normal(len(df))
    elif mode == "wild":
        corrupted[TARGET_COLUMN] = df[TARGET_COLUMN] * WILD_SCALE
    else:
        raise ValueError(f"Unknown corruption mode: {mode}. Supported: worthless, wild")
    return corrupted


def build_contender_training_sets(
    df: pd.DataFrame, n_contenders: int, rng: np.random.RandomState
) -> List[pd.DataFrame]:
    """
    Build one training set per contender.

    Contenders train on the clean data, except that the fourth (if any) learns
    a worthless target and the fifth (if any) learns wildly scaled targets.

    Args:
        df: Clean training dataset
        n_contenders: Number of contenders
        rng: Random state for corruption

    Returns:
        List of training DataFrames, one per contender
    """
    if n_contenders <= 0:
        raise ValueError(f"n_contenders must be positive, got {n_contenders}")

    training_sets = []
    for index in range(n_contenders):
        if index == WORTHLESS_CONTENDER:
            training_sets.append(corrupt_targets(df, "worthless", rng))
        elif index == WILD_CONTENDER:
            training_sets.append(corrupt_targets(df, "wild", rng))
        else:
            training_sets.append(df)
    return training_sets
