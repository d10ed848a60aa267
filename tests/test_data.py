"""Tests for data generation, gate construction, metrics and contenders."""

import warnings

import pytest
import numpy as np
import pandas as pd

from kernel_gating_combiner.data.loader import (
    FEATURE_COLUMNS,
    TARGET_COLUMN,
    WILD_SCALE,
    build_contender_training_sets,
    corrupt_targets,
    generate_regression_dataset,
)
from kernel_gating_combiner.data.preprocessing import (
    GATE_STRATEGIES,
    build_gates,
    error_ratio_gate,
)
from kernel_gating_combiner.evaluation.metrics import (
    compute_all_metrics,
    compute_contender_errors,
    compute_gain_over_contenders,
    compute_weight_statistics,
)
from kernel_gating_combiner.models.contenders import (
    CONTENDER_KINDS,
    MLPContender,
    create_contender,
)


def test_generate_regression_dataset(random_seed):
    """Test synthetic dataset generation."""
    df = generate_regression_dataset(n_samples=100, noise_std=0.0, random_state=random_seed)

    assert isinstance(df, pd.DataFrame)
    assert list(df.columns) == FEATURE_COLUMNS + [TARGET_COLUMN]
    assert len(df) == 100
    assert np.allclose(df[TARGET_COLUMN], df["x1"] - df["x2"])

    again = generate_regression_dataset(n_samples=100, noise_std=0.0, random_state=random_seed)
    pd.testing.assert_frame_equal(df, again)


def test_generate_regression_dataset_validation():
    """Test that bad sizes and noise levels are rejected."""
    with pytest.raises(ValueError):
        generate_regression_dataset(n_samples=0)
    with pytest.raises(ValueError):
        generate_regression_dataset(noise_std=-1.0)


def test_corrupt_targets(random_seed):
    """Test worthless and wild target corruption."""
    rng = np.random.RandomState(random_seed)
    df = generate_regression_dataset(n_samples=50, random_state=random_seed)

    wild = corrupt_targets(df, "wild", rng)
    assert np.allclose(wild[TARGET_COLUMN], df[TARGET_COLUMN] * WILD_SCALE)

    worthless = corrupt_targets(df, "worthless", rng)
    assert not np.allclose(worthless[TARGET_COLUMN], df[TARGET_COLUMN])
    assert np.array_equal(worthless[FEATURE_COLUMNS], df[FEATURE_COLUMNS])

    with pytest.raises(ValueError):
        corrupt_targets(df, "mild", rng)


def test_build_contender_training_sets(random_seed):
    """Test that only the fourth and fifth contenders get corrupted data."""
    rng = np.random.RandomState(random_seed)
    df = generate_regression_dataset(n_samples=50, random_state=random_seed)

    training_sets = build_contender_training_sets(df, 5, rng)

    assert len(training_sets) == 5
    for clean in training_sets[:3]:
        assert np.array_equal(clean[TARGET_COLUMN], df[TARGET_COLUMN])
    assert not np.allclose(training_sets[3][TARGET_COLUMN], df[TARGET_COLUMN])
    assert np.allclose(training_sets[4][TARGET_COLUMN], df[TARGET_COLUMN] * WILD_SCALE)


def test_build_gates_strategies(random_seed):
    """Test the shape of every gate strategy."""
    rng = np.random.RandomState(random_seed)
    features = rng.standard_normal((30, 2))
    outputs = rng.standard_normal((30, 3))
    target = rng.standard_normal(30)

    shapes = {
        strategy: build_gates(strategy, features, outputs, target, rng).shape
        for strategy in GATE_STRATEGIES
    }

    assert shapes == {
        "after_the_fact": (30, 3),
        "original": (30, 2),
        "random": (30, 1),
        "error_ratio": (30, 1),
    }
    assert np.array_equal(build_gates("after_the_fact", features, outputs), outputs)


def test_build_gates_missing_inputs():
    """Test that strategies fail without their required inputs."""
    features = np.zeros((5, 2))
    outputs = np.zeros((5, 2))

    with pytest.raises(ValueError):
        build_gates("random", features, outputs)
    with pytest.raises(ValueError):
        build_gates("error_ratio", features, outputs)
    with pytest.raises(ValueError):
        build_gates("psychic", features, outputs)


def test_error_ratio_gate():
    """Test the log ratio of the first two contenders' errors."""
    outputs = np.array([[1.0, 2.0, 9.0], [3.0, 3.0, 9.0]])
    target = np.array([0.0, 1.0])

    gates = error_ratio_gate(outputs, target)

    assert gates.shape == (2, 1)
    assert gates[0, 0] == pytest.approx(np.log(0.5))
    assert gates[1, 0] == pytest.approx(0.0)

    with pytest.raises(ValueError):
        error_ratio_gate(outputs[:, :1], target)


def test_compute_all_metrics():
    """Test regression metrics."""
    y_true = np.array([1.0, 2.0, 3.0, 4.0])

    perfect = compute_all_metrics(y_true, y_true)
    assert perfect["mse"] == 0.0
    assert perfect["r2"] == pytest.approx(1.0)

    shifted = compute_all_metrics(y_true, y_true + 2.0)
    assert shifted["mse"] == pytest.approx(4.0)
    assert shifted["rmse"] == pytest.approx(2.0)
    assert shifted["mae"] == pytest.approx(2.0)

    assert "r2" not in compute_all_metrics(np.array([1.0]), np.array([1.5]))


def test_contender_errors_and_gain():
    """Test per-contender errors and the comparison with the blend."""
    y_true = np.zeros(4)
    outputs = np.column_stack([np.full(4, 1.0), np.full(4, 3.0)])

    errors = compute_contender_errors(y_true, outputs)
    assert np.allclose(errors, [1.0, 9.0])

    gain = compute_gain_over_contenders(y_true, np.full(4, 0.5), outputs)
    assert gain["best_contender"] == 0
    assert gain["blended_mse"] == pytest.approx(0.25)
    assert gain["ratio_to_best"] == pytest.approx(0.25)
    assert gain["mean_contender_mse"] == pytest.approx(5.0)


def test_compute_weight_statistics():
    """Test weight summaries."""
    stats = compute_weight_statistics(np.full((10, 4), 0.25))

    assert stats["mean_weights"] == pytest.approx([0.25] * 4)
    assert stats["weight_entropy"] == pytest.approx(np.log(4))
    assert stats["max_normalization_error"] == pytest.approx(0.0)


@pytest.mark.parametrize("kind", [k for k in CONTENDER_KINDS if k != "mlp"])
def test_create_contender(kind, random_seed):
    """Test that every contender kind fits and predicts."""
    df = generate_regression_dataset(n_samples=60, random_state=random_seed)
    X, y = df[FEATURE_COLUMNS].values, df[TARGET_COLUMN].values

    model = create_contender(kind, random_state=random_seed)
    model.fit(X, y)
    predictions = np.asarray(model.predict(X))

    assert predictions.shape == (60,)
    assert np.all(np.isfinite(predictions))


def test_create_contender_unknown_kind():
    """Test that unknown contender kinds are rejected."""
    with pytest.raises(ValueError):
        create_contender("oracle")


def test_mlp_contender_fit_predict(random_seed):
    """Test the neural-network contender."""
    df = generate_regression_dataset(n_samples=40, random_state=random_seed)
    X, y = df[FEATURE_COLUMNS].values, df[TARGET_COLUMN].values

    model = create_contender("mlp", random_state=random_seed, max_iter=5)
    assert isinstance(model, MLPContender)

    model.fit(X, y)
    predictions = model.predict(X)

    assert predictions.shape == (40,)
    assert np.all(np.isfinite(predictions))


def test_mlp_contender_predict_without_fit():
    """Test that predict fails without fit."""
    with pytest.raises(RuntimeError):
        MLPContender().predict(np.zeros((3, 2)))

    with pytest.raises(ValueError):
        MLPContender(n_hidden=0)


def test_mlp_contender_read_only_targets(random_seed):
    """Test that read-only training arrays do not trigger tensor warnings."""
    df = generate_regression_dataset(n_samples=30, random_state=random_seed)
    X, y = df[FEATURE_COLUMNS].to_numpy(copy=True), df[TARGET_COLUMN].to_numpy(copy=True)
    X.flags.writeable = False
    y.flags.writeable = False

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        MLPContender(max_iter=2, random_state=random_seed).fit(X, y)

    assert not [w for w in caught if "not writable" in str(w.message)]
