"""Tests for model components."""

import pytest
import numpy as np
import pandas as pd

from kernel_gating_combiner.models.model import GatingCombiner
from kernel_gating_combiner.models.components import (
    GatingCase,
    InvalidArgumentError,
    KernelEvaluator,
    TrainingSet,
)


def test_training_set_layout(staircase_cases):
    """Test that cases are copied and exposed as structured views."""
    gates, contenders, target = staircase_cases
    training_set = TrainingSet.from_arrays(gates, contenders, target)

    assert len(training_set) == 4
    assert training_set.n_gates == 1
    assert training_set.n_contenders == 2
    assert np.array_equal(training_set.gates[:, 0], gates)
    assert np.array_equal(training_set.contenders, contenders)
    assert np.array_equal(training_set.squared_errors[:, 1], np.full(4, 25.0))

    case = training_set[2]
    assert isinstance(case, GatingCase)
    assert case.target == 2.0
    assert np.array_equal(case.contenders, [2.0, 7.0])
    assert len(list(training_set)) == 4


def test_training_set_is_a_snapshot(staircase_cases):
    """Test that later changes to caller arrays do not leak in."""
    gates, contenders, target = staircase_cases
    training_set = TrainingSet.from_arrays(gates, contenders, target)
    target[0] = 100.0

    assert training_set.target[0] == 0.0
    with pytest.raises(ValueError):
        training_set.target[0] = 1.0


def test_construct_validation():
    """Test that inconsistent dimensions are rejected."""
    with pytest.raises(InvalidArgumentError):
        GatingCombiner.construct(0, 2, 4, [], [0.0] * 8, [0.0] * 4)
    with pytest.raises(InvalidArgumentError):
        GatingCombiner.construct(1, 0, 4, [0.0] * 4, [], [0.0] * 4)
    with pytest.raises(InvalidArgumentError):
        GatingCombiner.construct(1, 2, 0, [], [], [])
    with pytest.raises(InvalidArgumentError):
        GatingCombiner.construct(1, 2, 4, [0.0] * 3, [0.0] * 8, [0.0] * 4)
    with pytest.raises(InvalidArgumentError):
        GatingCombiner.construct(1, 2, 4, [0.0] * 4, [0.0] * 7, [0.0] * 4)
    with pytest.raises(InvalidArgumentError):
        GatingCombiner.construct(1, 2, 4, [0.0] * 4, [0.0] * 8, [0.0, 1.0, np.nan, 2.0])


def test_combiner_hyperparameter_validation():
    """Test that out-of-range hyperparameters are rejected."""
    with pytest.raises(ValueError):
        GatingCombiner(scan_low=1.0, scan_high=1.0)
    with pytest.raises(ValueError):
        GatingCombiner(scan_points=2)
    with pytest.raises(ValueError):
        GatingCombiner(exclude_radius=-1)


def test_staircase_prediction(staircase_cases):
    """Test that the exact contender dominates the blended prediction."""
    gates, contenders, target = staircase_cases
    combiner = GatingCombiner.construct(
        n_gates=1,
        n_contenders=2,
        n_cases=4,
        gates=gates,
        contenders=contenders.ravel(),
        target=target,
    )

    assert combiner.bandwidth_.shape == (1,)
    assert combiner.bandwidth_[0] > 0
    assert abs(combiner.predict([1.5], [10.0, 20.0]) - 10.0) < 1e-3


def test_predict_matches_evaluate_without_exclusion(regional_cases):
    """Test that predict is evaluate with no cases left out."""
    gates, contenders, target = regional_cases
    combiner = GatingCombiner().fit(gates, contenders, target)

    for query in (-2.0, 0.3, 2.5):
        query_contenders = [1.0, -1.0]
        assert combiner.predict([query], query_contenders) == combiner.evaluate(
            [query], query_contenders, exclude_index=-1, exclude_radius=0
        )


def test_weights_are_normalized(two_gate_cases):
    """Test that contender weights are non-negative and sum to one."""
    gates, contenders, target = two_gate_cases
    combiner = GatingCombiner().fit(gates, contenders, target)

    weights = combiner.contender_weights(np.random.RandomState(0).standard_normal((25, 2)))

    assert weights.shape == (25, 2)
    assert np.all(weights >= 0)
    assert np.allclose(weights.sum(axis=1), 1.0, atol=1e-9)


def test_exact_contender_gets_all_weight(staircase_cases):
    """Test that a contender with zero historical error takes the whole weight."""
    gates, contenders, target = staircase_cases
    evaluator = KernelEvaluator(TrainingSet.from_arrays(gates, contenders, target))

    weights = evaluator.contender_weights([1.2], [1.0])

    assert weights[0] > 1.0 - 1e-9
    assert evaluator.evaluate([1.2], [3.0, -50.0], [1.0]) == pytest.approx(3.0, abs=1e-6)


def test_locally_accurate_contender_dominates(regional_cases):
    """Test that weights follow the region where each contender is accurate."""
    gates, contenders, target = regional_cases
    evaluator = KernelEvaluator(TrainingSet.from_arrays(gates, contenders, target))

    left = evaluator.contender_weights([-2.0], [0.5])
    right = evaluator.contender_weights([2.0], [0.5])

    assert left[0] > 0.99
    assert right[1] > 0.99


def test_wide_bandwidth_ignores_query_location(regional_cases):
    """Test that a huge bandwidth gives the same global weights everywhere."""
    gates, contenders, target = regional_cases
    training_set = TrainingSet.from_arrays(gates, contenders, target)
    evaluator = KernelEvaluator(training_set)

    reliability = 1.0 / training_set.squared_errors.sum(axis=0)
    expected = reliability / reliability.sum()

    for query in (-2.5, 0.0, 2.5):
        assert np.allclose(evaluator.contender_weights([query], [1e8]), expected, atol=1e-9)


def test_exclusion_mask_wraps_around():
    """Test the circular exclusion window."""
    training_set = TrainingSet.from_arrays(np.arange(10.0), np.zeros((10, 2)), np.zeros(10))

    mask = training_set.exclusion_mask(0, 2)
    assert np.flatnonzero(mask).tolist() == [0, 1, 2, 8, 9]
    assert not training_set.exclusion_mask(-1, 3).any()
    assert np.array_equal(training_set.exclusion_matrix(2)[0], mask)

    with pytest.raises(InvalidArgumentError):
        training_set.exclusion_mask(10, 0)
    with pytest.raises(InvalidArgumentError):
        training_set.exclusion_mask(0, -1)


def test_exclusion_matches_reduced_training_set(two_gate_cases):
    """Test that leaving cases out equals evaluating on the remaining cases."""
    gates, contenders, target = two_gate_cases
    full = KernelEvaluator(TrainingSet.from_arrays(gates, contenders, target))

    excluded = full.training_set.exclusion_mask(5, 3)
    kept = ~excluded
    reduced = KernelEvaluator(
        TrainingSet.from_arrays(gates[kept], contenders[kept], target[kept])
    )

    query_gates, query_contenders, bandwidth = [0.2, -0.4], [1.0, 2.0], [0.7, 1.3]
    assert full.evaluate(query_gates, query_contenders, bandwidth, 5, 3) == pytest.approx(
        reduced.evaluate(query_gates, query_contenders, bandwidth), rel=1e-12
    )


def test_excluding_everything_gives_uniform_weights(regional_cases):
    """Test that a window covering every case falls back to equal weights."""
    gates, contenders, target = regional_cases
    evaluator = KernelEvaluator(TrainingSet.from_arrays(gates, contenders, target))

    weights = evaluator.contender_weights([0.0], [1.0], exclude_index=0, exclude_radius=10)

    assert np.allclose(weights, 0.5)


def test_single_contender_passes_through(regional_cases):
    """Test that with one contender the blend is that contender's value."""
    gates, contenders, target = regional_cases
    combiner = GatingCombiner().fit(gates, contenders[:, 0], target)

    assert combiner.n_contenders_ == 1
    assert combiner.predict([0.7], [4.25]) == pytest.approx(4.25)


def test_batch_prediction(two_gate_cases):
    """Test the batch path against single-query evaluation."""
    gates, contenders, target = two_gate_cases
    combiner = GatingCombiner().fit(gates, contenders, target)

    assert combiner.bandwidth_.shape == (2,)
    assert combiner.fit_result_.n_evaluations > 0

    predictions = combiner.predict(gates[:5], contenders[:5])
    assert predictions.shape == (5,)
    for i in range(5):
        assert predictions[i] == pytest.approx(combiner.evaluate(gates[i], contenders[i]))


def test_fit_accepts_dataframes(two_gate_cases):
    """Test fitting and scoring from pandas inputs."""
    gates, contenders, target = two_gate_cases
    gates_df = pd.DataFrame(gates, columns=["g1", "g2"])
    contenders_df = pd.DataFrame(contenders, columns=["c1", "c2"])

    combiner = GatingCombiner().fit(gates_df, contenders_df, pd.Series(target))

    assert combiner.score(gates_df, contenders_df, pd.Series(target)) > 0.5


def test_malformed_query_is_rejected(two_gate_cases):
    """Test that query arrays of the wrong length raise."""
    gates, contenders, target = two_gate_cases
    combiner = GatingCombiner().fit(gates, contenders, target)

    with pytest.raises(InvalidArgumentError):
        combiner.evaluate([0.0], [1.0, 2.0])
    with pytest.raises(InvalidArgumentError):
        combiner.evaluate([0.0, 0.0], [1.0, 2.0, 3.0])
    with pytest.raises(InvalidArgumentError):
        combiner.evaluate([0.0, 0.0], [1.0, 2.0], exclude_index=40)


def test_unfitted_combiner_raises():
    """Test that queries before fitting fail clearly."""
    combiner = GatingCombiner()

    with pytest.raises(RuntimeError):
        combiner.predict([0.0], [1.0, 2.0])
    with pytest.raises(RuntimeError):
        combiner.contender_weights([0.0])


def test_staircase_bandwidth_not_capped_by_scan(staircase_cases):
    """Test that the single-gate search follows a decreasing fitness past the scan edge."""
    gates, contenders, target = staircase_cases
    combiner = GatingCombiner().fit(gates, contenders, target)

    assert combiner.bandwidth_[0] > np.exp(3.5)


def test_scalar_gate_query(staircase_cases):
    """Test that a single gate may be passed as a plain number."""
    gates, contenders, target = staircase_cases
    combiner = GatingCombiner().fit(gates, contenders, target)

    assert combiner.predict(1.5, [10.0, 20.0]) == pytest.approx(10.0, abs=1e-3)
    assert combiner.contender_weights(1.5).shape == (2,)


def test_far_query_falls_back_to_uniform_weights(staircase_cases):
    """Test the underflow limit of dominance.

    Far from every training case the kernel underflows to zero for all cases,
    so no contender has accumulated error and the weights are uniform even
    though the first contender is exact everywhere.
    """
    gates, contenders, target = staircase_cases
    evaluator = KernelEvaluator(TrainingSet.from_arrays(gates, contenders, target))

    assert evaluator.evaluate([1.5], [10.0, 20.0], [1.0]) == pytest.approx(10.0, abs=1e-3)
    assert np.allclose(evaluator.contender_weights([1000.0], [1.0]), 0.5)
    assert evaluator.evaluate([1000.0], [10.0, 20.0], [1.0]) == pytest.approx(15.0)
