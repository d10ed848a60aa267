#!/usr/bin/env python
"""Evaluation script for stored gating combiners."""

import sys
import argparse
import logging
import json
from pathlib import Path

# Add project root and src to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd
import joblib

from kernel_gating_combiner.utils.config import load_config, set_random_seeds
from kernel_gating_combiner.data.loader import (
    FEATURE_COLUMNS,
    TARGET_COLUMN,
    generate_regression_dataset,
)
from kernel_gating_combiner.data.preprocessing import build_gates
from kernel_gating_combiner.evaluation.metrics import (
    compute_all_metrics,
    compute_contender_errors,
    compute_gain_over_contenders,
    compute_weight_statistics,
)
from kernel_gating_combiner.evaluation.analysis import (
    plot_bandwidth_profile,
    plot_gate_comparison,
    plot_weight_distribution,
    save_results_table,
)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure logging.

    Args:
        log_level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def bandwidth_profile(combiner, n_points: int = 61):
    """Objective values over the scan range of a single-gate combiner."""
    from kernel_gating_combiner.training.objective import BandwidthObjective

    objective = BandwidthObjective(
        combiner.evaluator_,
        exclude_radius=combiner.exclude_radius,
        log_bandwidth_limit=combiner.log_bandwidth_limit,
        boundary_penalty=combiner.boundary_penalty,
    )
    grid = np.linspace(combiner.scan_low, combiner.scan_high, n_points)
    return grid, np.array([objective.scalar(x) for x in grid])


def main() -> None:
    """Main evaluation function."""
    parser = argparse.ArgumentParser(description="Evaluate stored gating combiners")
    parser.add_argument(
        "--checkpoint",
        type=str,
        default="checkpoints/last_experiment.pkl",
        help="Path to experiment checkpoint",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/default.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="results",
        help="Directory to save evaluation results",
    )
    args = parser.parse_args()

    setup_logging("INFO")
    logger = logging.getLogger(__name__)
    logger.info("Starting evaluation")

    try:
        config = load_config(args.config)
        random_seed = config.get("random_seed", 42)
        set_random_seeds(random_seed)
        save_plots = config.get("evaluation", {}).get("save_plots", True)

        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Loading checkpoint from {args.checkpoint}")
        checkpoint_path = Path(args.checkpoint)
        if not checkpoint_path.exists():
            raise FileNotFoundError(f"Checkpoint not found: {args.checkpoint}")
        checkpoint = joblib.load(checkpoint_path)
        contenders = checkpoint["contenders"]
        combiners = checkpoint["combiners"]

        # Fresh data the stored models have never seen
        data_config = config.get("data", {})
        rng = np.random.RandomState(random_seed + 1)
        test_df = generate_regression_dataset(
            data_config.get("test_multiplier", 10) * data_config.get("n_samples", 50),
            data_config.get("noise_std", 0.5),
            rng=rng,
        )
        X_test, y_test = test_df[FEATURE_COLUMNS].values, test_df[TARGET_COLUMN].values
        test_outputs = np.column_stack([m.predict(X_test) for m in contenders])

        contender_errors = compute_contender_errors(y_test, test_outputs)
        all_metrics = {f"contender_{i}_mse": float(e) for i, e in enumerate(contender_errors)}
        strategy_errors = {}
        per_sample = pd.DataFrame({"target": y_test})
        for i in range(test_outputs.shape[1]):
            per_sample[f"contender_{i}"] = test_outputs[:, i]

        for strategy, combiner in combiners.items():
            logger.info(f"Evaluating {strategy} gates")
            test_gates = build_gates(strategy, X_test, test_outputs, y_test, rng)
            predictions = combiner.predict(test_gates, test_outputs)
            weights = combiner.contender_weights(test_gates)

            metrics = compute_all_metrics(y_test, predictions)
            metrics.update(compute_gain_over_contenders(y_test, predictions, test_outputs))
            weight_stats = compute_weight_statistics(weights)
            metrics["weight_entropy"] = weight_stats["weight_entropy"]
            metrics["bandwidth"] = combiner.bandwidth_.tolist()
            metrics["converged"] = combiner.fit_result_.converged

            for name, value in metrics.items():
                all_metrics[f"{strategy}_{name}"] = value
            strategy_errors[strategy] = metrics["mse"]
            per_sample[f"{strategy}_prediction"] = predictions

            if save_plots:
                plot_weight_distribution(
                    weights, save_path=str(output_dir / f"{strategy}_weights.png")
                )
                if combiner.n_gates_ == 1:
                    grid, fitness = bandwidth_profile(combiner)
                    plot_bandwidth_profile(
                        grid,
                        fitness,
                        optimum=float(combiner.fit_result_.log_bandwidth[0]),
                        save_path=str(output_dir / f"{strategy}_bandwidth_profile.png"),
                    )

        print("\n" + "=" * 60)
        print("EVALUATION RESULTS")
        print("=" * 60)
        for i, error in enumerate(contender_errors):
            print(f"{f'contender {i}':30s}: {error:.4f}")
        for strategy, error in strategy_errors.items():
            print(f"{strategy:30s}: {error:.4f}")
        print("=" * 60)

        metrics_path = output_dir / "evaluation_metrics.json"
        with open(metrics_path, "w") as f:
            json.dump(all_metrics, f, indent=2)
        logger.info(f"Metrics saved to {metrics_path}")

        save_results_table(all_metrics, str(output_dir / "metrics_table"))

        if save_plots:
            plot_gate_comparison(
                strategy_errors,
                contender_errors=contender_errors.tolist(),
                save_path=str(output_dir / "gate_comparison.png"),
            )

        per_sample.to_csv(output_dir / "per_sample_results.csv", index=False)
        logger.info(f"Per-sample results saved to {output_dir / 'per_sample_results.csv'}")

        print(f"\nEvaluation complete. Results saved to {output_dir}")

    except Exception as e:
        logger.error(f"Evaluation failed: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
