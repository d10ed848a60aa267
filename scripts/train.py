#!/usr/bin/env python
"""Run the gate-strategy comparison experiment."""

import sys
import argparse
import logging
import json
from pathlib import Path

# Add project root and src to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kernel_gating_combiner.utils.config import (
    combiner_params_from_config,
    load_config,
    set_random_seeds,
)
from kernel_gating_combiner.training.trainer import GatingExperiment


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).

    Raises:
        ValueError: If log_level is invalid.
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    log_level_upper = log_level.upper()
    if log_level_upper not in valid_levels:
        raise ValueError(f"Invalid log level: {log_level}. Must be one of {valid_levels}")

    try:
        logging.basicConfig(
            level=getattr(logging, log_level_upper),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[logging.StreamHandler(), logging.FileHandler("experiment.log")],
        )
    except Exception as e:
        print(f"Warning: Failed to configure logging: {e}")
        logging.basicConfig(level=logging.INFO)


def main() -> None:
    """Main experiment function.

    Raises:
        FileNotFoundError: If config file not found.
        ValueError: If configuration is invalid.
        RuntimeError: If the experiment fails.
    """
    parser = argparse.ArgumentParser(description="Compare gate strategies for the gating combiner")
    parser.add_argument(
        "--config",
        type=str,
        default="configs/default.yaml",
        help="Path to configuration file",
    )
    parser.add_argument(
        "--tries",
        type=int,
        default=None,
        help="Override the number of tries from the configuration",
    )
    args = parser.parse_args()

    print(f"Loading configuration from {args.config}")
    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {args.config}")
        raise

    setup_logging(config.get("logging", {}).get("level", "INFO"))
    logger = logging.getLogger(__name__)
    logger.info("Starting gating experiment")

    random_seed = config.get("random_seed", 42)
    set_random_seeds(random_seed)

    data_config = config.get("data", {})
    contender_config = config.get("contenders", {})
    experiment_config = config.get("experiment", {})

    try:
        experiment = GatingExperiment(
            n_samples=data_config.get("n_samples", 50),
            n_contenders=contender_config.get("n_contenders", 3),
            noise_std=data_config.get("noise_std", 0.5),
            test_multiplier=data_config.get("test_multiplier", 10),
            contender_kind=contender_config.get("kind", "mlp"),
            contender_params=contender_config.get("params"),
            combiner_params=combiner_params_from_config(config),
            gate_strategies=experiment_config.get("gate_strategies"),
            checkpoint_dir=experiment_config.get("checkpoint_dir", "checkpoints"),
            random_state=random_seed,
        )
    except Exception as e:
        logger.error(f"Failed to initialize experiment: {e}")
        raise RuntimeError(f"Experiment initialization failed: {e}") from e

    n_tries = args.tries if args.tries is not None else experiment_config.get("n_tries", 5)
    try:
        history = experiment.run(
            n_tries=n_tries,
            track_mlflow=experiment_config.get("track_mlflow", False),
        )
    except Exception as e:
        logger.error(f"Experiment failed: {e}", exc_info=True)
        raise RuntimeError(f"Gating experiment failed: {e}") from e

    if experiment.n_done == 0:
        logger.warning("No tries completed; nothing to save")
        return

    results_dir = Path(config.get("evaluation", {}).get("results_dir", "results"))
    results_dir.mkdir(parents=True, exist_ok=True)
    experiment.save_history(str(results_dir / "experiment_history.json"))

    final = {"n_tries": experiment.n_done, "mean_raw_error": history["mean_raw_error"][-1]}
    for strategy in experiment.gate_strategies:
        final[f"{strategy}_error"] = history[f"{strategy}_error"][-1]
    with open(results_dir / "experiment_results.json", "w") as f:
        json.dump(final, f, indent=2)

    print("\nExperiment complete!")
    print(f"Tries: {experiment.n_done}")
    print(f"Raw contender errors: {', '.join(f'{e:.4f}' for e in history['raw_errors'][-1])}")
    for key, value in final.items():
        if key.endswith("_error"):
            print(f"{key:25s}: {value:.5f}")
    print(f"Checkpoint saved to: {experiment.checkpoint_dir / 'last_experiment.pkl'}")


if __name__ == "__main__":
    main()
