"""Monte-Carlo comparison of gate strategies with checkpointing."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
import json

import numpy as np
import joblib

from kernel_gating_combiner.data.loader import (
    FEATURE_COLUMNS,
    TARGET_COLUMN,
    build_contender_training_sets,
    generate_regression_dataset,
)
from kernel_gating_combiner.data.preprocessing import GATE_STRATEGIES, build_gates
from kernel_gating_combiner.evaluation.metrics import compute_contender_errors
from kernel_gating_combiner.models.contenders import create_contender
from kernel_gating_combiner.models.model import GatingCombiner

logger = logging.getLogger(__name__)


class GatingExperiment:
    """
    Repeatedly trains contenders on fresh data and compares gate strategies.

    Each try trains every contender, measures its raw test error, then fits
    one GatingCombiner per gate strategy on the contenders' training-set
    outputs and measures the blended test error. Running means over tries are
    kept in ``history``.
    """

    def __init__(
        self,
        n_samples: int = 50,
        n_contenders: int = 3,
        noise_std: float = 0.5,
        test_multiplier: int = 10,
        contender_kind: str = "mlp",
        contender_params: Optional[Dict[str, Any]] = None,
        combiner_params: Optional[Dict[str, Any]] = None,
        gate_strategies: Optional[Sequence[str]] = None,
        checkpoint_dir: str = "checkpoints",
        random_state: int = 42,
    ):
        """
        Initialize experiment.

        Args:
            n_samples: Training cases per try
            n_contenders: Number of contender models
            noise_std: Target noise standard deviation
            test_multiplier: Test set size as a multiple of n_samples
            contender_kind: Contender model type (see create_contender)
            contender_params: Overrides for the contender model settings
            combiner_params: GatingCombiner hyperparameters
            gate_strategies: Gate strategies to compare, defaults to all
            checkpoint_dir: Directory to save checkpoints
            random_state: Random seed for reproducibility

        Raises:
            ValueError: If a size is invalid or a strategy is unknown
        """
        if n_samples <= 0 or n_contenders <= 0 or test_multiplier <= 0:
            raise ValueError("n_samples, n_contenders and test_multiplier must be positive")

        strategies = list(gate_strategies) if gate_strategies is not None else list(GATE_STRATEGIES)
        unknown = [s for s in strategies if s not in GATE_STRATEGIES]
        if unknown:
            raise ValueError(f"Unknown gate strategies: {unknown}")
        if "error_ratio" in strategies and n_contenders < 2:
            logger.warning("error_ratio gates need two contenders; dropping the strategy")
            strategies.remove("error_ratio")

        self.n_samples = n_samples
        self.n_contenders = n_contenders
        self.noise_std = noise_std
        self.test_multiplier = test_multiplier
        self.contender_kind = contender_kind
        self.contender_params = contender_params or {}
        self.combiner_params = combiner_params or {}
        self.gate_strategies = strategies
        self.checkpoint_dir = Path(checkpoint_dir)
        self.random_state = random_state

        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)

        self.rng = np.random.RandomState(random_state)
        self.history: Dict[str, list] = {"raw_errors": [], "mean_raw_error": []}
        for strategy in self.gate_strategies:
            self.history[f"{strategy}_error"] = []

        self.contenders_: List[Any] = []
        self.combiners_: Dict[str, GatingCombiner] = {}
        self._totals: Dict[str, Any] = {}
        self.n_done = 0

    def _train_contenders(self, train_df) -> List[Any]:
        contenders = []
        training_sets = build_contender_training_sets(train_df, self.n_contenders, self.rng)
        for index, df in enumerate(training_sets):
            model = create_contender(
                self.contender_kind,
                random_state=self.random_state + index,
                **self.contender_params,
            )
            try:
                model.fit(df[FEATURE_COLUMNS].values, df[TARGET_COLUMN].values)
            except Exception as e:
                logger.error(f"Failed to train contender {index}: {e}")
                raise RuntimeError(f"Contender {index} training failed: {e}") from e
            contenders.append(model)
        return contenders

    @staticmethod
    def _contender_outputs(contenders: List[Any], features: np.ndarray) -> np.ndarray:
        return np.column_stack([np.asarray(m.predict(features), dtype=float) for m in contenders])

    def run_try(self) -> Dict[str, Any]:
        """
        Run one try on freshly generated data.

        Returns:
            Dictionary with this try's raw contender errors and the blended
            test error of each gate strategy
        """
        train_df = generate_regression_dataset(self.n_samples, self.noise_std, rng=self.rng)
        test_df = generate_regression_dataset(
            self.test_multiplier * self.n_samples, self.noise_std, rng=self.rng
        )
        X_train, y_train = train_df[FEATURE_COLUMNS].values, train_df[TARGET_COLUMN].values
        X_test, y_test = test_df[FEATURE_COLUMNS].values, test_df[TARGET_COLUMN].values

        contenders = self._train_contenders(train_df)
        train_outputs = self._contender_outputs(contenders, X_train)
        test_outputs = self._contender_outputs(contenders, X_test)

        result: Dict[str, Any] = {
            "raw_errors": compute_contender_errors(y_test, test_outputs).tolist()
        }
        combiners = {}
        for strategy in self.gate_strategies:
            train_gates = build_gates(strategy, X_train, train_outputs, y_train, self.rng)
            test_gates = build_gates(strategy, X_test, test_outputs, y_test, self.rng)

            combiner = GatingCombiner(**self.combiner_params)
            combiner.fit(train_gates, train_outputs, y_train)
            predictions = combiner.predict(test_gates, test_outputs)

            result[f"{strategy}_error"] = float(np.mean((y_test - predictions) ** 2))
            combiners[strategy] = combiner

        self.contenders_ = contenders
        self.combiners_ = combiners
        return result

    def _accumulate(self, result: Dict[str, Any]) -> None:
        self.n_done += 1
        for key, value in result.items():
            total = self._totals.get(key)
            self._totals[key] = np.asarray(value) if total is None else total + np.asarray(value)

        raw_means = self._totals["raw_errors"] / self.n_done
        self.history["raw_errors"].append(raw_means.tolist())
        self.history["mean_raw_error"].append(float(raw_means.mean()))
        for strategy in self.gate_strategies:
            key = f"{strategy}_error"
            self.history[key].append(float(self._totals[key] / self.n_done))

    def run(self, n_tries: int = 1, track_mlflow: bool = False) -> Dict[str, Any]:
        """
        Run the experiment.

        Args:
            n_tries: Number of tries
            track_mlflow: Whether to track with MLflow

        Returns:
            History of running mean errors
        """
        if n_tries <= 0:
            raise ValueError(f"n_tries must be positive, got {n_tries}")

        logger.info(
            f"Starting gating experiment: {n_tries} tries, {self.n_samples} samples, "
            f"{self.n_contenders} {self.contender_kind} contenders"
        )

        # Initialize MLflow tracking if requested
        mlflow_client = None
        if track_mlflow:
            try:
                import mlflow

                mlflow.start_run()
                mlflow.log_params(
                    {
                        "n_samples": self.n_samples,
                        "n_contenders": self.n_contenders,
                        "noise_std": self.noise_std,
                        "contender_kind": self.contender_kind,
                        "gate_strategies": ",".join(self.gate_strategies),
                        "n_tries": n_tries,
                    }
                )
                mlflow_client = mlflow
                logger.info("MLflow tracking enabled")
            except Exception as e:
                logger.warning(f"MLflow tracking failed: {e}. Continuing without MLflow.")
                mlflow_client = None

        try:
            for _ in range(n_tries):
                try:
                    result = self.run_try()
                except KeyboardInterrupt:
                    logger.warning(f"Interrupted after {self.n_done} tries; keeping results so far")
                    break
                self._accumulate(result)

                raw = ", ".join(f"{e:.4f}" for e in self.history["raw_errors"][-1])
                logger.info(
                    f"Did {self.n_done}: raw errors [{raw}], "
                    f"mean raw error {self.history['mean_raw_error'][-1]:.5f}"
                )
                for strategy in self.gate_strategies:
                    logger.info(
                        f"  {strategy} error = {self.history[f'{strategy}_error'][-1]:.5f}"
                    )

                if mlflow_client is not None:
                    try:
                        mlflow_client.log_metrics(
                            {
                                "mean_raw_error": self.history["mean_raw_error"][-1],
                                **{
                                    f"{s}_error": self.history[f"{s}_error"][-1]
                                    for s in self.gate_strategies
                                },
                            },
                            step=self.n_done,
                        )
                    except Exception as e:
                        logger.warning(f"Failed to log metrics to MLflow: {e}")

            if self.n_done > 0:
                self.save_checkpoint("last_experiment.pkl")

        except Exception as e:
            logger.error(f"Experiment failed: {e}")
            raise
        finally:
            if mlflow_client is not None:
                try:
                    mlflow_client.end_run()
                except Exception as e:
                    logger.warning(f"Failed to end MLflow run: {e}")

        return self.history

    def save_checkpoint(self, filename: str) -> None:
        """
        Save the last try's contenders and combiners.

        Args:
            filename: Checkpoint filename
        """
        checkpoint_path = self.checkpoint_dir / filename
        checkpoint = {
            "contenders": self.contenders_,
            "combiners": self.combiners_,
            "history": self.history,
            "n_done": self.n_done,
            "config": {
                "n_samples": self.n_samples,
                "n_contenders": self.n_contenders,
                "noise_std": self.noise_std,
                "contender_kind": self.contender_kind,
                "gate_strategies": self.gate_strategies,
            },
        }
        joblib.dump(checkpoint, checkpoint_path)
        logger.info(f"Checkpoint saved to {checkpoint_path}")

    def load_checkpoint(self, filename: str) -> None:
        """
        Load a checkpoint written by save_checkpoint.

        Args:
            filename: Checkpoint filename
        """
        checkpoint_path = self.checkpoint_dir / filename
        if not checkpoint_path.exists():
            raise FileNotFoundError(f"Checkpoint not found: {checkpoint_path}")

        checkpoint = joblib.load(checkpoint_path)
        self.contenders_ = checkpoint["contenders"]
        self.combiners_ = checkpoint["combiners"]
        self.history = checkpoint.get("history", {})
        self.n_done = checkpoint.get("n_done", 0)
        logger.info(f"Checkpoint loaded from {checkpoint_path}")

    def save_history(self, filepath: str) -> None:
        """
        Save experiment history to JSON.

        Args:
            filepath: Path to save history
        """
        with open(filepath, "w") as f:
            json.dump(self.history, f, indent=2)
        logger.info(f"Experiment history saved to {filepath}")
