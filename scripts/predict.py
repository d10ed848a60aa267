#!/usr/bin/env python
"""Prediction script for a stored gating combiner."""

import sys
import argparse
import logging
from pathlib import Path

# Add project root and src to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np
import pandas as pd
import joblib


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


def load_input_data(input_path: str) -> pd.DataFrame:
    """
    Load input data from file.

    Args:
        input_path: Path to input CSV or JSON file

    Returns:
        DataFrame with gate_* and contender_* columns
    """
    if input_path.endswith(".csv"):
        return pd.read_csv(input_path)
    elif input_path.endswith(".json"):
        return pd.read_json(input_path)
    else:
        raise ValueError(f"Unsupported file format: {input_path}")


def split_columns(df: pd.DataFrame, n_gates: int, n_contenders: int):
    """
    Pull gate and contender columns out of an input frame.

    Args:
        df: Input data
        n_gates: Gate count the combiner was fitted with
        n_contenders: Contender count the combiner was fitted with

    Returns:
        Tuple of (gates, contender_outputs) arrays

    Raises:
        ValueError: If the column counts do not match the combiner
    """
    gate_cols = [c for c in df.columns if c.startswith("gate_")]
    contender_cols = [c for c in df.columns if c.startswith("contender_")]
    if len(gate_cols) != n_gates:
        raise ValueError(f"Expected {n_gates} gate_* columns, found {len(gate_cols)}")
    if len(contender_cols) != n_contenders:
        raise ValueError(
            f"Expected {n_contenders} contender_* columns, found {len(contender_cols)}"
        )
    return df[gate_cols].to_numpy(dtype=float), df[contender_cols].to_numpy(dtype=float)


def main() -> None:
    """Main prediction function."""
    parser = argparse.ArgumentParser(description="Blend contender outputs with a fitted combiner")
    parser.add_argument(
        "--checkpoint",
        type=str,
        default="checkpoints/last_experiment.pkl",
        help="Path to experiment checkpoint",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default="after_the_fact",
        help="Gate strategy whose combiner to use",
    )
    parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="Path to input data (CSV or JSON) with gate_* and contender_* columns",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="predictions.csv",
        help="Path to save predictions",
    )
    parser.add_argument(
        "--show-weights",
        action="store_true",
        help="Include the local weight of each contender",
    )
    args = parser.parse_args()

    setup_logging("INFO")
    logger = logging.getLogger(__name__)
    logger.info("Starting prediction")

    try:
        logger.info(f"Loading checkpoint from {args.checkpoint}")
        checkpoint_path = Path(args.checkpoint)
        if not checkpoint_path.exists():
            raise FileNotFoundError(f"Checkpoint not found: {args.checkpoint}")

        checkpoint = joblib.load(checkpoint_path)
        combiners = checkpoint["combiners"]
        if args.strategy not in combiners:
            raise ValueError(
                f"No combiner for strategy '{args.strategy}'. Available: {sorted(combiners)}"
            )
        combiner = combiners[args.strategy]

        logger.info(f"Loading input data from {args.input}")
        df = load_input_data(args.input)
        gates, contender_outputs = split_columns(df, combiner.n_gates_, combiner.n_contenders_)
        logger.info(f"Loaded {len(df)} queries")

        predictions = combiner.predict(gates, contender_outputs)
        results = pd.DataFrame({"prediction": predictions})

        if args.show_weights:
            weights = combiner.contender_weights(gates)
            for i in range(weights.shape[1]):
                results[f"weight_contender_{i}"] = weights[:, i]

        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        results.to_csv(output_path, index=False)
        logger.info(f"Predictions saved to {output_path}")

        print("\n" + "=" * 60)
        print("PREDICTION SUMMARY")
        print("=" * 60)
        print(f"Strategy: {args.strategy}")
        print(f"Bandwidth: {np.array2string(combiner.bandwidth_, precision=4)}")
        print(f"Total queries: {len(predictions)}")
        print(f"Mean prediction: {predictions.mean():.4f}")
        if args.show_weights:
            print("\nMean contender weights:")
            for i, w in enumerate(weights.mean(axis=0)):
                print(f"  Contender {i}: {w:.4f}")
        print("=" * 60)

        print("\nFirst 5 predictions:")
        print(results.head())

    except Exception as e:
        logger.error(f"Prediction failed: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
