"""Results analysis and visualization utilities."""

import logging
from pathlib import Path
from typing import Dict, Any, Optional, Sequence

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

logger = logging.getLogger(__name__)


def _finish(save_path: Optional[str], description: str) -> None:
    plt.tight_layout()
    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches="tight")
        logger.info(f"{description} saved to {save_path}")
    else:
        plt.show()
    plt.close()


def plot_gate_comparison(
    errors: Dict[str, float],
    contender_errors: Optional[Sequence[float]] = None,
    save_path: Optional[str] = None,
) -> None:
    """
    Plot test error of each gate strategy next to the raw contenders.

    Args:
        errors: Mapping of gate strategy to blended test MSE
        contender_errors: Test MSE of each raw contender
        save_path: Path to save figure
    """
    labels = list(errors.keys())
    values = list(errors.values())
    kinds = ["gated"] * len(labels)

    if contender_errors is not None:
        labels += [f"contender {i}" for i in range(len(contender_errors))]
        values += list(contender_errors)
        kinds += ["raw"] * len(contender_errors)

    df = pd.DataFrame({"model": labels, "mse": values, "kind": kinds})

    plt.figure(figsize=(10, 6))
    sns.barplot(data=df, x="model", y="mse", hue="kind", dodge=False)
    plt.title("Test Error by Gate Strategy")
    plt.xlabel("")
    plt.ylabel("Mean Squared Error")
    plt.yscale("log")
    plt.xticks(rotation=45, ha="right")
    plt.grid(True, alpha=0.3, axis="y")

    _finish(save_path, "Gate comparison plot")


def plot_bandwidth_profile(
    log_bandwidths: np.ndarray,
    fitness: np.ndarray,
    optimum: Optional[float] = None,
    save_path: Optional[str] = None,
) -> None:
    """
    Plot cross-validated fitness against log-bandwidth for a single gate.

    Args:
        log_bandwidths: Log-bandwidth grid
        fitness: Objective value at each grid point
        optimum: Fitted log-bandwidth to mark
        save_path: Path to save figure
    """
    plt.figure(figsize=(8, 5))
    plt.plot(log_bandwidths, fitness, "b-", linewidth=1.5, label="CV error")
    plt.scatter(log_bandwidths, fitness, c="blue", s=15, alpha=0.5)

    if optimum is not None:
        plt.axvline(optimum, color="red", linestyle="--", linewidth=2, label=f"Fitted {optimum:.3f}")

    plt.title("Bandwidth Selection")
    plt.xlabel("log(bandwidth)")
    plt.ylabel("Leave-out Mean Squared Error")
    plt.legend()
    plt.grid(True, alpha=0.3)

    _finish(save_path, "Bandwidth profile plot")


def plot_weight_distribution(
    weights: np.ndarray,
    contender_names: Optional[list] = None,
    save_path: Optional[str] = None,
) -> None:
    """
    Plot the distribution of local weights given to each contender.

    Args:
        weights: Contender weights of shape (n_queries, n_contenders)
        contender_names: Names of the contenders
        save_path: Path to save figure
    """
    weights = np.atleast_2d(weights)
    if contender_names is None:
        contender_names = [f"Contender {i}" for i in range(weights.shape[1])]

    df = pd.DataFrame(weights, columns=contender_names).melt(
        var_name="contender", value_name="weight"
    )

    plt.figure(figsize=(10, 6))
    sns.boxplot(data=df, x="contender", y="weight")
    plt.title("Local Contender Weights")
    plt.xlabel("")
    plt.ylabel("Weight")
    plt.ylim(-0.05, 1.05)
    plt.grid(True, alpha=0.3, axis="y")

    _finish(save_path, "Weight distribution plot")


def save_results_table(results: Dict[str, Any], save_path: str) -> None:
    """
    Save results as formatted table.

    Args:
        results: Dictionary of results
        save_path: Path to save table
    """
    df = pd.DataFrame([results]).T
    df.columns = ["Value"]
    df.index.name = "Metric"

    # Format numbers
    df["Value"] = df["Value"].apply(lambda x: f"{x:.4f}" if isinstance(x, float) else str(x))

    # Save to CSV
    csv_path = Path(save_path).with_suffix(".csv")
    df.to_csv(csv_path)
    logger.info(f"Results table saved to {csv_path}")

    # Also save as formatted text
    txt_path = Path(save_path).with_suffix(".txt")
    with open(txt_path, "w") as f:
        f.write(df.to_string())
    logger.info(f"Results table saved to {txt_path}")
