"""Configuration management utilities."""

import inspect
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Dictionary containing configuration parameters

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is malformed
    """
    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, "r") as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Successfully loaded configuration from {config_path}")
        return config
    except yaml.YAMLError as e:
        logger.error(f"Error parsing YAML configuration: {e}")
        raise


def combiner_params_from_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract GatingCombiner keyword arguments from the 'combiner' section.

    Args:
        config: Full configuration dictionary

    Returns:
        Keyword arguments for GatingCombiner

    Raises:
        ValueError: If the section names an unknown hyperparameter
    """
    from kernel_gating_combiner.models.model import GatingCombiner

    params = dict(config.get("combiner") or {})
    allowed = set(inspect.signature(GatingCombiner.__init__).parameters) - {"self"}
    unknown = sorted(set(params) - allowed)
    if unknown:
        raise ValueError(f"Unknown combiner parameters: {unknown}. Allowed: {sorted(allowed)}")
    return params


def set_random_seeds(seed: int) -> None:
    """
    Set random seeds for reproducibility.

    Args:
        seed: Random seed value
    """
    import random

    import numpy as np
    import torch

    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    logger.info(f"Random seeds set to {seed}")
