"""
Kernel Gating Combiner.

Blends the scalar predictions of several contender models, trusting each one
locally according to how accurate it has been near the query point in a space
of continuous gate variables.
"""

__version__ = "0.1.0"

from kernel_gating_combiner.models.components import InvalidArgumentError
from kernel_gating_combiner.models.model import GatingCombiner

__all__ = ["GatingCombiner", "InvalidArgumentError"]
