"""Derivative-free minimizers used to fit kernel bandwidths.

Thin wrappers around ``scipy.optimize`` that share one result type and never
raise for non-convergence: the best point found is always returned.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from scipy.optimize import minimize, minimize_scalar

logger = logging.getLogger(__name__)


@dataclass
class OptimizationResult:
    """Outcome of a minimization.

    Attributes:
        x: Minimizing point, shape (n_params,).
        fun: Objective value at ``x``.
        n_evaluations: Objective calls made by the minimizer.
        converged: Whether the minimizer met its tolerance within its budget.
        method: Name of the search that produced the result.
    """

    x: np.ndarray
    fun: float
    n_evaluations: int
    converged: bool
    method: str


def scan_bracket(
    func: Callable[[float], float],
    low: float,
    high: float,
    n_points: int,
    max_extensions: int = 20,
) -> Tuple[np.ndarray, np.ndarray, int]:
    """Coarse global scan that brackets the lowest sampled value.

    Samples ``n_points`` equally spaced points on [low, high]. If the best
    sample sits on an edge, keeps stepping outward by the grid spacing while
    the function still decreases.

    Args:
        func: Scalar function to minimize.
        low: Lower end of the scan.
        high: Upper end of the scan.
        n_points: Number of samples, at least 3.
        max_extensions: Maximum outward steps past either edge.

    Returns:
        Tuple of (xs, ys, n_evaluations) where xs and ys hold the bracket as
        three ascending abscissae and their values. The middle value is the
        lowest unless the extension budget ran out on an edge.

    Raises:
        ValueError: If the domain is malformed.
    """
    if not low < high:
        raise ValueError(f"Scan requires low < high, got [{low}, {high}]")
    if n_points < 3:
        raise ValueError(f"Scan requires at least 3 points, got {n_points}")

    xs = list(np.linspace(low, high, n_points))
    ys = [func(x) for x in xs]
    n_evaluations = n_points
    step = (high - low) / (n_points - 1)

    best = int(np.argmin(ys))
    extensions = 0
    while best == 0 and extensions < max_extensions:
        x = xs[0] - step
        y = func(x)
        n_evaluations += 1
        extensions += 1
        xs.insert(0, x)
        ys.insert(0, y)
        if y >= ys[1]:
            best = 1
    while best == len(xs) - 1 and extensions < max_extensions:
        x = xs[-1] + step
        y = func(x)
        n_evaluations += 1
        extensions += 1
        xs.append(x)
        ys.append(y)
        best = len(xs) - 2 if y >= ys[-2] else len(xs) - 1
    if extensions:
        logger.debug(f"Scan extended {extensions} step(s) past [{low}, {high}]")

    # An edge minimum after exhausting extensions still gets a one-sided bracket.
    centre = min(max(best, 1), len(xs) - 2)
    bracket = slice(centre - 1, centre + 2)
    return np.array(xs[bracket]), np.array(ys[bracket]), n_evaluations


def line_minimize(
    func: Callable[[float], float],
    low: float = -3.0,
    high: float = 3.0,
    n_points: int = 15,
    tol: float = 1e-5,
    max_iter: int = 50,
    max_extensions: int = 20,
) -> OptimizationResult:
    """Minimize a scalar function: coarse scan, then bounded Brent refinement.

    Args:
        func: Scalar function to minimize.
        low: Lower end of the coarse scan.
        high: Upper end of the coarse scan.
        n_points: Number of coarse samples.
        tol: Absolute tolerance on the abscissa for the refinement.
        max_iter: Iteration cap for the refinement.
        max_extensions: Outward steps allowed when the scan minimum is on an edge.

    Returns:
        OptimizationResult with a 1-element ``x``.
    """
    xs, ys, n_evaluations = scan_bracket(func, low, high, n_points, max_extensions)
    best = int(np.argmin(ys))
    best_x, best_y = float(xs[best]), float(ys[best])

    result = minimize_scalar(
        func,
        bounds=(float(xs[0]), float(xs[2])),
        method="bounded",
        options={"xatol": tol, "maxiter": max_iter},
    )
    n_evaluations += int(result.nfev)
    converged = bool(result.success)
    if not converged:
        logger.warning(f"Line search stopped before convergence: {result.message}")

    if float(result.fun) <= best_y:
        best_x, best_y = float(result.x), float(result.fun)

    return OptimizationResult(
        x=np.array([best_x]),
        fun=best_y,
        n_evaluations=n_evaluations,
        converged=converged,
        method="line_search",
    )


def direction_set_minimize(
    func: Callable[[np.ndarray], float],
    x0,
    tol: float = 1e-4,
    max_iter: int = 10,
    initial_value: Optional[float] = None,
) -> OptimizationResult:
    """Minimize a multivariate function with Powell's direction-set method.

    Args:
        func: Function of a parameter vector.
        x0: Starting point.
        tol: Relative tolerance on the function value.
        max_iter: Maximum number of direction-set sweeps.
        initial_value: ``func(x0)`` if already known; used to keep the start
            point when the search makes no progress.

    Returns:
        OptimizationResult for the best point seen.

    Raises:
        ValueError: If ``x0`` is empty.
    """
    x0 = np.atleast_1d(np.asarray(x0, dtype=float))
    if x0.size == 0:
        raise ValueError("x0 must contain at least one parameter")

    result = minimize(
        func,
        x0,
        method="Powell",
        options={"maxiter": max_iter, "ftol": tol, "xtol": tol},
    )
    converged = bool(result.success)
    if not converged:
        logger.warning(f"Direction-set search stopped before convergence: {result.message}")

    best_x, best_y = np.atleast_1d(result.x).astype(float), float(result.fun)
    if initial_value is not None and initial_value < best_y:
        best_x, best_y = x0, float(initial_value)

    return OptimizationResult(
        x=best_x,
        fun=best_y,
        n_evaluations=int(result.nfev),
        converged=converged,
        method="direction_set",
    )
