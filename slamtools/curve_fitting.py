"""Fit y = exp(a x^2 + b x + c) to noisy samples."""

from __future__ import annotations

import argparse
import logging
import math
import time
from dataclasses import dataclass, field

import numpy as np
from scipy.optimize import least_squares

logger = logging.getLogger(__name__)

TRUE_PARAMS = (1.0, 2.0, 1.0)
INITIAL_PARAMS = (2.0, -1.0, 5.0)


@dataclass(frozen=True, eq=False)
class FitResult:
    """Outcome of a curve fit; ``cost`` is the sum of squared residuals at ``params``."""

    params: np.ndarray
    cost: float
    iterations: int
    converged: bool
    history: tuple[float, ...] = field(default=())


def curve_model(params, x) -> np.ndarray:
    """Evaluate ``exp(a x^2 + b x + c)``."""
    a, b, c = np.asarray(params, dtype=float).reshape(3)
    xs = np.asarray(x, dtype=float)
    return np.exp(a * xs * xs + b * xs + c)


def _jacobian(params, x: np.ndarray) -> np.ndarray:
    """Jacobian of the residual ``y - model`` with respect to (a, b, c)."""
    pred = curve_model(params, x)
    return -np.column_stack((x * x * pred, x * pred, pred))


def _check_data(x, y) -> tuple[np.ndarray, np.ndarray]:
    xs = np.asarray(x, dtype=float).ravel()
    ys = np.asarray(y, dtype=float).ravel()
    if xs.shape != ys.shape:
        raise ValueError("x and y must have the same length")
    if xs.size == 0:
        raise ValueError("at least one data point is required")
    return xs, ys


def generate_curve_data(n=100, sigma=1.0, params=TRUE_PARAMS, seed=0):
    """Sample ``x_i = i / 100`` and noisy ``y_i``; the noise deviation is ``sigma**2``."""
    if n < 0:
        raise ValueError("n must be non-negative")
    rng = np.random.default_rng(seed)
    x = np.arange(n, dtype=float) / 100.0
    y = curve_model(params, x) + rng.normal(0.0, sigma * sigma, size=n)
    return x, y


def fit_gauss_newton(x, y, initial=INITIAL_PARAMS, iterations=100, sigma=1.0) -> FitResult:
    """Hand-written Gauss-Newton; stops when the cost stops decreasing."""
    xs, ys = _check_data(x, y)
    if sigma <= 0:
        raise ValueError("sigma must be positive")
    weight = 1.0 / (sigma * sigma)
    params = np.asarray(initial, dtype=float).reshape(3).copy()
    last_cost = 0.0
    history: list[float] = []
    converged = False

    for iteration in range(iterations):
        error = ys - curve_model(params, xs)
        jac = _jacobian(params, xs)
        hessian = weight * (jac.T @ jac)
        bias = -weight * (jac.T @ error)
        cost = float(error @ error)

        try:
            dx = np.linalg.solve(hessian, bias)
        except np.linalg.LinAlgError:
            dx = np.full(3, math.nan)
        if math.isnan(dx[0]):
            logger.warning("result is nan!")
            break

        if iteration > 0 and cost >= last_cost:
            logger.debug("cost: %g >= last cost: %g, break.", cost, last_cost)
            converged = True
            break

        params = params + dx
        last_cost = cost
        history.append(cost)
        logger.debug("total cost: %g, update: %s, estimated params: %s", cost, dx, params)

    final_error = ys - curve_model(params, xs)
    return FitResult(
        params=params,
        cost=float(final_error @ final_error),
        iterations=len(history),
        converged=converged,
        history=tuple(history),
    )


def fit_least_squares(x, y, initial=INITIAL_PARAMS) -> FitResult:
    """Fit with a library Levenberg-Marquardt solver and the analytic Jacobian."""
    xs, ys = _check_data(x, y)
    if xs.size < 3:
        raise ValueError("at least three data points are required")

    def residual(p):
        return ys - curve_model(p, xs)

    def jacobian(p):
        return _jacobian(p, xs)

    solution = least_squares(
        residual, np.asarray(initial, dtype=float).reshape(3), jac=jacobian, method="lm"
    )
    final_error = residual(solution.x)
    return FitResult(
        params=np.asarray(solution.x, dtype=float),
        cost=float(final_error @ final_error),
        iterations=int(solution.nfev),
        converged=bool(solution.success),
    )


def main(argv=None) -> int:
    """Generate noisy samples, fit them and print the estimate."""
    parser = argparse.ArgumentParser(description="Fit y = exp(a x^2 + b x + c).")
    parser.add_argument(
        "--method", choices=("gauss-newton", "least-squares"), default="gauss-newton"
    )
    parser.add_argument("--points", type=int, default=100)
    parser.add_argument("--sigma", type=float, default=1.0)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--iterations", type=int, default=100)
    args = parser.parse_args(argv)

    x, y = generate_curve_data(args.points, args.sigma, TRUE_PARAMS, args.seed)
    start = time.perf_counter()
    if args.method == "gauss-newton":
        result = fit_gauss_newton(x, y, INITIAL_PARAMS, args.iterations, args.sigma)
    else:
        result = fit_least_squares(x, y, INITIAL_PARAMS)
    elapsed = time.perf_counter() - start

    print(f"solve time cost = {elapsed:.6f} seconds. ")
    a, b, c = result.params
    print(f"estimated abc = {a:g}, {b:g}, {c:g}")
    return 0