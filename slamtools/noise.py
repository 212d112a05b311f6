"""Uniform and Gaussian random draws used to perturb problems."""

from __future__ import annotations

import math
import random
from typing import Protocol


class _UniformSource(Protocol):
    def random(self) -> float: ...


def rand_double(rng: _UniformSource | None = None) -> float:
    """Return a uniform draw in ``[0, 1]`` from ``rng`` (global generator if None)."""
    source = rng if rng is not None else random
    return float(source.random())


def rand_normal(rng: _UniformSource | None = None) -> float:
    """Return a standard normal draw using the Marsaglia polar method."""
    while True:
        x1 = 2.0 * rand_double(rng) - 1.0
        x2 = 2.0 * rand_double(rng) - 1.0
        w = x1 * x1 + x2 * x2
        if 0.0 < w < 1.0:
            break
    return x1 * math.sqrt((-2.0 * math.log(w)) / w)