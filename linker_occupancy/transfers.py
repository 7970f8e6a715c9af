"""Marginal-preserving transfer directions (null space of the equality matrix).

Every admissible probability vector p satisfies A_eq p = b_eq, where A_eq
stacks the normalisation row and one row per site (the indicator of
configurations with that site bound).  Directions d with A_eq d = 0 move
probability mass between configurations without changing any site marginal
or the total.

A_eq has 0/1 entries, so sympy's null space is exactly rational.  Each basis
vector is scaled to a primitive integer vector (lcm of the denominators, then
gcd of the entries) with its first nonzero entry positive.
"""

from __future__ import annotations

from functools import lru_cache
from math import gcd, lcm

import numpy as np
import sympy as sp
from numpy.typing import NDArray

from .utils import CONFIG_BITS, N_CONFIGS


def equality_matrix() -> NDArray[np.float64]:
    """Rows: [sum of all configs, site 1 bound, site 2 bound, site 3 bound]."""
    return np.vstack([np.ones(N_CONFIGS), CONFIG_BITS.T]).astype(float)


@lru_cache(maxsize=None)
def _integer_directions() -> tuple[tuple[int, ...], ...]:
    S = sp.Matrix(equality_matrix().astype(int).tolist())
    out = []
    for v in S.nullspace():
        scale = lcm(*(int(sp.Rational(x).q) for x in v))
        ints = [int(sp.Rational(x) * scale) for x in v]
        g = gcd(*ints)
        ints = [x // g for x in ints]
        if next(x for x in ints if x != 0) < 0:
            ints = [-x for x in ints]
        out.append(tuple(ints))
    return tuple(out)


def integer_transfer_basis() -> NDArray[np.int64]:
    """Primitive integer transfer directions as rows of a (4, 8) array."""
    return np.array(_integer_directions(), dtype=np.int64)


def transfer_basis() -> NDArray[np.float64]:
    """Transfer directions as rows of a (r, 8) float array (r = 4)."""
    return np.array(_integer_directions(), dtype=float)
