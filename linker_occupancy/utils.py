"""Shared utilities for linker occupancy computations.

This module provides common definitions used across the package:
- Tolerance constant for constraint checks
- Occupancy configuration indexing (labels, bit matrix)
- Typical/atypical partition of the configurations
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


# =============================================================================
# Tolerance constants
# =============================================================================
# Constraint satisfaction tolerance for sampled probability vectors
ATOL = 1e-9


# =============================================================================
# Occupancy configurations
# =============================================================================
N_SITES = 3
N_CONFIGS = 2 ** N_SITES

# Row k holds the bits (b1, b2, b3) of configuration k = 4*b1 + 2*b2 + b3.
CONFIG_BITS: NDArray[np.int64] = np.array(
    [[(k >> (N_SITES - 1 - s)) & 1 for s in range(N_SITES)] for k in range(N_CONFIGS)],
    dtype=np.int64,
)
CONFIG_LABELS: tuple[str, ...] = tuple("".join(str(b) for b in row) for row in CONFIG_BITS)

# Site 3 has the highest affinity (smallest Kd), site 1 the lowest.  A
# configuration is typical when no site is bound while a higher-affinity
# site is empty, i.e. the bits are non-decreasing from site 1 to site 3.
TYPICAL_MASK: NDArray[np.bool_] = np.all(np.diff(CONFIG_BITS, axis=1) >= 0, axis=1)
ATYPICAL_MASK: NDArray[np.bool_] = ~TYPICAL_MASK

# Number of bound calcium ions per configuration
BOUND_SITES: NDArray[np.int64] = CONFIG_BITS.sum(axis=1)


def config_index(label: str | int) -> int:
    """Return the index of a configuration given as '011' or as an index."""
    if isinstance(label, (int, np.integer)):
        k = int(label)
        if not 0 <= k < N_CONFIGS:
            raise ValueError(f"configuration index {k} out of range [0, {N_CONFIGS})")
        return k
    try:
        return CONFIG_LABELS.index(str(label))
    except ValueError:
        raise ValueError(f"unknown occupancy configuration {label!r}") from None


def site_marginals(p: NDArray[np.float64]) -> NDArray[np.float64]:
    """Per-site occupancy probabilities of probability vector(s) (..., 8) -> (..., 3)."""
    return np.asarray(p, dtype=float) @ CONFIG_BITS


def atypical_mass(p: NDArray[np.float64]) -> NDArray[np.float64]:
    """Total probability on atypical configurations (..., 8) -> (...)."""
    return np.asarray(p, dtype=float)[..., ATYPICAL_MASK].sum(axis=-1)
