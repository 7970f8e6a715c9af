"""Summary tables computed from the pooled sample set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .utils import atypical_mass, site_marginals


def ordering_probabilities(pooled: NDArray[np.float64]) -> NDArray[np.float64]:
    """P[i, j] = fraction of pooled vectors with p_i <= p_j, (n, K) -> (K, K)."""
    X = np.asarray(pooled, dtype=float)
    if X.ndim != 2 or X.shape[0] == 0:
        raise ValueError(f"pooled samples must have shape (n, K) with n > 0, got {X.shape}")
    return (X[:, :, None] <= X[:, None, :]).mean(axis=0)


def ordering_grid(samples: NDArray[np.float64]) -> NDArray[np.float64]:
    """Ordering probabilities per concentration, (n_conc, n, K) -> (n_conc, K, K)."""
    return np.stack([ordering_probabilities(x) for x in np.asarray(samples, dtype=float)])


@dataclass(frozen=True)
class PooledSummary:
    levels: tuple[float, ...]
    mean: NDArray[np.float64]        # (n_conc, 8)
    std: NDArray[np.float64]         # (n_conc, 8)
    quantiles: NDArray[np.float64]   # (n_levels, n_conc, 8)
    marginals: NDArray[np.float64]   # (n_conc, 3) recomputed from the pooled mean
    atypical: NDArray[np.float64]    # (n_conc,) pooled mean atypical mass


def pooled_summary(
    samples: NDArray[np.float64],
    quantiles: Sequence[float] = (0.05, 0.5, 0.95),
) -> PooledSummary:
    """Per-concentration mean, spread and quantiles of every configuration."""
    X = np.asarray(samples, dtype=float)
    if X.ndim != 3:
        raise ValueError(f"samples must have shape (n_conc, n, 8), got {X.shape}")
    mean = X.mean(axis=1)
    return PooledSummary(
        levels=tuple(float(q) for q in quantiles),
        mean=mean,
        std=X.std(axis=1),
        quantiles=np.quantile(X, list(quantiles), axis=1),
        marginals=site_marginals(mean),
        atypical=atypical_mass(X).mean(axis=1),
    )
