"""Split-chain Gelman-Rubin convergence diagnostic.

Given M chains of N samples each, every chain is split into two contiguous
halves of n = N // 2 samples, and the 2M halves are treated as independent
chains.  Per coordinate:

    W = mean of the within-half variances (ddof=1)
    B = n * variance of the half means (ddof=1)
    V = (n - 1)/n * W + B/n
    R = sqrt(V / W)

R close to 1 indicates the halves agree.  Identical halves give B = 0 and
R = sqrt((n - 1)/n), just below 1.  No threshold is enforced here;
flag_nonconvergence() is a helper for callers that want one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitChains:
    halves: NDArray[np.float64]  # (2M, n, K)
    dropped: int                 # trailing samples dropped per chain (0 or 1)


def split_chains(chains: NDArray[np.float64]) -> SplitChains:
    """Split (M, N, K) chains into (2M, N//2, K) halves."""
    x = np.asarray(chains, dtype=float)
    if x.ndim == 2:
        x = x[:, :, None]
    if x.ndim != 3:
        raise ValueError(f"chains must have shape (M, N, K), got {x.shape}")
    M, N, K = x.shape
    if M < 1:
        raise ValueError("need at least one chain")

    dropped = N % 2
    if dropped:
        logger.warning("odd chain length %d: dropping the final sample of each chain", N)
        x = x[:, :-1, :]
    n = x.shape[1] // 2
    if n < 2:
        raise ValueError(f"chains too short for a split-chain diagnostic (N={N})")

    halves = np.concatenate([x[:, :n, :], x[:, n:, :]], axis=0)
    return SplitChains(halves=halves, dropped=dropped)


def gelman_rubin(chains: NDArray[np.float64]) -> NDArray[np.float64]:
    """Split-chain Gelman-Rubin statistic per coordinate, (M, N, K) -> (K,)."""
    halves = split_chains(chains).halves
    n = halves.shape[1]

    means = halves.mean(axis=1)               # (2M, K)
    W = halves.var(axis=1, ddof=1).mean(axis=0)
    B = n * means.var(axis=0, ddof=1)

    V = (n - 1) / n * W + B / n
    with np.errstate(divide="ignore", invalid="ignore"):
        R = np.sqrt(V / W)

    # constant coordinates: halves agree exactly (R = 1) or not at all (R = inf)
    flat = W <= 0.0
    R[flat] = np.where(B[flat] <= 0.0, 1.0, np.inf)
    return R


def gelman_rubin_grid(chains_per_conc: Sequence[NDArray[np.float64]]) -> NDArray[np.float64]:
    """Gelman-Rubin per concentration: list of (M, N, K) -> (n_conc, K)."""
    return np.stack([gelman_rubin(ch) for ch in chains_per_conc])


@dataclass(frozen=True)
class RhatSummary:
    levels: tuple[float, ...]
    minimum: NDArray[np.float64]    # (K,)
    quantiles: NDArray[np.float64]  # (n_levels, K)
    maximum: NDArray[np.float64]    # (K,)


def summarize_rhat(
    rhat: NDArray[np.float64],
    quantiles: Sequence[float] = (0.25, 0.5, 0.75),
) -> RhatSummary:
    """Aggregate (n_conc, K) statistics across the concentration grid."""
    r = np.atleast_2d(np.asarray(rhat, dtype=float))
    return RhatSummary(
        levels=tuple(float(q) for q in quantiles),
        minimum=r.min(axis=0),
        quantiles=np.quantile(r, list(quantiles), axis=0),
        maximum=r.max(axis=0),
    )


def flag_nonconvergence(rhat: NDArray[np.float64], threshold: float = 1.1) -> NDArray[np.bool_]:
    """Mask of statistics above threshold (or non-finite); logs a warning if any."""
    r = np.asarray(rhat, dtype=float)
    mask = ~np.isfinite(r) | (r > threshold)
    if np.any(mask):
        logger.warning(
            "%d of %d Gelman-Rubin statistics exceed %.3g; consider more samples",
            int(mask.sum()), mask.size, threshold,
        )
    return mask
