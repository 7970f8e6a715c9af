"""Bundle-level occupancy statistics from pooled linker samples.

A bundle holds N = NM * NL linkers (NM monomers, NL linker regions each).
Two-level sampling:
  1) outer: draw a linker probability vector p from the pooled posterior
  2) inner: given p, draw the bundle count  count ~ Binomial(N, p_target)

By the law of total variance

    Var(count) = Var(N p_target) + E[N p_target (1 - p_target)]
                 (parameter)        (occupancy)

Both terms are reported alongside the empirical mean and variance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidParametersError
from .utils import BOUND_SITES, N_CONFIGS, config_index


@dataclass(frozen=True)
class BundleStats:
    mean: float
    variance: float
    parameter_variance: float
    occupancy_variance: float
    expected_mean: float   # N * pooled mean, the large-S limit of mean
    n_linkers: int
    n_draws: int


def _check_sizes(NM: int, NL: int, S: int) -> int:
    for name, v in (("NM", NM), ("NL", NL), ("S", S)):
        if int(v) != v or v < 1:
            raise InvalidParametersError(f"{name} must be a positive integer, got {v}")
    return int(NM) * int(NL)


def _check_pool(pooled: NDArray[np.float64]) -> NDArray[np.float64]:
    pool = np.asarray(pooled, dtype=float)
    if pool.ndim != 2 or pool.shape[1] != N_CONFIGS:
        raise ValueError(f"pooled samples must have shape (n, {N_CONFIGS}), got {pool.shape}")
    if pool.shape[0] == 0:
        raise ValueError("pooled sample set is empty")
    return pool


def bundle_occupancy(
    pooled: NDArray[np.float64],
    NM: int,
    NL: int,
    target: str | int,
    S: int,
    rng: np.random.Generator,
    *,
    normalize: bool = False,
) -> BundleStats:
    """Mean/variance of the number of bundle linkers in configuration `target`.

    With normalize=True the count is divided by N (fraction of linkers).
    """
    N = _check_sizes(NM, NL, S)
    pool = _check_pool(pooled)
    k = config_index(target)

    p = pool[rng.integers(0, pool.shape[0], size=S), k]
    # clamp round-off so the binomial accepts it
    p = np.clip(p, 0.0, 1.0)
    counts = rng.binomial(N, p).astype(float)

    scale = float(N) if normalize else 1.0
    ddof = 1 if S > 1 else 0
    return BundleStats(
        mean=float(counts.mean()) / scale,
        variance=float(counts.var(ddof=ddof)) / scale ** 2,
        parameter_variance=float((N * p).var(ddof=ddof)) / scale ** 2,
        occupancy_variance=float(np.mean(N * p * (1.0 - p))) / scale ** 2,
        expected_mean=N * float(pool[:, k].mean()) / scale,
        n_linkers=N,
        n_draws=int(S),
    )


def bound_calcium(
    pooled: NDArray[np.float64],
    NM: int,
    NL: int,
    S: int,
    rng: np.random.Generator,
) -> BundleStats:
    """Mean/variance of the total number of calcium ions bound in the bundle.

    Inner draw: multinomial configuration counts over the N linkers; each
    linker contributes its number of bound sites.
    """
    N = _check_sizes(NM, NL, S)
    pool = _check_pool(pooled)

    P = pool[rng.integers(0, pool.shape[0], size=S)]
    P = np.clip(P, 0.0, None)
    P = P / P.sum(axis=1, keepdims=True)
    counts = rng.multinomial(N, P)                  # (S, 8)
    totals = (counts @ BOUND_SITES).astype(float)

    w = BOUND_SITES.astype(float)
    mu = P @ w                                      # mean sites per linker
    var_site = P @ (w ** 2) - mu ** 2

    ddof = 1 if S > 1 else 0
    return BundleStats(
        mean=float(totals.mean()),
        variance=float(totals.var(ddof=ddof)),
        parameter_variance=float((N * mu).var(ddof=ddof)),
        occupancy_variance=float(np.mean(N * var_site)),
        expected_mean=N * float((pool @ w).mean()),
        n_linkers=N,
        n_draws=int(S),
    )


@dataclass(frozen=True)
class BundleGrid:
    targets: tuple[int, ...]
    mean: NDArray[np.float64]       # (n_conc, n_targets)
    variance: NDArray[np.float64]   # (n_conc, n_targets)
    stats: tuple[tuple[BundleStats, ...], ...]


def bundle_grid(
    samples: NDArray[np.float64],
    NM: int,
    NL: int,
    S: int,
    *,
    targets: Sequence[str | int] | None = None,
    seed: int | np.random.SeedSequence | None = None,
    normalize: bool = False,
) -> BundleGrid:
    """Bundle statistics for every (concentration, target configuration).

    Each cell gets its own stream spawned from `seed`, so results do not
    depend on the order in which cells are evaluated.
    """
    X = np.asarray(samples, dtype=float)
    if X.ndim != 3:
        raise ValueError(f"samples must have shape (n_conc, n, 8), got {X.shape}")
    ks = tuple(config_index(t) for t in (range(N_CONFIGS) if targets is None else targets))

    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    children = root.spawn(X.shape[0] * len(ks))

    stats = []
    for i in range(X.shape[0]):
        row = []
        for j, k in enumerate(ks):
            rng = np.random.default_rng(children[i * len(ks) + j])
            row.append(bundle_occupancy(X[i], NM, NL, k, S, rng, normalize=normalize))
        stats.append(tuple(row))

    return BundleGrid(
        targets=ks,
        mean=np.array([[s.mean for s in row] for row in stats]),
        variance=np.array([[s.variance for s in row] for row in stats]),
        stats=tuple(stats),
    )
