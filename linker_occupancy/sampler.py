"""Coordinate-direction Gibbs sampler on the feasible polytope.

The state is a probability vector p on the polytope.  Each step picks a
transfer direction d (A_eq d = 0) and replaces p by p + t d, with t drawn
uniformly from the closed-form interval of feasible moves:

    p_i + t d_i >= 0               for all i
    a^T p + t a^T d <= tau

Each step leaves the uniform distribution on the polytope invariant, and the
directions span the affine hull, so the chain targets the uniform
distribution over the feasible region.  A sweep visits every direction once;
one sample is emitted every `thin` sweeps.

After each sweep the equality residual is projected out and round-off
negatives are clamped, so the marginals do not drift over long runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .constraints import FeasiblePolytope
from .errors import DegenerateStepError
from .utils import ATOL


logger = logging.getLogger(__name__)


def transfer_interval(
    p: NDArray[np.float64],
    d: NDArray[np.float64],
    atypical: NDArray[np.float64],
    tau: float,
) -> tuple[float, float]:
    """Interval [lo, hi] of t such that p + t d stays feasible.

    Negative entries and tau overshoot within ATOL are treated as zero.
    Larger violations yield lo > hi.
    """
    p = np.where(np.abs(p) <= ATOL, np.maximum(p, 0.0), p)

    pos = d > 0
    neg = d < 0
    lo = float(np.max(-p[pos] / d[pos])) if np.any(pos) else -np.inf
    hi = float(np.min(-p[neg] / d[neg])) if np.any(neg) else np.inf

    ad = float(atypical @ d)
    slack = tau - float(atypical @ p)
    if -ATOL <= slack < 0.0:
        slack = 0.0
    if ad > 0:
        hi = min(hi, slack / ad)
    elif ad < 0:
        lo = max(lo, slack / ad)

    return lo, hi


class PolytopeGibbsSampler:
    """Gibbs sampler over one feasible polytope.

    Args:
        polytope: constraint system for one concentration
        thin: number of sweeps per emitted sample
        shuffle_directions: visit directions in a random order each sweep
    """

    def __init__(
        self,
        polytope: FeasiblePolytope,
        *,
        thin: int = 1,
        shuffle_directions: bool = False,
    ):
        if thin < 1:
            raise ValueError(f"thin must be >= 1, got {thin}")
        self.polytope = polytope
        self.thin = int(thin)
        self.shuffle_directions = bool(shuffle_directions)

        self._D = np.asarray(polytope.directions, dtype=float)
        self._a = np.asarray(polytope.atypical, dtype=float)
        self._tau = float(polytope.tau)
        self._A = polytope.A_eq
        self._b = polytope.b_eq
        self._A_pinv = np.linalg.pinv(polytope.A_eq)

    def _fail(self, message: str, *, chain: int, sweep: int, direction: int | None = None,
              interval: tuple[float, float] | None = None) -> DegenerateStepError:
        c = self.polytope.concentration
        where = f"concentration={c:g}, " if c is not None else ""
        return DegenerateStepError(
            f"{message} ({where}chain={chain}, sweep={sweep}"
            + (f", direction={direction}" if direction is not None else "")
            + (f", interval=[{interval[0]:.6g}, {interval[1]:.6g}]" if interval is not None else "")
            + ")",
            concentration=c, chain=chain, sweep=sweep, direction=direction, interval=interval,
        )

    def step(
        self,
        p: NDArray[np.float64],
        k: int,
        rng: np.random.Generator,
        *,
        chain: int = 0,
        sweep: int = 0,
    ) -> NDArray[np.float64]:
        """Resample the amount transferred along direction k."""
        d = self._D[k]
        lo, hi = transfer_interval(p, d, self._a, self._tau)
        if not (np.isfinite(lo) and np.isfinite(hi)):
            raise self._fail("unbounded transfer interval", chain=chain, sweep=sweep,
                             direction=k, interval=(lo, hi))
        if lo > hi + ATOL:
            raise self._fail("empty transfer interval", chain=chain, sweep=sweep,
                             direction=k, interval=(lo, hi))
        if hi - lo <= ATOL:
            # pinned along this direction
            t = 0.5 * (lo + hi)
        else:
            t = rng.uniform(lo, hi)
        return p + t * d

    def sweep(
        self,
        p: NDArray[np.float64],
        rng: np.random.Generator,
        *,
        chain: int = 0,
        sweep: int = 0,
    ) -> NDArray[np.float64]:
        """Update every transfer direction once, then re-derive p exactly."""
        order = rng.permutation(len(self._D)) if self.shuffle_directions else range(len(self._D))
        for k in order:
            p = self.step(p, int(k), rng, chain=chain, sweep=sweep)

        p = p - self._A_pinv @ (self._A @ p - self._b)
        if p.min() < -ATOL:
            raise self._fail(f"negative probability {p.min():.3g} after sweep",
                             chain=chain, sweep=sweep)
        if p.min() < 0.0:
            p = np.clip(p, 0.0, None)
            p = p / p.sum()
        return p

    def run(
        self,
        n_samples: int,
        burn_in: int,
        rng: np.random.Generator,
        *,
        chain: int = 0,
        start: NDArray[np.float64] | None = None,
    ) -> NDArray[np.float64]:
        """Run one chain; return the (n_samples, 8) post-burn-in samples."""
        if n_samples < 1:
            raise ValueError(f"n_samples must be >= 1, got {n_samples}")
        if burn_in < 0:
            raise ValueError(f"burn_in must be >= 0, got {burn_in}")

        p = np.array(self.polytope.start if start is None else start, dtype=float)
        if not self.polytope.contains(p):
            raise self._fail("starting state is not feasible", chain=chain, sweep=0)

        out = np.empty((n_samples, p.size))
        n_total = burn_in + n_samples
        s = 0
        for i in range(n_total):
            for _ in range(self.thin):
                p = self.sweep(p, rng, chain=chain, sweep=s)
                s += 1
            if i >= burn_in:
                out[i - burn_in] = p
        return out


@dataclass(frozen=True)
class ChainBatch:
    samples: NDArray[np.float64]      # (n_ok, n_samples, 8)
    chain_indices: tuple[int, ...]    # chain index of each row of samples
    errors: dict[int, DegenerateStepError] = field(default_factory=dict)


def sample_chain(
    polytope: FeasiblePolytope,
    n_samples: int,
    burn_in: int,
    rng: np.random.Generator,
    *,
    thin: int = 1,
    shuffle_directions: bool = False,
    chain: int = 0,
) -> NDArray[np.float64]:
    """Convenience wrapper: one chain of post-burn-in samples."""
    sampler = PolytopeGibbsSampler(polytope, thin=thin, shuffle_directions=shuffle_directions)
    return sampler.run(n_samples, burn_in, rng, chain=chain)


def sample_chains(
    polytope: FeasiblePolytope,
    n_samples: int,
    burn_in: int,
    seeds: Sequence[np.random.SeedSequence | int],
    *,
    thin: int = 1,
    shuffle_directions: bool = False,
) -> ChainBatch:
    """Run one independent chain per seed.

    Each chain owns its own generator.  A chain that hits a degenerate step
    is discarded and its error recorded; the other chains are unaffected.
    """
    sampler = PolytopeGibbsSampler(polytope, thin=thin, shuffle_directions=shuffle_directions)

    kept: list[NDArray[np.float64]] = []
    idx: list[int] = []
    errors: dict[int, DegenerateStepError] = {}
    for j, seed in enumerate(seeds):
        rng = np.random.default_rng(seed)
        try:
            kept.append(sampler.run(n_samples, burn_in, rng, chain=j))
            idx.append(j)
        except DegenerateStepError as e:
            logger.error("chain aborted: %s", e)
            errors[j] = e

    samples = np.stack(kept) if kept else np.empty((0, n_samples, polytope.A_eq.shape[1]))
    return ChainBatch(samples=samples, chain_indices=tuple(idx), errors=errors)
