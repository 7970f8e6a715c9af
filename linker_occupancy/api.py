"""Public API for sampling linker occupancy over a concentration grid.

Standardized input:
- BindingParameters (K1, K2, K3, tau[, hill])
- concentration grid (1-D, non-negative)
- RunConfig (samples after burn-in, burn-in, chains, thinning, seed policy)

This module defines:
- RunConfig dataclass
- ConcentrationResult / GridResult dataclasses
- run_concentration(): one concentration, all chains
- run_grid() entrypoint

Concentrations are independent tasks: each gets its own SeedSequence child
and each of its chains a grandchild, so results do not depend on execution
order or on the number of worker processes.  Errors are isolated per
concentration (InfeasiblePolytopeError) and per chain (DegenerateStepError)
and reported, never replaced by defaults.
"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .affinity import BindingParameters, concentration_grid, marginals
from .constraints import build_polytope
from .diagnostics import gelman_rubin
from .errors import DegenerateStepError, InvalidParametersError, OccupancyError
from .sampler import sample_chains


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunConfig:
    n_samples: int = 12500          # post-burn-in samples per chain
    burn_in: int = 2500             # emitted samples discarded per chain
    n_chains: int = 4
    thin: int = 1                   # sweeps per emitted sample
    seed: int | None = None         # None: fresh entropy, recorded in the result
    max_workers: int = 1            # > 1: concentrations run in a process pool
    shuffle_directions: bool = False

    def __post_init__(self):
        for name, minimum in (("n_samples", 4), ("burn_in", 0), ("n_chains", 1),
                              ("thin", 1), ("max_workers", 1)):
            v = getattr(self, name)
            if int(v) != v or v < minimum:
                raise InvalidParametersError(f"{name} must be an integer >= {minimum}, got {v}")
            object.__setattr__(self, name, int(v))


@dataclass(frozen=True)
class ChainSeed:
    entropy: int
    spawn_key: tuple[int, ...]

    def sequence(self) -> np.random.SeedSequence:
        return np.random.SeedSequence(self.entropy, spawn_key=self.spawn_key)


@dataclass(frozen=True)
class ConcentrationResult:
    index: int
    concentration: float
    marginals: NDArray[np.float64]            # (3,)
    chain_seeds: tuple[ChainSeed, ...]
    chains: NDArray[np.float64] | None = None  # (n_ok, n_samples, 8)
    chain_indices: tuple[int, ...] = ()
    rhat: NDArray[np.float64] | None = None    # (8,)
    error: OccupancyError | None = None
    chain_errors: dict[int, DegenerateStepError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.chain_errors

    @property
    def pooled(self) -> NDArray[np.float64]:
        """Post-burn-in samples of all surviving chains, chain-major."""
        if self.chains is None:
            raise self.error or OccupancyError(f"no samples at concentration {self.concentration:g}")
        return self.chains.reshape(-1, self.chains.shape[-1])


def run_concentration(
    params: BindingParameters,
    c: float,
    config: RunConfig,
    seed: np.random.SeedSequence,
    *,
    index: int = 0,
) -> ConcentrationResult:
    """Build the polytope at c and run all chains with streams spawned from seed."""
    h = marginals(c, params)
    chain_ss = seed.spawn(config.n_chains)
    chain_seeds = tuple(ChainSeed(int(s.entropy), tuple(s.spawn_key)) for s in chain_ss)

    try:
        polytope = build_polytope(h, params.tau, concentration=float(c))
    except OccupancyError as e:
        logger.error("concentration %d (c=%g) skipped: %s", index, c, e)
        return ConcentrationResult(
            index=index, concentration=float(c), marginals=h, chain_seeds=chain_seeds, error=e,
        )

    batch = sample_chains(
        polytope, config.n_samples, config.burn_in, chain_ss,
        thin=config.thin, shuffle_directions=config.shuffle_directions,
    )
    if not batch.chain_indices:
        return ConcentrationResult(
            index=index, concentration=float(c), marginals=h, chain_seeds=chain_seeds,
            error=OccupancyError(f"all {config.n_chains} chains aborted at concentration {c:g}"),
            chain_errors=batch.errors,
        )

    return ConcentrationResult(
        index=index,
        concentration=float(c),
        marginals=h,
        chain_seeds=chain_seeds,
        chains=batch.samples,
        chain_indices=batch.chain_indices,
        rhat=gelman_rubin(batch.samples),
        chain_errors=batch.errors,
    )


@dataclass(frozen=True)
class GridResult:
    params: BindingParameters
    config: RunConfig
    concentrations: NDArray[np.float64]        # (n_conc,)
    results: tuple[ConcentrationResult, ...]   # ordered by concentration index
    entropy: int                               # root SeedSequence entropy

    @property
    def errors(self) -> dict[int, OccupancyError]:
        return {r.index: r.error for r in self.results if r.error is not None}

    @property
    def chain_errors(self) -> dict[tuple[int, int], DegenerateStepError]:
        return {(r.index, j): e for r in self.results for j, e in r.chain_errors.items()}

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    def _require_ok(self) -> None:
        if self.ok:
            return
        failed = sorted({i for i in self.errors} | {i for i, _ in self.chain_errors})
        raise OccupancyError(
            f"sampling failed at concentration indices {failed}; "
            "inspect GridResult.errors / GridResult.chain_errors"
        )

    @property
    def samples(self) -> NDArray[np.float64]:
        """Pooled samples (n_conc, n_chains * n_samples, 8)."""
        self._require_ok()
        return np.stack([r.pooled for r in self.results])

    @property
    def rhat(self) -> NDArray[np.float64]:
        """Gelman-Rubin statistics (n_conc, 8)."""
        self._require_ok()
        return np.stack([r.rhat for r in self.results])


def run_grid(
    params: BindingParameters,
    grid: Sequence[float] | NDArray[np.float64],
    config: RunConfig | None = None,
) -> GridResult:
    """Sample every concentration of the grid.

    Returns:
      GridResult
    """
    config = RunConfig() if config is None else config
    conc = concentration_grid(grid)

    root = np.random.SeedSequence(config.seed)
    children = root.spawn(conc.size)
    logger.info(
        "sampling %d concentrations x %d chains x %d samples (burn-in %d, entropy %d)",
        conc.size, config.n_chains, config.n_samples, config.burn_in, root.entropy,
    )

    results: list[ConcentrationResult] = []
    if config.max_workers > 1 and conc.size > 1:
        with ProcessPoolExecutor(max_workers=config.max_workers) as executor:
            futures = [
                executor.submit(run_concentration, params, float(c), config, children[i], index=i)
                for i, c in enumerate(conc)
            ]
            for fut in as_completed(futures):
                results.append(fut.result())
        results.sort(key=lambda r: r.index)
    else:
        for i, c in enumerate(conc):
            results.append(run_concentration(params, float(c), config, children[i], index=i))

    return GridResult(
        params=params,
        config=config,
        concentrations=conc,
        results=tuple(results),
        entropy=int(root.entropy),
    )
