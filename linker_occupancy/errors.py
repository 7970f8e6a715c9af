"""Error kinds raised by the occupancy sampler.

- InvalidParametersError: rejected at construction, before any compute
- InfeasiblePolytopeError: no admissible vector at one concentration
- DegenerateStepError: empty transfer interval inside one chain

Non-convergence is not an error; see diagnostics.flag_nonconvergence().
"""

from __future__ import annotations


class OccupancyError(Exception):
    """Base class for linker occupancy errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __reduce__(self):
        # keep attributes when results cross a process boundary
        return (self.__class__, (self.message,), self.__dict__)


class InvalidParametersError(OccupancyError, ValueError):
    pass


class InfeasiblePolytopeError(OccupancyError):
    """The equality system, non-negativity and the tau bound admit no solution."""

    def __init__(
        self,
        message: str,
        *,
        marginals=None,
        tau: float | None = None,
        min_atypical: float | None = None,
        concentration: float | None = None,
    ):
        super().__init__(message)
        self.marginals = marginals
        self.tau = tau
        self.min_atypical = min_atypical
        self.concentration = concentration


class DegenerateStepError(OccupancyError, RuntimeError):
    """A Gibbs transfer found an empty or non-finite interval mid-chain."""

    def __init__(
        self,
        message: str,
        *,
        concentration: float | None = None,
        chain: int | None = None,
        sweep: int | None = None,
        direction: int | None = None,
        interval: tuple[float, float] | None = None,
    ):
        super().__init__(message)
        self.concentration = concentration
        self.chain = chain
        self.sweep = sweep
        self.direction = direction
        self.interval = interval
