"""Site binding model: calcium concentration -> per-site occupancy.

Each of the three linker sites binds calcium independently of the others
according to a saturating (Hill) law

    h_s(c) = c^n / (c^n + K_s^n)

so that h_s = 1/2 at c = K_s, h_s -> 0 as c -> 0 and h_s -> 1 as c -> inf.
With n = 1 this is the simple hyperbolic (Langmuir) isotherm.

Site 3 is the high-affinity site: the usual ordering is K1 >= K2 >= K3.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .errors import InvalidParametersError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BindingParameters:
    """Dissociation constants and the atypical-mass bound for one run.

    Shapes/units:
      K1, K2, K3: dissociation constants (same unit as the concentrations)
      tau: upper bound on the summed probability of atypical configurations
      hill: Hill coefficient of each site's binding law
    """

    K1: float
    K2: float
    K3: float
    tau: float
    hill: float = 1.0

    def __post_init__(self):
        for name in ("K1", "K2", "K3", "tau", "hill"):
            value = float(getattr(self, name))
            if not np.isfinite(value):
                raise InvalidParametersError(f"{name} must be finite, got {value}")
            object.__setattr__(self, name, value)

        for name in ("K1", "K2", "K3"):
            if getattr(self, name) <= 0.0:
                raise InvalidParametersError(
                    f"dissociation constant {name} must be positive, got {getattr(self, name)}"
                )
        if self.hill <= 0.0:
            raise InvalidParametersError(f"hill must be positive, got {self.hill}")
        if not 0.0 < self.tau < 1.0:
            raise InvalidParametersError(f"tau must lie in (0, 1), got {self.tau}")

        if not (self.K1 >= self.K2 >= self.K3):
            logger.warning(
                "dissociation constants are not affinity-ordered (K1=%g, K2=%g, K3=%g)",
                self.K1, self.K2, self.K3,
            )

    @property
    def Kd(self) -> NDArray[np.float64]:
        return np.array([self.K1, self.K2, self.K3])


def site_occupancy(c: float | NDArray[np.float64], K: float, hill: float = 1.0) -> NDArray[np.float64]:
    """Occupancy probability of a single site with dissociation constant K."""
    if K <= 0.0:
        raise InvalidParametersError(f"dissociation constant must be positive, got {K}")
    if hill <= 0.0:
        raise InvalidParametersError(f"hill must be positive, got {hill}")
    c = np.asarray(c, dtype=float)
    if np.any(c < 0.0) or not np.all(np.isfinite(c)):
        raise InvalidParametersError("concentrations must be finite and non-negative")

    # 1/(1 + (K/c)^n) stays finite for large c; c = 0 maps to 0
    with np.errstate(divide="ignore", over="ignore"):
        return np.where(c > 0.0, 1.0 / (1.0 + (K / c) ** hill), 0.0)


def marginals(c: float, params: BindingParameters) -> NDArray[np.float64]:
    """Return (h1, h2, h3) at concentration c."""
    return np.array([
        float(site_occupancy(c, K, params.hill)) for K in (params.K1, params.K2, params.K3)
    ])


def concentration_grid(values: Sequence[float] | NDArray[np.float64]) -> NDArray[np.float64]:
    """Validate a concentration grid and return it as a float array."""
    grid = np.atleast_1d(np.asarray(values, dtype=float))
    if grid.ndim != 1:
        raise InvalidParametersError(f"concentration grid must be 1-D, got shape {grid.shape}")
    if grid.size == 0:
        raise InvalidParametersError("concentration grid is empty")
    if np.any(grid < 0.0) or not np.all(np.isfinite(grid)):
        raise InvalidParametersError("concentrations must be finite and non-negative")
    return grid


def marginals_grid(
    grid: Sequence[float] | NDArray[np.float64],
    params: BindingParameters,
) -> NDArray[np.float64]:
    """Vectorised marginals over a concentration grid: (n_conc,) -> (n_conc, 3)."""
    c = concentration_grid(grid)
    return np.stack(
        [site_occupancy(c, K, params.hill) for K in (params.K1, params.K2, params.K3)],
        axis=1,
    )
