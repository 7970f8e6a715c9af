"""Feasible polytope of linker occupancy distributions.

For site marginals h = (h1, h2, h3) and atypical-mass bound tau, the
admissible probability vectors p (8,) are

    A_eq p = b_eq          (sum p = 1, p(1**) = h1, p(*1*) = h2, p(**1) = h3)
    a^T p <= tau           (a: indicator of atypical configurations)
    p >= 0

Feasibility is decided by a linear program before any sampling: the
minimum atypical mass compatible with the equalities must not exceed tau.
A second linear program finds a point that maximises the smallest slack over
all inequalities, used as the sampler's starting state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import linprog

from .affinity import BindingParameters, marginals
from .errors import InfeasiblePolytopeError, InvalidParametersError
from .transfers import equality_matrix, transfer_basis
from .utils import ATOL, ATYPICAL_MASK, N_CONFIGS


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeasiblePolytope:
    h: NDArray[np.float64]           # (3,) site marginals
    tau: float
    A_eq: NDArray[np.float64]        # (4, 8)
    b_eq: NDArray[np.float64]        # (4,)
    atypical: NDArray[np.float64]    # (8,) 0/1 indicator
    directions: NDArray[np.float64]  # (r, 8) transfer basis, A_eq d = 0
    start: NDArray[np.float64]       # (8,) feasible starting state
    slack: float                     # smallest inequality slack at start
    min_atypical: float              # smallest achievable atypical mass
    concentration: float | None = None

    def residuals(self, p: NDArray[np.float64]) -> NDArray[np.float64]:
        """Equality residuals A_eq p - b_eq for vector(s) (..., 8)."""
        return np.asarray(p, dtype=float) @ self.A_eq.T - self.b_eq

    def contains(self, p: NDArray[np.float64], *, atol: float = ATOL) -> bool:
        p = np.asarray(p, dtype=float)
        return bool(
            np.all(p >= -atol)
            and np.all(np.abs(self.residuals(p)) <= atol)
            and np.all(p @ self.atypical <= self.tau + atol)
        )


def equality_system(h: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Return (A_eq, b_eq) for marginals h."""
    h = np.asarray(h, dtype=float)
    if h.shape != (3,):
        raise InvalidParametersError(f"marginals must have shape (3,), got {h.shape}")
    if not np.all(np.isfinite(h)) or np.any(h < 0.0) or np.any(h > 1.0):
        raise InvalidParametersError(f"marginals must lie in [0, 1], got {h.tolist()}")
    return equality_matrix(), np.concatenate([[1.0], h])


def min_atypical_mass(h: NDArray[np.float64]) -> float:
    """Smallest atypical mass over all non-negative p with the given marginals."""
    A_eq, b_eq = equality_system(h)
    res = linprog(
        ATYPICAL_MASK.astype(float),
        A_eq=A_eq, b_eq=b_eq,
        bounds=(0.0, None),
        method="highs",
    )
    if not res.success:
        raise InfeasiblePolytopeError(
            f"equality system admits no non-negative solution for h={np.round(h, 6).tolist()}: "
            f"{res.message}",
            marginals=np.asarray(h, dtype=float),
        )
    return max(float(res.fun), 0.0)


def _project(p: NDArray[np.float64], A_eq: NDArray[np.float64], b_eq: NDArray[np.float64]) -> NDArray[np.float64]:
    """Least-squares correction of p onto {A_eq p = b_eq}, clipped to p >= 0."""
    p = p - np.linalg.pinv(A_eq) @ (A_eq @ p - b_eq)
    return np.clip(p, 0.0, None)


def interior_point(
    A_eq: NDArray[np.float64],
    b_eq: NDArray[np.float64],
    atypical: NDArray[np.float64],
    tau: float,
) -> tuple[NDArray[np.float64], float]:
    """Maximise r subject to p_i >= r, a^T p + r <= tau, A_eq p = b_eq.

    Returns (p, r).  r = 0 means the polytope has no interior in its affine
    hull (e.g. c = 0 pins p to the all-empty configuration).
    """
    n = A_eq.shape[1]
    c = np.zeros(n + 1)
    c[-1] = -1.0

    # -p_i + r <= 0 ; a^T p + r <= tau
    A_ub = np.zeros((n + 1, n + 1))
    A_ub[:n, :n] = -np.eye(n)
    A_ub[:n, -1] = 1.0
    A_ub[n, :n] = atypical
    A_ub[n, -1] = 1.0
    b_ub = np.concatenate([np.zeros(n), [tau]])

    A_eq_ext = np.hstack([A_eq, np.zeros((A_eq.shape[0], 1))])
    res = linprog(
        c, A_ub=A_ub, b_ub=b_ub,
        A_eq=A_eq_ext, b_eq=b_eq,
        bounds=[(0.0, None)] * n + [(0.0, 1.0)],
        method="highs",
    )
    if not res.success:
        raise InfeasiblePolytopeError(
            f"no feasible starting point: {res.message}", tau=tau,
        )
    p = _project(np.asarray(res.x[:n], dtype=float), A_eq, b_eq)
    return p, float(res.x[-1])


def build_polytope(
    h: NDArray[np.float64],
    tau: float,
    *,
    concentration: float | None = None,
) -> FeasiblePolytope:
    """Build the constraint system for marginals h and bound tau.

    Raises InfeasiblePolytopeError when no admissible vector exists.  This is
    decided here, before any sampling.
    """
    tau = float(tau)
    if not np.isfinite(tau) or tau < 0.0:
        raise InvalidParametersError(f"tau must be non-negative, got {tau}")

    A_eq, b_eq = equality_system(h)
    h = b_eq[1:].copy()

    try:
        m = min_atypical_mass(h)
    except InfeasiblePolytopeError as e:
        e.tau = tau
        e.concentration = concentration
        raise
    if m > tau + ATOL:
        raise InfeasiblePolytopeError(
            f"marginals h={np.round(h, 6).tolist()} force atypical mass >= {m:.6g} "
            f"> tau={tau:.6g}"
            + (f" at concentration {concentration:g}" if concentration is not None else ""),
            marginals=h, tau=tau, min_atypical=m, concentration=concentration,
        )

    atypical = ATYPICAL_MASK.astype(float)
    start, slack = interior_point(A_eq, b_eq, atypical, tau)
    logger.debug(
        "polytope at c=%s: h=%s min_atypical=%.3g start slack=%.3g",
        concentration, np.round(h, 6).tolist(), m, slack,
    )

    return FeasiblePolytope(
        h=h,
        tau=tau,
        A_eq=A_eq,
        b_eq=b_eq,
        atypical=atypical,
        directions=transfer_basis(),
        start=start,
        slack=slack,
        min_atypical=m,
        concentration=concentration,
    )


def polytope_at(c: float, params: BindingParameters) -> FeasiblePolytope:
    """Feasible polytope at concentration c for the given binding parameters."""
    return build_polytope(marginals(c, params), params.tau, concentration=float(c))


def coordinate_ranges(polytope: FeasiblePolytope) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Per-configuration (min, max) over the polytope, one LP pair per entry."""
    lo = np.zeros(N_CONFIGS)
    hi = np.zeros(N_CONFIGS)
    A_ub = polytope.atypical.reshape(1, -1)
    b_ub = np.array([polytope.tau])
    for i in range(N_CONFIGS):
        c = np.zeros(N_CONFIGS)
        c[i] = 1.0
        for sign, out in ((1.0, lo), (-1.0, hi)):
            res = linprog(
                sign * c, A_ub=A_ub, b_ub=b_ub,
                A_eq=polytope.A_eq, b_eq=polytope.b_eq,
                bounds=(0.0, None),
                method="highs",
            )
            if not res.success:
                raise InfeasiblePolytopeError(
                    f"range LP failed for configuration {i}: {res.message}",
                    marginals=polytope.h, tau=polytope.tau,
                    concentration=polytope.concentration,
                )
            out[i] = res.x[i]
    return lo, hi
