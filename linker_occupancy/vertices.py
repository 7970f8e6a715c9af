"""Vertex enumeration of the feasible polytope via cddlib (pycddlib).

The feasible polytope is given in H-representation:
    p_i >= 0,  tau - a^T p >= 0,  A_eq p = b_eq

cddlib works with rows [b | A] meaning b + A x >= 0.  Equalities are encoded
as two opposite inequalities.  The V-representation of a bounded polytope
contains only points (leading 1), no rays.

The vertices give exact per-configuration ranges and a bounding box for
the polytope in any affine coordinates of its equality slice.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .constraints import FeasiblePolytope


def enumerate_vertices(
    polytope: FeasiblePolytope,
    *,
    tol: float = 1e-12,
) -> NDArray[np.float64]:
    """Return the vertices of the feasible polytope as rows of a (nV, 8) array."""

    try:
        import cdd  # pycddlib
    except Exception as e:
        raise ImportError(
            "pycddlib is required for enumerate_vertices. Install pycddlib and libcdd-dev."
        ) from e

    n = polytope.A_eq.shape[1]
    rows: list[list[float]] = []

    # p_i >= 0
    for i in range(n):
        a = np.zeros(n)
        a[i] = 1.0
        rows.append([0.0] + a.tolist())

    # tau - a^T p >= 0
    rows.append([polytope.tau] + (-polytope.atypical).tolist())

    # A_eq p - b_eq >= 0 and b_eq - A_eq p >= 0
    for sign in (+1.0, -1.0):
        for r in range(polytope.A_eq.shape[0]):
            rows.append([-sign * polytope.b_eq[r]] + (sign * polytope.A_eq[r]).tolist())

    mat = cdd.matrix_from_array(np.array(rows, dtype=float), rep_type=cdd.RepType.INEQUALITY)
    poly = cdd.polyhedron_from_matrix(mat)
    gen = cdd.copy_generators(poly)

    G = np.array(gen.array, dtype=float).reshape(-1, n + 1)

    verts = []
    for row in G:
        if abs(row[0] - 1.0) > tol:
            continue
        v = row[1:].copy()
        v[np.abs(v) < tol] = 0.0
        verts.append(v)

    uniq = {}
    for v in verts:
        uniq[tuple(np.round(v, 12))] = v

    return np.array(list(uniq.values()), dtype=float).reshape(-1, n)


def vertex_ranges(vertices: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Per-configuration (min, max) over the polytope from its vertices."""
    V = np.asarray(vertices, dtype=float)
    if V.size == 0:
        raise ValueError("no vertices")
    return V.min(axis=0), V.max(axis=0)
