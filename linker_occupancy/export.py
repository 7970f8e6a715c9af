"""Flat tabular exchange of the pooled sample array.

Layout of the flat table (shape (8 * n, n_conc)):
  rows: configuration-major blocks, row k * n + s holds sample s of
        configuration k (samples are chain-major within a block)
  columns: one per concentration

The CSV form writes the concentrations as the header line and every value
with 17 significant digits, so save_csv() / load_csv() round-trip exactly.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from .utils import N_CONFIGS


def to_flat_table(samples: NDArray[np.float64]) -> NDArray[np.float64]:
    """(n_conc, n, 8) sample array -> (8 * n, n_conc) table."""
    X = np.asarray(samples, dtype=float)
    if X.ndim != 3 or X.shape[2] != N_CONFIGS:
        raise ValueError(f"samples must have shape (n_conc, n, {N_CONFIGS}), got {X.shape}")
    n_conc, n, K = X.shape
    return X.transpose(2, 1, 0).reshape(K * n, n_conc)


def from_flat_table(table: NDArray[np.float64]) -> NDArray[np.float64]:
    """(8 * n, n_conc) table -> (n_conc, n, 8) sample array."""
    T = np.asarray(table, dtype=float)
    if T.ndim != 2 or T.shape[0] % N_CONFIGS != 0:
        raise ValueError(f"table must have shape ({N_CONFIGS} * n, n_conc), got {T.shape}")
    n = T.shape[0] // N_CONFIGS
    return T.reshape(N_CONFIGS, n, T.shape[1]).transpose(2, 1, 0).copy()


def save_csv(path: str | Path, samples: NDArray[np.float64], concentrations: NDArray[np.float64]) -> Path:
    """Write the flat table with a header line of concentrations."""
    conc = np.atleast_1d(np.asarray(concentrations, dtype=float))
    table = to_flat_table(samples)
    if conc.shape != (table.shape[1],):
        raise ValueError(f"expected {table.shape[1]} concentrations, got {conc.shape}")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    header = ",".join(f"{c:.17g}" for c in conc)
    np.savetxt(path, table, delimiter=",", fmt="%.17g", header=header, comments="")
    return path


def load_csv(path: str | Path) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Read a table written by save_csv(); returns (samples, concentrations)."""
    path = Path(path)
    with path.open() as f:
        header = f.readline().strip()
    conc = np.array([float(x) for x in header.split(",")])
    table = np.loadtxt(path, delimiter=",", skiprows=1, ndmin=2)
    return from_flat_table(table), conc
