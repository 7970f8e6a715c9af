"""Test the flat-table exchange of the sample array."""

from __future__ import annotations

import numpy as np
import pytest

from linker_occupancy.export import from_flat_table, load_csv, save_csv, to_flat_table


def _samples(n_conc=3, n=5):
    return np.random.default_rng(0).dirichlet(np.ones(8), size=(n_conc, n))


def test_configuration_major_layout():
    X = _samples()
    T = to_flat_table(X)
    assert T.shape == (8 * 5, 3)
    for c in range(3):
        for s in range(5):
            for k in range(8):
                assert T[k * 5 + s, c] == X[c, s, k]
    assert np.array_equal(from_flat_table(T), X)


def test_csv_is_lossless(tmp_path):
    X = _samples()
    conc = np.array([0.1, 20.0, 1.0 / 3.0])
    path = save_csv(tmp_path / "out" / "samples.csv", X, conc)
    Y, conc2 = load_csv(path)
    assert np.array_equal(Y, X)
    assert np.array_equal(conc2, conc)


def test_single_concentration_round_trip(tmp_path):
    X = _samples(n_conc=1, n=4)
    path = save_csv(tmp_path / "one.csv", X, [20.0])
    Y, conc = load_csv(path)
    assert Y.shape == (1, 4, 8)
    assert np.array_equal(Y, X)
    assert conc.tolist() == [20.0]


def test_shape_errors():
    with pytest.raises(ValueError):
        to_flat_table(np.zeros((2, 3, 7)))
    with pytest.raises(ValueError):
        from_flat_table(np.zeros((9, 2)))
    with pytest.raises(ValueError):
        save_csv("unused.csv", _samples(), [1.0, 2.0])
