"""Test bundle-level aggregation of pooled linker samples."""

from __future__ import annotations

import numpy as np
import pytest

from linker_occupancy.affinity import BindingParameters
from linker_occupancy.bundle import bound_calcium, bundle_grid, bundle_occupancy
from linker_occupancy.constraints import polytope_at
from linker_occupancy.errors import InvalidParametersError
from linker_occupancy.sampler import sample_chain
from linker_occupancy.utils import config_index


def _point_pool(values: dict[str, float], n: int = 10) -> np.ndarray:
    p = np.zeros(8)
    for label, v in values.items():
        p[config_index(label)] = v
    return np.tile(p, (n, 1))


def test_fixed_vector_is_binomial():
    pool = _point_pool({"000": 0.7, "011": 0.3})
    s = bundle_occupancy(pool, 10, 5, "011", 40000, np.random.default_rng(0))
    N = 50
    assert s.n_linkers == N
    assert s.mean == pytest.approx(N * 0.3, abs=0.1)
    assert s.variance == pytest.approx(N * 0.3 * 0.7, rel=0.05)
    assert s.parameter_variance == pytest.approx(0.0, abs=1e-12)
    assert s.occupancy_variance == pytest.approx(N * 0.3 * 0.7)
    assert s.expected_mean == pytest.approx(N * 0.3)


def test_total_variance_decomposition():
    pool = np.vstack([_point_pool({"000": 0.9, "111": 0.1}), _point_pool({"000": 0.5, "111": 0.5})])
    s = bundle_occupancy(pool, 4, 5, "111", 60000, np.random.default_rng(1))
    # Var(20 p) with p in {0.1, 0.5} equally likely = 400 * 0.04
    assert s.parameter_variance == pytest.approx(16.0, rel=0.03)
    # E[20 p (1 - p)] = 20 * (0.09 + 0.25) / 2
    assert s.occupancy_variance == pytest.approx(3.4, rel=0.03)
    assert s.variance == pytest.approx(s.parameter_variance + s.occupancy_variance, rel=0.05)


def test_mean_converges_to_pooled_mean():
    params = BindingParameters(K1=71.4, K2=44.3, K3=3.45, tau=0.375)
    pool = sample_chain(polytope_at(20.0, params), 2000, 100, np.random.default_rng(4))
    NM, NL = 8, 3
    for target in ("000", "001", "011", "110"):
        s = bundle_occupancy(pool, NM, NL, target, 50000, np.random.default_rng(5))
        expected = NM * NL * pool[:, config_index(target)].mean()
        assert s.expected_mean == pytest.approx(expected)
        assert s.mean == pytest.approx(expected, abs=0.05 + 0.02 * expected)


def test_normalized_fraction():
    pool = _point_pool({"000": 0.6, "001": 0.4})
    raw = bundle_occupancy(pool, 5, 2, "001", 1000, np.random.default_rng(9))
    frac = bundle_occupancy(pool, 5, 2, "001", 1000, np.random.default_rng(9), normalize=True)
    assert frac.mean == pytest.approx(raw.mean / 10)
    assert frac.variance == pytest.approx(raw.variance / 100)


def test_deterministic_given_stream():
    pool = np.random.default_rng(3).dirichlet(np.ones(8), size=100)
    a = bundle_occupancy(pool, 6, 4, 3, 500, np.random.default_rng(12))
    b = bundle_occupancy(pool, 6, 4, 3, 500, np.random.default_rng(12))
    assert a == b


def test_bound_calcium():
    full = _point_pool({"111": 1.0})
    s = bound_calcium(full, 5, 4, 200, np.random.default_rng(0))
    assert s.mean == 60.0
    assert s.variance == 0.0

    half = _point_pool({"000": 0.5, "011": 0.5})
    s = bound_calcium(half, 5, 4, 20000, np.random.default_rng(1))
    # 20 linkers, each 0 or 2 bound sites with equal probability
    assert s.expected_mean == pytest.approx(20.0)
    assert s.mean == pytest.approx(20.0, abs=0.2)
    assert s.variance == pytest.approx(20 * 1.0, rel=0.05)


def test_bundle_grid():
    rng = np.random.default_rng(2)
    samples = rng.dirichlet(np.ones(8), size=(3, 200))
    g1 = bundle_grid(samples, 4, 3, 300, targets=["000", "111"], seed=42)
    g2 = bundle_grid(samples, 4, 3, 300, targets=["000", "111"], seed=42)
    assert g1.targets == (0, 7)
    assert g1.mean.shape == (3, 2)
    assert g1.variance.shape == (3, 2)
    assert np.array_equal(g1.mean, g2.mean)
    assert g1.stats[1][0].mean == g1.mean[1, 0]

    g_all = bundle_grid(samples, 4, 3, 50, seed=1)
    assert g_all.mean.shape == (3, 8)


def test_invalid_inputs():
    pool = _point_pool({"000": 1.0})
    rng = np.random.default_rng(0)
    with pytest.raises(InvalidParametersError):
        bundle_occupancy(pool, 0, 3, "000", 10, rng)
    with pytest.raises(InvalidParametersError):
        bundle_occupancy(pool, 2, 3, "000", 0, rng)
    with pytest.raises(ValueError):
        bundle_occupancy(np.empty((0, 8)), 2, 3, "000", 10, rng)
    with pytest.raises(ValueError):
        bundle_occupancy(pool, 2, 3, "222", 10, rng)
