"""Test the polytope Gibbs sampler.

Key tests:
- Every sampled vector satisfies non-negativity, normalisation, the three
  marginal equalities and the tau bound (scenario K1=71.4, K2=44.3,
  K3=3.45, tau=0.375, c=20, four chains)
- Pooled chain moments match rejection sampling from the uniform density
- Bit-identical output for identical seeds
- Degenerate intervals abort the chain with a diagnosable error
- A failing chain does not affect the other chains
"""

from __future__ import annotations

import numpy as np
import pytest
from scipy.linalg import null_space

from linker_occupancy.affinity import BindingParameters, marginals
from linker_occupancy.constraints import build_polytope, coordinate_ranges, polytope_at
from linker_occupancy.errors import DegenerateStepError
from linker_occupancy.sampler import (
    PolytopeGibbsSampler,
    sample_chain,
    sample_chains,
    transfer_interval,
)
from linker_occupancy.utils import ATOL, atypical_mass, config_index, site_marginals
from linker_occupancy.vertices import enumerate_vertices, vertex_ranges


PARAMS = BindingParameters(K1=71.4, K2=44.3, K3=3.45, tau=0.375)
EPS = 1e-9


@pytest.fixture(scope="module")
def scenario():
    poly = polytope_at(20.0, PARAMS)
    seeds = np.random.SeedSequence(2024).spawn(4)
    batch = sample_chains(poly, 1500, 200, seeds)
    return poly, batch


def test_scenario_constraints_hold(scenario):
    poly, batch = scenario
    X = batch.samples
    assert X.shape == (4, 1500, 8)
    assert batch.chain_indices == (0, 1, 2, 3)
    assert not batch.errors

    P = X.reshape(-1, 8)
    assert np.all(P >= -EPS)
    assert np.allclose(P.sum(axis=1), 1.0, atol=EPS)
    assert np.allclose(site_marginals(P), marginals(20.0, PARAMS), atol=EPS)
    assert np.all(atypical_mass(P) <= PARAMS.tau + EPS)


def test_chains_move_and_stay_in_range(scenario):
    poly, batch = scenario
    P = batch.samples.reshape(-1, 8)
    lo, hi = vertex_ranges(enumerate_vertices(poly))
    assert np.allclose((lo, hi), coordinate_ranges(poly), atol=1e-7)
    assert np.all(P >= lo - 1e-7)
    assert np.all(P <= hi + 1e-7)
    # not stuck at the starting point
    assert np.all(P.std(axis=0)[hi - lo > 1e-6] > 0.0)


def test_stationary_distribution_is_uniform():
    poly = polytope_at(20.0, PARAMS)
    seeds = np.random.SeedSequence(31).spawn(4)
    gibbs = sample_chains(poly, 5000, 500, seeds).samples.reshape(-1, 8)

    # uniform draws in orthonormal coordinates of the equality slice, kept
    # when they satisfy the inequalities
    N = null_space(poly.A_eq)                       # (8, 4)
    Z = (enumerate_vertices(poly) - poly.start) @ N
    rng = np.random.default_rng(5)
    z = rng.uniform(Z.min(axis=0), Z.max(axis=0), size=(400_000, N.shape[1]))
    P = poly.start + z @ N.T
    keep = np.all(P >= 0.0, axis=1) & (atypical_mass(P) <= poly.tau)
    assert keep.sum() > 5000
    exact = P[keep]

    assert np.allclose(gibbs.mean(axis=0), exact.mean(axis=0), atol=0.01)
    assert np.allclose(gibbs.std(axis=0), exact.std(axis=0), atol=0.01)


def test_determinism():
    poly = polytope_at(20.0, PARAMS)
    a = sample_chain(poly, 300, 50, np.random.default_rng(7))
    b = sample_chain(poly, 300, 50, np.random.default_rng(7))
    c = sample_chain(poly, 300, 50, np.random.default_rng(8))
    assert np.array_equal(a, b)
    assert not np.array_equal(a, c)


def test_shuffled_directions_still_feasible():
    poly = polytope_at(60.0, PARAMS)
    X = sample_chain(poly, 400, 20, np.random.default_rng(3), shuffle_directions=True, thin=2)
    assert X.shape == (400, 8)
    assert np.allclose(site_marginals(X), marginals(60.0, PARAMS), atol=EPS)
    assert np.all(atypical_mass(X) <= PARAMS.tau + EPS)


def test_pinned_polytope_stays_put():
    poly = polytope_at(0.0, PARAMS)
    X = sample_chain(poly, 50, 5, np.random.default_rng(0))
    expected = np.zeros(8)
    expected[config_index("000")] = 1.0
    assert np.allclose(X, expected, atol=EPS)


def test_transfer_interval_hits_boundaries():
    poly = build_polytope(np.array([0.3, 0.45, 0.7]), 0.2)
    p = poly.start
    for d in poly.directions:
        lo, hi = transfer_interval(p, d, poly.atypical, poly.tau)
        assert lo < 0.0 < hi
        for t in (lo, hi):
            q = p + t * d
            assert np.all(q >= -ATOL)
            assert q @ poly.atypical <= poly.tau + ATOL
        # one of the constraints is active at each end
        for t in (lo, hi):
            q = p + t * d
            active = np.min(np.abs(q)) < 1e-9 or abs(q @ poly.atypical - poly.tau) < 1e-9
            assert active


def test_empty_interval_raises():
    poly = polytope_at(20.0, PARAMS)
    sampler = PolytopeGibbsSampler(poly)
    d = poly.directions[0]
    p = poly.start.copy()
    p[np.flatnonzero(d > 0)[0]] = -0.1   # needs t > 0
    p[np.flatnonzero(d < 0)[0]] = 0.0    # needs t <= 0
    with pytest.raises(DegenerateStepError) as info:
        sampler.step(p, 0, np.random.default_rng(0), chain=2, sweep=17)
    err = info.value
    assert err.chain == 2
    assert err.sweep == 17
    assert err.direction == 0
    assert err.concentration == pytest.approx(20.0)
    assert "chain=2" in str(err) and "sweep=17" in str(err)


def test_infeasible_start_raises():
    poly = polytope_at(20.0, PARAMS)
    sampler = PolytopeGibbsSampler(poly)
    with pytest.raises(DegenerateStepError):
        sampler.run(10, 0, np.random.default_rng(0), start=np.full(8, 1.0 / 8.0))


def test_failing_chain_is_isolated(monkeypatch):
    poly = polytope_at(20.0, PARAMS)
    original = PolytopeGibbsSampler.run

    def flaky_run(self, n_samples, burn_in, rng, *, chain=0, start=None):
        if chain == 1:
            raise DegenerateStepError("forced", chain=chain, sweep=0)
        return original(self, n_samples, burn_in, rng, chain=chain, start=start)

    monkeypatch.setattr(PolytopeGibbsSampler, "run", flaky_run)
    batch = sample_chains(poly, 40, 5, [1, 2, 3])
    assert batch.chain_indices == (0, 2)
    assert batch.samples.shape == (2, 40, 8)
    assert set(batch.errors) == {1}


def test_invalid_run_arguments():
    poly = polytope_at(20.0, PARAMS)
    with pytest.raises(ValueError):
        PolytopeGibbsSampler(poly, thin=0)
    with pytest.raises(ValueError):
        sample_chain(poly, 0, 10, np.random.default_rng(0))
    with pytest.raises(ValueError):
        sample_chain(poly, 10, -1, np.random.default_rng(0))
