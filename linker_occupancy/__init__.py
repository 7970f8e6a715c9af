"""Occupancy of three-site calcium-binding linkers.

Core contract:
- inputs: dissociation constants K1 >= K2 >= K3, atypical-mass bound tau,
  a concentration grid
- workflow: site marginals -> feasible polytope (LP probe) -> Gibbs chains
  -> split-chain Gelman-Rubin -> pooled samples -> bundle statistics
"""

from .affinity import BindingParameters, marginals
from .api import RunConfig, GridResult, run_grid
from .errors import (
    OccupancyError,
    InvalidParametersError,
    InfeasiblePolytopeError,
    DegenerateStepError,
)
