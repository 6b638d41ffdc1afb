"""
Study Registration Feasibility Layer

Deterministic volunteer estimate and readiness check.
"""

from studyreg.feasibility.estimator import (
    DEFAULT_WEIGHTS,
    age_factor,
    coverage_factor,
    estimate,
    explain,
    site_radii,
)
from studyreg.feasibility.readiness import assess_readiness

__all__ = [
    "DEFAULT_WEIGHTS",
    "estimate",
    "explain",
    "age_factor",
    "site_radii",
    "coverage_factor",
    "assess_readiness",
]
