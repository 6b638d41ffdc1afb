"""
Feasibility Estimator

Converts a researcher's recruitment criteria into an estimate of how many
registry volunteers would match them.

The estimate starts from a fixed nominal baseline and applies, in order:
    1. platform factor (JDR audience is narrower)
    2. age-band width factor
    3. specific-sex factor
    4. per-item subtraction for each selected criterion, floored at zero
    5. site coverage factor, min(1, average radius / reference radius)
    6. confirmed-diagnosis factor

The functions here are pure. They read nothing but their arguments, keep no
state between calls and never raise on malformed criteria: RecruitmentCriteria
sanitises its input before any arithmetic happens.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable

from studyreg.core.coerce import clamp
from studyreg.core.enums import AdjustmentKind, AgeMode, Platform, Sex
from studyreg.core.schemas import (
    Adjustment,
    AgeSelection,
    EstimateBreakdown,
    EstimateResult,
    RadiusCoverage,
    RecruitmentCriteria,
    Site,
    WeightTable,
)

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = WeightTable()

# (criteria field, WeightTable penalty field), applied in this order
_SUBTRACTIONS: tuple[tuple[str, str], ...] = (
    ("diagnoses", "penalty_diagnosis"),
    ("symptoms", "penalty_symptom"),
    ("demographic_tags", "penalty_demographic_tag"),
    ("medical_include", "penalty_medical_include"),
    ("medical_exclude", "penalty_medical_exclude"),
    ("disability_include", "penalty_disability_include"),
    ("disability_exclude", "penalty_disability_exclude"),
)


def age_factor(age: AgeSelection, weights: WeightTable = DEFAULT_WEIGHTS) -> float:
    """
    Width factor for the selected age band.

    No restriction, or a band at least as wide as the reference band, leaves
    the pool unchanged. Narrower bands scale by width / reference width,
    clamped into [floor, ceiling]. A preset or custom range that cannot be
    resolved takes the fallback factor.
    """
    if age.mode is AgeMode.ANY:
        return 1.0
    bounds = age.bounds()
    if bounds is None:
        return weights.age_factor_fallback
    width = bounds[1] - bounds[0]
    if width >= weights.reference_age_width:
        return 1.0
    return clamp(
        width / weights.reference_age_width,
        weights.age_factor_floor,
        weights.age_factor_ceiling,
    )


def clamp_radius(miles: float, weights: WeightTable = DEFAULT_WEIGHTS) -> float:
    return clamp(miles, weights.min_radius_miles, weights.max_radius_miles)


def site_radii(
    sites: Iterable[Site],
    default_radius: float | None = None,
    weights: WeightTable = DEFAULT_WEIGHTS,
) -> list[float]:
    """
    Effective coverage radius for every site.

    Radius sites use their own radius. Postcode sites, and radius sites whose
    radius is missing or 0, use the default radius. With no sites at all the
    result is the single default radius.
    """
    fallback = clamp_radius(default_radius or weights.default_radius_miles, weights)
    radii = []
    for site in sites:
        if isinstance(site.coverage, RadiusCoverage) and site.coverage.miles:
            radii.append(clamp_radius(site.coverage.miles, weights))
        else:
            radii.append(fallback)
    return radii or [fallback]


def coverage_factor(radii: list[float], weights: WeightTable = DEFAULT_WEIGHTS) -> float:
    """min(1, mean radius / reference radius)."""
    if not radii:
        return 1.0
    average = sum(radii) / len(radii)
    return min(1.0, average / weights.reference_radius_miles)


def _as_criteria(criteria: RecruitmentCriteria | dict[str, Any] | None) -> RecruitmentCriteria:
    if isinstance(criteria, RecruitmentCriteria):
        return criteria
    return RecruitmentCriteria.model_validate(criteria or {})


def explain(
    criteria: RecruitmentCriteria | dict[str, Any] | None,
    weights: WeightTable = DEFAULT_WEIGHTS,
) -> EstimateBreakdown:
    """
    Run the estimate and return every adjustment that changed the pool.

    Args:
        criteria: Criteria snapshot, or a raw dict to be sanitised first.
        weights: Weighting table.

    Returns:
        EstimateBreakdown whose result equals estimate(criteria, weights).
    """
    criteria = _as_criteria(criteria)
    available = weights.baseline_population
    pool = float(available)
    adjustments: list[Adjustment] = []

    def multiply(step: str, factor: float, always: bool = False) -> None:
        nonlocal pool
        if factor == 1.0 and not always:
            return
        pool *= factor
        adjustments.append(
            Adjustment(step=step, kind=AdjustmentKind.MULTIPLY, amount=factor, pool_after=pool)
        )

    if criteria.platform is Platform.JDR:
        multiply("platform", weights.jdr_factor)

    multiply("age", age_factor(criteria.age, weights))

    if criteria.sex is not Sex.ANY:
        multiply("sex", weights.specific_sex_factor)

    for field, penalty_field in _SUBTRACTIONS:
        count = len(getattr(criteria, field))
        if not count:
            continue
        amount = getattr(weights, penalty_field) * count
        pool = max(0.0, pool - amount)
        adjustments.append(
            Adjustment(step=field, kind=AdjustmentKind.SUBTRACT, amount=amount, pool_after=pool)
        )

    radii = site_radii(criteria.sites, criteria.default_radius, weights)
    multiply("coverage", coverage_factor(radii, weights), always=True)

    if criteria.requires_confirmed_diagnosis:
        multiply("confirmed_diagnosis", weights.confirmed_diagnosis_factor)

    # Half-up rounding
    matched = min(available, max(0, math.floor(pool + 0.5)))
    result = EstimateResult(available=available, matched=matched)

    logger.debug(
        "Estimated %d of %d (%d adjustments)", result.matched, result.available, len(adjustments)
    )
    return EstimateBreakdown(result=result, adjustments=tuple(adjustments))


def estimate(
    criteria: RecruitmentCriteria | dict[str, Any] | None,
    weights: WeightTable = DEFAULT_WEIGHTS,
) -> EstimateResult:
    """Estimate matching volunteers for a criteria snapshot."""
    return explain(criteria, weights).result
