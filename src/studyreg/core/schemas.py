"""
Study Registration Core Schemas

Pydantic models for the feasibility estimator's input and output.

Key Design Principles:
1. Estimator input (RecruitmentCriteria) is immutable and always well-formed:
   before-validators sanitise raw session values instead of rejecting them.
2. Estimator output (EstimateResult) enforces 0 <= matched <= available.
3. Every constant the estimator uses lives in WeightTable.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from studyreg.core.coerce import as_bool, as_list, as_text, enum_or_default, number_or_none
from studyreg.core.enums import (
    AGE_PRESET_BOUNDS,
    AdjustmentKind,
    AgeMode,
    AgePreset,
    CoverageType,
    Platform,
    ReadinessStatus,
    Sex,
)

logger = logging.getLogger(__name__)


# =============================================================================
# WEIGHTS
# =============================================================================


class WeightTable(BaseModel):
    """
    Canonical weighting table for the feasibility estimator.

    Multiplicative factors narrow the pool proportionally; penalties are
    subtracted once per selected item. Exclusions cost more than inclusions.
    """

    model_config = ConfigDict(frozen=True)

    baseline_population: int = Field(default=10_000, ge=0)
    reference_radius_miles: float = Field(default=15.0, gt=0)
    default_radius_miles: float = Field(default=10.0, ge=1, le=200)
    min_radius_miles: float = 1.0
    max_radius_miles: float = 200.0

    jdr_factor: float = Field(default=0.65, ge=0.0, le=1.0)
    confirmed_diagnosis_factor: float = Field(default=0.6, ge=0.0, le=1.0)
    specific_sex_factor: float = Field(default=0.5, ge=0.0, le=1.0)
    age_factor_floor: float = Field(default=0.15, ge=0.0, le=1.0)
    age_factor_ceiling: float = Field(default=0.65, ge=0.0, le=1.0)
    age_factor_fallback: float = Field(default=0.30, ge=0.0, le=1.0)
    reference_age_min: int = Field(default=18, ge=0)
    reference_age_max: int = Field(default=65, ge=1)

    penalty_diagnosis: float = Field(default=250.0, ge=0.0)
    penalty_symptom: float = Field(default=120.0, ge=0.0)
    penalty_demographic_tag: float = Field(default=50.0, ge=0.0)
    penalty_medical_include: float = Field(default=80.0, ge=0.0)
    penalty_medical_exclude: float = Field(default=120.0, ge=0.0)
    penalty_disability_include: float = Field(default=50.0, ge=0.0)
    penalty_disability_exclude: float = Field(default=80.0, ge=0.0)

    @property
    def reference_age_width(self) -> int:
        return max(1, self.reference_age_max - self.reference_age_min)

    @model_validator(mode="after")
    def validate_age_factors(self) -> WeightTable:
        if self.age_factor_floor > self.age_factor_ceiling:
            raise ValueError("age_factor_floor must not exceed age_factor_ceiling")
        return self


# =============================================================================
# AGE
# =============================================================================


class AgeSelection(BaseModel):
    """
    Age restriction chosen on the demographics step.

    Accepts a preset name ("18-65"), "any", a [min, max] pair, or a dict with
    mode/preset/min_age/max_age (camelCase ageMode/ageMin/ageMax also work).
    Unrecognised input becomes an unbounded custom range, which the estimator
    treats as the strictest fallback.
    """

    model_config = ConfigDict(frozen=True)

    mode: AgeMode = AgeMode.ANY
    preset: AgePreset | None = None
    min_age: float | None = None
    max_age: float | None = None

    @model_validator(mode="before")
    @classmethod
    def coerce(cls, data: Any) -> Any:
        if isinstance(data, AgeSelection):
            data = data.model_dump()
        if data is None:
            return {}
        if isinstance(data, (list, tuple)):
            low, high = (list(data) + [None, None])[:2]
            return {
                "mode": AgeMode.CUSTOM,
                "min_age": number_or_none("age.min", low),
                "max_age": number_or_none("age.max", high),
            }
        if isinstance(data, dict):
            return cls._from_mapping(data)
        return cls._from_name(as_text(data))

    @classmethod
    def _from_name(cls, name: str) -> dict[str, Any]:
        name = name.lower()
        if name in ("", AgeMode.ANY.value):
            return {}
        try:
            return {"mode": AgeMode.PRESET, "preset": AgePreset(name)}
        except ValueError:
            logger.debug("Unknown age band %r, using strictest fallback", name)
            return {"mode": AgeMode.CUSTOM}

    @classmethod
    def _from_mapping(cls, data: dict[str, Any]) -> dict[str, Any]:
        raw_mode = data.get("mode", data.get("ageMode"))
        raw_preset = data.get("preset", data.get("agePreset", data.get("band")))
        low = number_or_none("age.min", data.get("min_age", data.get("ageMin", data.get("min"))))
        high = number_or_none("age.max", data.get("max_age", data.get("ageMax", data.get("max"))))

        mode = enum_or_default(AgeMode, "age.mode", raw_mode, AgeMode.ANY, AgeMode.CUSTOM)
        # A bare preset name given as the mode ("18plus") is a preset selection
        if raw_mode is not None and mode is AgeMode.CUSTOM and raw_preset is None:
            named = cls._from_name(as_text(raw_mode))
            if named.get("mode") is AgeMode.PRESET:
                return named

        preset: AgePreset | None = None
        if mode is AgeMode.PRESET:
            try:
                preset = AgePreset(as_text(raw_preset).lower())
            except ValueError:
                logger.debug("Unknown age preset %r", raw_preset)
        return {"mode": mode, "preset": preset, "min_age": low, "max_age": high}

    def bounds(self) -> tuple[float, float] | None:
        """Resolved (min, max) in years, or None when unrestricted or invalid."""
        if self.mode is AgeMode.PRESET:
            return AGE_PRESET_BOUNDS.get(self.preset) if self.preset else None
        if self.mode is AgeMode.CUSTOM:
            if self.min_age is None or self.max_age is None:
                return None
            if self.min_age < 0 or self.max_age < self.min_age:
                return None
            return (self.min_age, self.max_age)
        return None


# =============================================================================
# SITES
# =============================================================================


class RadiusCoverage(BaseModel):
    """Site recruits within a radius (miles). None means 'use the default radius'."""

    model_config = ConfigDict(frozen=True)

    type: Literal["radius"] = CoverageType.RADIUS.value
    miles: float | None = None


class PostcodeCoverage(BaseModel):
    """Site recruits from a list of postcode districts (e.g. LS1, LS2)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["postcode"] = CoverageType.POSTCODE.value
    districts: tuple[str, ...] = ()


class Site(BaseModel):
    """A study site and the area it covers."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    code: str = ""
    coverage: RadiusCoverage | PostcodeCoverage | None = None

    @model_validator(mode="before")
    @classmethod
    def coerce(cls, data: Any) -> Any:
        if isinstance(data, Site):
            data = data.model_dump()
        if not isinstance(data, dict):
            return {}
        return {
            "name": as_text(data.get("name", data.get("siteName"))),
            "code": as_text(data.get("code", data.get("siteCode"))),
            "coverage": _coverage_from(data.get("coverage"), data.get("radius")),
        }


def _coverage_from(raw: Any, legacy_radius: Any) -> RadiusCoverage | PostcodeCoverage | None:
    if isinstance(raw, (RadiusCoverage, PostcodeCoverage)):
        return raw
    if isinstance(raw, dict):
        kind = as_text(raw.get("type")).lower()
        if kind == CoverageType.RADIUS.value:
            return RadiusCoverage(miles=number_or_none("site.coverage.miles", raw.get("miles")))
        if kind == CoverageType.POSTCODE.value:
            districts = tuple(d.upper() for d in as_list(raw.get("districts")))
            return PostcodeCoverage(districts=districts)
        logger.debug("Unknown coverage type %r, site falls back to default radius", kind)
        return None
    # Older session shape stored {radius: n} directly on the site
    if legacy_radius is not None:
        return RadiusCoverage(miles=number_or_none("site.radius", legacy_radius))
    return None


# =============================================================================
# RECRUITMENT CRITERIA (estimator input)
# =============================================================================

_LIST_FIELDS = (
    "regions",
    "diagnoses",
    "symptoms",
    "demographic_tags",
    "medical_include",
    "medical_exclude",
    "disability_include",
    "disability_exclude",
)


class RecruitmentCriteria(BaseModel):
    """
    Snapshot of a researcher's recruitment criteria.

    Every field is optional. Validation never fails: malformed values are
    replaced by their defaults (numbers) or by the strictest option (enums).
    Nested legacy shapes are flattened:
        medicalConditions / medical: {include, exclude} or a plain list
        disabilities: {include, exclude}
        sites: {list, defaultRadius} or a plain list
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    platform: Platform = Platform.BPOR
    target_recruitment: int | None = Field(
        default=None, validation_alias=AliasChoices("target_recruitment", "targetRecruitment")
    )
    age: AgeSelection = Field(
        default_factory=AgeSelection,
        validation_alias=AliasChoices("age", "ageSelection", "age_selection"),
    )
    sex: Sex = Sex.ANY
    regions: tuple[str, ...] = ()
    diagnoses: tuple[str, ...] = ()
    symptoms: tuple[str, ...] = ()
    demographic_tags: tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("demographic_tags", "demographicTags")
    )
    requires_confirmed_diagnosis: bool = Field(
        default=False,
        validation_alias=AliasChoices("requires_confirmed_diagnosis", "requiresConfirmedDiagnosis"),
    )
    medical_include: tuple[str, ...] = ()
    medical_exclude: tuple[str, ...] = ()
    disability_include: tuple[str, ...] = ()
    disability_exclude: tuple[str, ...] = ()
    sites: tuple[Site, ...] = ()
    default_radius: float | None = Field(
        default=None, validation_alias=AliasChoices("default_radius", "defaultRadius")
    )

    @model_validator(mode="before")
    @classmethod
    def flatten_nested(cls, data: Any) -> Any:
        if isinstance(data, RecruitmentCriteria):
            data = data.model_dump()
        if not isinstance(data, dict):
            return {}
        data = dict(data)

        medical = data.pop("medicalConditions", data.pop("medical", None))
        if isinstance(medical, dict):
            data.setdefault("medical_include", medical.get("include"))
            data.setdefault("medical_exclude", medical.get("exclude"))
        elif medical is not None:
            data.setdefault("medical_include", medical)

        disabilities = data.pop("disabilities", None)
        if isinstance(disabilities, dict):
            data.setdefault("disability_include", disabilities.get("include"))
            data.setdefault("disability_exclude", disabilities.get("exclude"))

        sites = data.get("sites")
        if isinstance(sites, dict):
            data["sites"] = sites.get("list")
            if "defaultRadius" in sites and "defaultRadius" not in data:
                data.setdefault("default_radius", sites.get("defaultRadius"))
        return data

    @field_validator("platform", mode="before")
    @classmethod
    def coerce_platform(cls, v: Any) -> Platform:
        return enum_or_default(Platform, "platform", v, Platform.BPOR, Platform.JDR)

    @field_validator("sex", mode="before")
    @classmethod
    def coerce_sex(cls, v: Any) -> Sex:
        return enum_or_default(Sex, "sex", v, Sex.ANY, Sex.FEMALE)

    @field_validator("target_recruitment", mode="before")
    @classmethod
    def coerce_target(cls, v: Any) -> int | None:
        number = number_or_none("targetRecruitment", v)
        if number is None or number <= 0 or not number.is_integer():
            return None
        return int(number)

    @field_validator(*_LIST_FIELDS, mode="before")
    @classmethod
    def coerce_lists(cls, v: Any) -> tuple[str, ...]:
        return tuple(as_list(v))

    @field_validator("requires_confirmed_diagnosis", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        return as_bool(v)

    @field_validator("sites", mode="before")
    @classmethod
    def coerce_sites(cls, v: Any) -> tuple[Any, ...]:
        if not isinstance(v, (list, tuple)):
            return ()
        return tuple(s for s in v if isinstance(s, (dict, Site)))

    @field_validator("default_radius", mode="before")
    @classmethod
    def coerce_default_radius(cls, v: Any) -> float | None:
        return number_or_none("defaultRadius", v)

    @field_validator("age", mode="before")
    @classmethod
    def coerce_age(cls, v: Any) -> Any:
        return AgeSelection.model_validate(v)


# =============================================================================
# ESTIMATE (estimator output)
# =============================================================================


class EstimateResult(BaseModel):
    """
    Estimator output.

    available: registry size before filtering (the baseline).
    matched: criteria-adjusted estimate, never above available.
    """

    model_config = ConfigDict(frozen=True)

    available: int = Field(..., ge=0)
    matched: int = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_matched_within_available(self) -> EstimateResult:
        if self.matched > self.available:
            raise ValueError(f"matched ({self.matched}) exceeds available ({self.available})")
        return self

    def summary(self) -> str:
        return (
            f"Estimated {self.matched:,} out of {self.available:,} "
            "possible volunteers meet your criteria."
        )


class Adjustment(BaseModel):
    """One estimator step: a factor applied or an amount subtracted."""

    model_config = ConfigDict(frozen=True)

    step: str
    kind: AdjustmentKind
    amount: float
    pool_after: float


class EstimateBreakdown(BaseModel):
    """Estimate plus the ordered adjustments that produced it."""

    model_config = ConfigDict(frozen=True)

    result: EstimateResult
    adjustments: tuple[Adjustment, ...] = ()


class ReadinessCheck(BaseModel):
    """Whether the matched estimate can plausibly meet the recruitment target."""

    model_config = ConfigDict(frozen=True)

    status: ReadinessStatus
    ratio: float | None = None
    message: str
