"""
Feasibility Wizard State

Typed per-user state for the feasibility wizard, and the single boundary
(to_criteria) where that state becomes estimator input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from studyreg.core.enums import AgeMode, AgePreset, Platform, SectionStatus, Sex, WizardSection
from studyreg.core.exceptions import UnknownSectionError
from studyreg.core.schemas import AgeSelection, RecruitmentCriteria, Site


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SECTIONS
# =============================================================================


class PlatformSection(BaseModel):
    """Step 1: registry the study recruits from."""

    platform: Platform | None = None


class TargetSection(BaseModel):
    """Step 2: overall recruitment target."""

    target_recruitment: int | None = None


class SitesSection(BaseModel):
    """Step 3: study sites, the default radius and optional regions."""

    sites: list[Site] = Field(default_factory=list)
    default_radius: float = 10.0
    regions: list[str] = Field(default_factory=list)


class DiagnosesSection(BaseModel):
    """Step 4: required diagnoses."""

    values: list[str] = Field(default_factory=list)
    confirmed: bool = False


class DemographicsSection(BaseModel):
    """Step 5: age, sex and symptoms."""

    age_mode: AgeMode = AgeMode.ANY
    age_preset: AgePreset | None = None
    age_min: int | None = None
    age_max: int | None = None
    sex: Sex = Sex.ANY
    symptoms: list[str] = Field(default_factory=list)


class DemographicsExtendedSection(BaseModel):
    """Step 6: ethnicity, gender and sex at birth."""

    ethnicity: list[str] = Field(default_factory=list)
    gender: list[str] = Field(default_factory=list)
    sex_at_birth: list[str] = Field(default_factory=list)


class IncludeExcludeSection(BaseModel):
    """Conditions volunteers must have (include) or must not have (exclude)."""

    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)


class OtherSection(BaseModel):
    """Step 9: optional criteria. Recorded only; they do not change the estimate."""

    cares_for_pwd: str | None = None
    carer_experience: list[str] = Field(default_factory=list)
    lives_in_care_home: str | None = None
    has_carer: str | None = None
    mmse: str = ""


class ResultsSection(BaseModel):
    """Step 10: the persisted estimate."""

    total_estimate: int | None = None
    matched_estimate: int | None = None


# Section -> FeasibilityState attribute
SECTION_ATTRS: dict[WizardSection, str] = {
    WizardSection.PLATFORM: "platform",
    WizardSection.TARGET: "target",
    WizardSection.SITES: "sites",
    WizardSection.DIAGNOSES: "diagnoses",
    WizardSection.DEMOGRAPHICS: "demographics",
    WizardSection.DEMOGRAPHICS_EXTENDED: "demographics_extended",
    WizardSection.MEDICAL: "medical",
    WizardSection.DISABILITIES: "disabilities",
    WizardSection.OTHER: "other",
    WizardSection.RESULTS: "results",
}


# =============================================================================
# STATE
# =============================================================================


class FeasibilityState(BaseModel):
    """
    All feasibility answers for one researcher.

    Sections are filled in over several requests and may be partial at any
    time. The estimator never reads this object directly; see to_criteria.
    """

    platform: PlatformSection = Field(default_factory=PlatformSection)
    target: TargetSection = Field(default_factory=TargetSection)
    sites: SitesSection = Field(default_factory=SitesSection)
    diagnoses: DiagnosesSection = Field(default_factory=DiagnosesSection)
    demographics: DemographicsSection = Field(default_factory=DemographicsSection)
    demographics_extended: DemographicsExtendedSection = Field(
        default_factory=DemographicsExtendedSection
    )
    medical: IncludeExcludeSection = Field(default_factory=IncludeExcludeSection)
    disabilities: IncludeExcludeSection = Field(default_factory=IncludeExcludeSection)
    other: OtherSection = Field(default_factory=OtherSection)
    results: ResultsSection = Field(default_factory=ResultsSection)

    status: dict[WizardSection, SectionStatus] = Field(default_factory=dict)
    completed: bool = False
    last_saved: datetime | None = None

    def section(self, section: WizardSection) -> BaseModel:
        """Model for one wizard section."""
        return getattr(self, SECTION_ATTRS[section])

    def status_of(self, section: WizardSection) -> SectionStatus:
        return self.status.get(section, SectionStatus.NOT_STARTED)

    @property
    def total_estimate(self) -> int | None:
        return self.results.total_estimate

    @property
    def matched_estimate(self) -> int | None:
        return self.results.matched_estimate


def to_criteria(state: FeasibilityState) -> RecruitmentCriteria:
    """
    Extract the estimator's input from wizard state.

    Partial sections are fine: anything unanswered falls back to the
    criteria defaults.
    """
    demo = state.demographics
    ext = state.demographics_extended
    data: dict[str, Any] = {
        "platform": state.platform.platform,
        "target_recruitment": state.target.target_recruitment,
        "age": AgeSelection.model_validate(
            {
                "mode": demo.age_mode,
                "preset": demo.age_preset,
                "min_age": demo.age_min,
                "max_age": demo.age_max,
            }
        ),
        "sex": demo.sex,
        "regions": state.sites.regions,
        "diagnoses": state.diagnoses.values,
        "symptoms": demo.symptoms,
        "demographic_tags": [*ext.ethnicity, *ext.gender, *ext.sex_at_birth],
        "requires_confirmed_diagnosis": state.diagnoses.confirmed,
        "medical_include": state.medical.include,
        "medical_exclude": state.medical.exclude,
        "disability_include": state.disabilities.include,
        "disability_exclude": state.disabilities.exclude,
        "sites": state.sites.sites,
        "default_radius": state.sites.default_radius,
    }
    return RecruitmentCriteria.model_validate(data)


class WizardSession(BaseModel):
    """Request-scoped context handed to wizard handlers."""

    session_id: str
    feasibility: FeasibilityState = Field(default_factory=FeasibilityState)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


def parse_section(section: WizardSection | str) -> WizardSection:
    """Resolve a section name or raise UnknownSectionError."""
    if isinstance(section, WizardSection):
        return section
    try:
        return WizardSection(str(section).strip().lower())
    except ValueError as exc:
        raise UnknownSectionError(str(section)) from exc
