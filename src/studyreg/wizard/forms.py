"""
Wizard Form Handling

Validates and saves one wizard section from posted form values.

Each handler receives the raw form (a dict of whatever the browser sent),
builds the new section model, and either raises FormValidationError with
GOV.UK-style field errors or returns the model to be stored. Nothing is
written to the state until a handler succeeds.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable

from pydantic import BaseModel

from studyreg.core.coerce import as_bool, as_list, as_text, parse_enum
from studyreg.core.enums import (
    AgeMode,
    AgePreset,
    CoverageType,
    Platform,
    SectionStatus,
    Sex,
    WizardSection,
)
from studyreg.core.exceptions import (
    FieldError,
    FormValidationError,
    UnknownEnumValue,
    UnknownSectionError,
)
from studyreg.core.schemas import PostcodeCoverage, RadiusCoverage, Site
from studyreg.observability.metrics import metrics
from studyreg.wizard.progress import complete, mark, next_section, stamp
from studyreg.wizard.state import (
    SECTION_ATTRS,
    DemographicsExtendedSection,
    DemographicsSection,
    DiagnosesSection,
    FeasibilityState,
    IncludeExcludeSection,
    OtherSection,
    PlatformSection,
    SitesSection,
    TargetSection,
    parse_section,
)

logger = logging.getLogger(__name__)

MIN_MILES = 1
MAX_MILES = 200
MAX_DISTRICTS = 100
MAX_AGE = 120

_DISTRICT_RE = re.compile(r"^[A-Z]{1,2}\d{1,2}[A-Z]?$")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")
_WHOLE_RE = re.compile(r"^\d+$")

DISTRICTS_ERROR = "Enter at least one valid postcode district, e.g. LS1, LS2"


# =============================================================================
# HELPERS
# =============================================================================


def to_list(value: Any) -> list[str]:
    """Checkbox groups post a single string for one tick and a list for several."""
    return as_list(value)


def clamp_miles(value: Any, fallback: float) -> float:
    """
    Parse a radius in whole miles and clamp it to [1, 200].

    Like the browser's parseInt, trailing text is ignored ("12.5" is 12,
    "25 miles" is 25). Values with no leading digits return the fallback.
    """
    match = _LEADING_INT_RE.match(as_text(value))
    if not match:
        return fallback
    return float(max(MIN_MILES, min(MAX_MILES, int(match.group()))))


def parse_districts(value: Any) -> list[str]:
    """Split "ls1, LS2 ls3" into valid upper-case districts, at most 100."""
    text = " ".join(as_list(value)).upper()
    if not text:
        return []
    tokens = [t for t in re.split(r"[,\s]+", text) if t]
    return [t for t in tokens if _DISTRICT_RE.match(t)][:MAX_DISTRICTS]


def pick(form: dict[str, Any], *names: str) -> Any:
    """First present value among snake_case and legacy camelCase names."""
    for name in names:
        if name in form:
            return form[name]
    return None


def _row_items(rows: Any) -> list[tuple[int, dict[str, Any]]]:
    """Site rows posted either as a list or as {"0": {...}, "1": {...}}."""
    if isinstance(rows, list):
        return [(i, r) for i, r in enumerate(rows) if isinstance(r, dict)]
    if isinstance(rows, dict):
        indexed = []
        for key, row in rows.items():
            match = _LEADING_INT_RE.match(str(key))
            if match and isinstance(row, dict):
                indexed.append((int(match.group()), row))
        return sorted(indexed, key=lambda item: item[0])
    return []


def build_site(
    row: dict[str, Any], default_radius: float, href: str
) -> tuple[Site, FieldError | None]:
    """Build a site from one posted row, with the districts error if it has one."""
    name = as_text(pick(row, "name", "site_name", "siteName"))
    code = as_text(pick(row, "code", "site_code", "siteCode"))
    coverage = row.get("coverage")
    if isinstance(coverage, dict):
        # JSON clients post the stored shape: {"type": ..., "miles" | "districts": ...}
        row = {**row, "coverage_type": coverage.get("type"), **coverage}
    kind = as_text(pick(row, "coverage_type", "coverageType")).lower()

    if kind == CoverageType.POSTCODE.value:
        districts = parse_districts(row.get("districts"))
        error = None if districts else FieldError(href=href, text=DISTRICTS_ERROR)
        coverage = PostcodeCoverage(districts=tuple(districts))
        return Site(name=name, code=code, coverage=coverage), error

    miles = clamp_miles(pick(row, "radius", "miles") or default_radius, default_radius)
    return Site(name=name, code=code, coverage=RadiusCoverage(miles=miles)), None


# =============================================================================
# SECTION HANDLERS
# =============================================================================


def _save_platform(state: FeasibilityState, form: dict[str, Any]) -> PlatformSection:
    raw = pick(form, "platform")
    try:
        platform = parse_enum(Platform, "platform", raw)
    except UnknownEnumValue:
        raise FormValidationError(
            WizardSection.PLATFORM.value,
            [FieldError(href="#platform-bpor", text="Select a platform to continue")],
        ) from None
    return PlatformSection(platform=platform)


def _save_target(state: FeasibilityState, form: dict[str, Any]) -> TargetSection:
    raw = as_text(pick(form, "target_recruitment", "targetRecruitment"))
    href = "#targetRecruitment"

    error = None
    number = math.nan
    if not raw:
        error = "Enter a target recruitment number"
    else:
        try:
            number = float(raw)
        except ValueError:
            pass
        if not math.isfinite(number) or number <= 0:
            error = "Enter a whole number greater than 0"
        elif not number.is_integer():
            error = "Enter a whole number (no decimals)"

    if error:
        raise FormValidationError(WizardSection.TARGET.value, [FieldError(href=href, text=error)])
    return TargetSection(target_recruitment=int(number))


def _save_sites(state: FeasibilityState, form: dict[str, Any]) -> SitesSection:
    section = state.sites.model_copy(deep=True)

    raw_default = pick(form, "default_radius", "defaultRadius")
    if as_text(raw_default):
        section.default_radius = clamp_miles(raw_default, section.default_radius or 10)

    if as_bool(pick(form, "apply_default", "applyDefault")):
        radius = clamp_miles(section.default_radius, 10)
        section.sites = [
            s.model_copy(update={"coverage": RadiusCoverage(miles=radius)})
            if isinstance(s.coverage, RadiusCoverage)
            else s
            for s in section.sites
        ]

    rows = pick(form, "list", "sites")
    if rows is not None:
        errors: list[FieldError] = []
        sites: list[Site] = []
        for index, row in _row_items(rows):
            site, error = build_site(row, section.default_radius, f"#row-{index}-districts")
            sites.append(site)
            if error:
                errors.append(error)
        if errors:
            raise FormValidationError(WizardSection.SITES.value, errors)
        section.sites = sites

    if "regions" in form:
        section.regions = to_list(form["regions"])
    return section


def _save_diagnoses(state: FeasibilityState, form: dict[str, Any]) -> DiagnosesSection:
    return DiagnosesSection(
        values=to_list(pick(form, "diagnoses", "values")),
        confirmed=as_bool(pick(form, "confirmed", "requires_confirmed_diagnosis")),
    )


def _whole_age(raw: Any) -> int | None:
    text = as_text(raw)
    if not _WHOLE_RE.match(text):
        return None
    age = int(text)
    return age if age <= MAX_AGE else None


def _save_demographics(state: FeasibilityState, form: dict[str, Any]) -> DemographicsSection:
    errors: list[FieldError] = []

    try:
        mode = parse_enum(AgeMode, "age_mode", pick(form, "age_mode", "ageMode"))
    except UnknownEnumValue:
        mode = AgeMode.ANY

    preset = None
    age_min = age_max = None
    if mode is AgeMode.PRESET:
        try:
            preset = parse_enum(AgePreset, "age_preset", pick(form, "age_preset", "agePreset"))
        except UnknownEnumValue:
            errors.append(FieldError(href="#age-preset", text="Select an age range"))
    elif mode is AgeMode.CUSTOM:
        age_min = _whole_age(pick(form, "age_min", "ageMin"))
        age_max = _whole_age(pick(form, "age_max", "ageMax"))
        if age_min is None:
            errors.append(FieldError(href="#age-min", text="Enter a valid minimum age"))
        if age_max is None:
            errors.append(FieldError(href="#age-max", text="Enter a valid maximum age"))
        if age_min is not None and age_max is not None and age_max < age_min:
            errors.append(
                FieldError(
                    href="#age-max",
                    text="Maximum age must be the same as or greater than minimum age",
                )
            )

    sex = Sex.ANY
    raw_sex = pick(form, "sex")
    if as_text(raw_sex):
        try:
            sex = parse_enum(Sex, "sex", raw_sex)
        except UnknownEnumValue:
            errors.append(FieldError(href="#sex", text="Select who can take part"))

    if errors:
        raise FormValidationError(WizardSection.DEMOGRAPHICS.value, errors)
    return DemographicsSection(
        age_mode=mode,
        age_preset=preset,
        age_min=age_min,
        age_max=age_max,
        sex=sex,
        symptoms=to_list(form.get("symptoms")),
    )


def _save_demographics_extended(
    state: FeasibilityState, form: dict[str, Any]
) -> DemographicsExtendedSection:
    return DemographicsExtendedSection(
        ethnicity=to_list(form.get("ethnicity")),
        gender=to_list(form.get("gender")),
        sex_at_birth=to_list(pick(form, "sex_at_birth", "sexAtBirth")),
    )


def _save_include_exclude(state: FeasibilityState, form: dict[str, Any]) -> IncludeExcludeSection:
    return IncludeExcludeSection(
        include=to_list(form.get("include")), exclude=to_list(form.get("exclude"))
    )


def _optional_text(value: Any) -> str | None:
    return as_text(value) or None


def _save_other(state: FeasibilityState, form: dict[str, Any]) -> OtherSection:
    return OtherSection(
        cares_for_pwd=_optional_text(pick(form, "cares_for_pwd", "caresForPwD")),
        carer_experience=to_list(pick(form, "carer_experience", "carerExperience")),
        lives_in_care_home=_optional_text(pick(form, "lives_in_care_home", "livesInCareHome")),
        has_carer=_optional_text(pick(form, "has_carer", "hasCarer")),
        mmse=as_text(form.get("mmse")),
    )


_HANDLERS: dict[WizardSection, Callable[[FeasibilityState, dict[str, Any]], BaseModel]] = {
    WizardSection.PLATFORM: _save_platform,
    WizardSection.TARGET: _save_target,
    WizardSection.SITES: _save_sites,
    WizardSection.DIAGNOSES: _save_diagnoses,
    WizardSection.DEMOGRAPHICS: _save_demographics,
    WizardSection.DEMOGRAPHICS_EXTENDED: _save_demographics_extended,
    WizardSection.MEDICAL: _save_include_exclude,
    WizardSection.DISABILITIES: _save_include_exclude,
    WizardSection.OTHER: _save_other,
}


def save_section(
    state: FeasibilityState, section: WizardSection | str, form: dict[str, Any] | None
) -> WizardSection | None:
    """
    Validate and store one posted section.

    Args:
        state: Wizard state to update.
        section: Section being posted.
        form: Raw posted values.

    Returns:
        The section to show next.

    Raises:
        UnknownSectionError: Section does not exist or cannot be posted.
        FormValidationError: Posted values are invalid; state is unchanged.
    """
    section = parse_section(section)
    handler = _HANDLERS.get(section)
    if handler is None:
        raise UnknownSectionError(section.value)

    try:
        model = handler(state, dict(form or {}))
    except FormValidationError as e:
        logger.info("Validation failed for %s: %d error(s)", section.value, len(e.errors))
        metrics.counter(metrics.VALIDATION_FAILURES, labels={"section": section.value})
        raise

    setattr(state, SECTION_ATTRS[section], model)
    if section is WizardSection.SITES and not state.sites.sites:
        mark(state, section, SectionStatus.IN_PROGRESS)
        stamp(state)
    else:
        complete(state, section)

    logger.info("Saved section %s (%s)", section.value, state.status_of(section).value)
    metrics.counter(metrics.SECTIONS_SAVED, labels={"section": section.value})
    return next_section(section)


# =============================================================================
# SITE LIST BUTTONS
# =============================================================================


def add_site(
    state: FeasibilityState,
    name: Any = None,
    code: Any = None,
    coverage_type: Any = None,
    radius: Any = None,
    districts: Any = None,
) -> Site | None:
    """
    Append a site from the "Add site" form.

    A completely blank form adds nothing and returns None. Postcode sites may
    be added with no valid districts; the row is validated on save.
    """
    if not any(as_text(v) for v in (name, code, radius, districts)):
        return None

    default = state.sites.default_radius or 10
    row = {
        "name": name,
        "code": code,
        "coverage_type": coverage_type,
        "radius": radius,
        "districts": districts,
    }
    site, _ = build_site(row, default, "")
    state.sites.sites.append(site)
    mark(state, WizardSection.SITES, SectionStatus.IN_PROGRESS)
    stamp(state)
    logger.info("Added site %r", site.name or site.code)
    return site


def remove_site(state: FeasibilityState, index: Any) -> bool:
    """Remove the site at `index`. Out-of-range or non-numeric indexes are ignored."""
    match = _LEADING_INT_RE.match(as_text(index))
    if not match:
        return False
    position = int(match.group())
    if position < 0 or position >= len(state.sites.sites):
        return False

    del state.sites.sites[position]
    remaining = SectionStatus.IN_PROGRESS if state.sites.sites else SectionStatus.NOT_STARTED
    mark(state, WizardSection.SITES, remaining)
    stamp(state)
    return True
