"""
Live Estimate Preview

"What if I changed this section?" estimates. Overrides are applied to a deep
copy of the wizard state, without validation, and nothing is persisted.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from studyreg.core.coerce import as_bool, as_text, enum_or_default, number_or_none, parse_enum
from studyreg.core.enums import AgeMode, AgePreset, Platform, Sex, WizardSection
from studyreg.core.exceptions import UnknownEnumValue, UnknownSectionError
from studyreg.core.schemas import EstimateResult, WeightTable
from studyreg.feasibility.estimator import DEFAULT_WEIGHTS, estimate
from studyreg.wizard.forms import build_site, clamp_miles, pick, to_list
from studyreg.wizard.state import FeasibilityState, parse_section, to_criteria

logger = logging.getLogger(__name__)


def _whole_or_none(field: str, raw: Any) -> int | None:
    number = number_or_none(field, raw)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _override_platform(state: FeasibilityState, values: dict[str, Any]) -> None:
    raw = pick(values, "platform")
    if raw is not None:
        current = state.platform.platform or Platform.BPOR
        state.platform.platform = enum_or_default(Platform, "platform", raw, current, Platform.JDR)


def _override_target(state: FeasibilityState, values: dict[str, Any]) -> None:
    raw = pick(values, "target_recruitment", "targetRecruitment")
    if raw is not None:
        state.target.target_recruitment = _whole_or_none("target_recruitment", raw)


def _override_sites(state: FeasibilityState, values: dict[str, Any]) -> None:
    section = state.sites
    raw_default = pick(values, "default_radius", "defaultRadius")
    if as_text(raw_default):
        section.default_radius = clamp_miles(raw_default, section.default_radius)

    rows = pick(values, "sites", "list")
    if isinstance(rows, list):
        section.sites = [
            build_site(row, section.default_radius, "")[0] for row in rows if isinstance(row, dict)
        ]
    if "regions" in values:
        section.regions = to_list(values["regions"])


def _override_diagnoses(state: FeasibilityState, values: dict[str, Any]) -> None:
    state.diagnoses.values = to_list(pick(values, "diagnoses", "values"))
    confirmed = pick(values, "confirmed", "requires_confirmed_diagnosis")
    if confirmed is not None:
        state.diagnoses.confirmed = as_bool(confirmed)


def _override_demographics(state: FeasibilityState, values: dict[str, Any]) -> None:
    demo = state.demographics
    demo.age_mode = enum_or_default(
        AgeMode, "age_mode", pick(values, "age_mode", "ageMode"), demo.age_mode, AgeMode.CUSTOM
    )
    raw_preset = pick(values, "age_preset", "agePreset")
    if raw_preset is not None:
        try:
            demo.age_preset = parse_enum(AgePreset, "age_preset", raw_preset)
        except UnknownEnumValue:
            demo.age_preset = None
    raw_min = pick(values, "age_min", "ageMin")
    if raw_min is not None:
        demo.age_min = _whole_or_none("age_min", raw_min)
    raw_max = pick(values, "age_max", "ageMax")
    if raw_max is not None:
        demo.age_max = _whole_or_none("age_max", raw_max)
    demo.sex = enum_or_default(Sex, "sex", pick(values, "sex"), demo.sex, Sex.FEMALE)
    demo.symptoms = to_list(values.get("symptoms"))


def _override_demographics_extended(state: FeasibilityState, values: dict[str, Any]) -> None:
    ext = state.demographics_extended
    ext.ethnicity = to_list(values.get("ethnicity"))
    ext.gender = to_list(values.get("gender"))
    ext.sex_at_birth = to_list(pick(values, "sex_at_birth", "sexAtBirth"))


def _override_medical(state: FeasibilityState, values: dict[str, Any]) -> None:
    state.medical.include = to_list(values.get("include"))
    state.medical.exclude = to_list(values.get("exclude"))


def _override_disabilities(state: FeasibilityState, values: dict[str, Any]) -> None:
    state.disabilities.include = to_list(values.get("include"))
    state.disabilities.exclude = to_list(values.get("exclude"))


def _override_other(state: FeasibilityState, values: dict[str, Any]) -> None:
    other = state.other
    for attr, legacy in (
        ("cares_for_pwd", "caresForPwD"),
        ("lives_in_care_home", "livesInCareHome"),
        ("has_carer", "hasCarer"),
    ):
        raw = pick(values, attr, legacy)
        if raw is not None:
            setattr(other, attr, as_text(raw) or None)
    other.carer_experience = to_list(pick(values, "carer_experience", "carerExperience"))
    if values.get("mmse") is not None:
        other.mmse = as_text(values["mmse"])


_OVERRIDES: dict[WizardSection, Callable[[FeasibilityState, dict[str, Any]], None]] = {
    WizardSection.PLATFORM: _override_platform,
    WizardSection.TARGET: _override_target,
    WizardSection.SITES: _override_sites,
    WizardSection.DIAGNOSES: _override_diagnoses,
    WizardSection.DEMOGRAPHICS: _override_demographics,
    WizardSection.DEMOGRAPHICS_EXTENDED: _override_demographics_extended,
    WizardSection.MEDICAL: _override_medical,
    WizardSection.DISABILITIES: _override_disabilities,
    WizardSection.OTHER: _override_other,
}


def apply_section_override(
    state: FeasibilityState, section: WizardSection | str, values: dict[str, Any] | None
) -> FeasibilityState:
    """
    Return a deep copy of `state` with one section's fields overwritten.

    Values are sanitised but not validated. Unknown sections leave the copy
    unchanged.
    """
    copy = state.model_copy(deep=True)
    try:
        target = parse_section(section)
    except UnknownSectionError:
        logger.warning("Ignoring override for unknown section %r", section)
        return copy

    override = _OVERRIDES.get(target)
    if override is None:
        logger.warning("Section %s has no overridable fields", target.value)
        return copy

    override(copy, dict(values or {}))
    return copy


def preview_estimate(
    state: FeasibilityState,
    section: WizardSection | str | None = None,
    values: dict[str, Any] | None = None,
    weights: WeightTable = DEFAULT_WEIGHTS,
) -> EstimateResult:
    """Estimate against the state with an optional one-section override."""
    if section:
        state = apply_section_override(state, section, values)
    return estimate(to_criteria(state), weights)
