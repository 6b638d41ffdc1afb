"""
Study Registration Core Enumerations

Controlled vocabulary shared by the estimator, the wizard and the API.
"""

from enum import Enum


class Platform(str, Enum):
    """Volunteer registry the study recruits from."""

    BPOR = "bpor"  # Be Part of Research
    JDR = "jdr"  # Join Dementia Research (narrower audience)


class Sex(str, Enum):
    """Sex requirement for participants."""

    ANY = "any"
    MALE = "male"
    FEMALE = "female"


class AgeMode(str, Enum):
    """How the age restriction was chosen."""

    ANY = "any"
    PRESET = "preset"
    CUSTOM = "custom"


class AgePreset(str, Enum):
    """Named age bands offered by the demographics step.

    The band bounds live in AGE_PRESET_BOUNDS.
    """

    ADULTS_18_65 = "18-65"
    ADULTS_18_PLUS = "18plus"
    ADULTS_25_60 = "25-60"
    ADULTS_30_55 = "30-55"
    OLDER_60_PLUS = "60plus"


# Open-ended bands are capped at 100 when measuring width
AGE_PRESET_BOUNDS: dict[AgePreset, tuple[int, int]] = {
    AgePreset.ADULTS_18_65: (18, 65),
    AgePreset.ADULTS_18_PLUS: (18, 100),
    AgePreset.ADULTS_25_60: (25, 60),
    AgePreset.ADULTS_30_55: (30, 55),
    AgePreset.OLDER_60_PLUS: (60, 100),
}


class CoverageType(str, Enum):
    """How a study site describes the area it recruits from."""

    RADIUS = "radius"
    POSTCODE = "postcode"


class WizardSection(str, Enum):
    """Feasibility wizard steps, in the order they are presented."""

    PLATFORM = "platform"
    TARGET = "target"
    SITES = "sites"
    DIAGNOSES = "diagnoses"
    DEMOGRAPHICS = "demographics"
    DEMOGRAPHICS_EXTENDED = "demographics-extended"
    MEDICAL = "medical"
    DISABILITIES = "disabilities"
    OTHER = "other"
    RESULTS = "results"


class SectionStatus(str, Enum):
    """Task-list status of a wizard section."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ReadinessStatus(str, Enum):
    """Outcome of the matched-versus-target check."""

    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class AdjustmentKind(str, Enum):
    """How an estimator step changed the pool."""

    MULTIPLY = "multiply"
    SUBTRACT = "subtract"
