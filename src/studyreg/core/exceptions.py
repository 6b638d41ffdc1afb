"""
Study Registration Exceptions

Errors are grouped by where they are raised: configuration, validation
of estimator input and wizard forms, and session storage.
"""

from dataclasses import dataclass
from typing import Any


class StudyRegError(Exception):
    """Base exception for all study registration errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(StudyRegError):
    """Error in system configuration."""

    pass


# =============================================================================
# FORM VALIDATION ERRORS
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """One message shown in the error summary, linked to the offending input."""

    href: str
    text: str

    def to_dict(self) -> dict[str, str]:
        return {"href": self.href, "text": self.text}


class ValidationError(StudyRegError):
    """Error in data validation."""

    pass


class FormValidationError(ValidationError):
    """A wizard form was posted with values that cannot be saved."""

    def __init__(self, section: str, errors: list[FieldError]):
        super().__init__(
            f"{len(errors)} error(s) in section '{section}'",
            {"section": section, "errors": [e.to_dict() for e in errors]},
        )
        self.section = section
        self.errors = errors


# =============================================================================
# CRITERIA ERRORS
#
# Raised only inside the criteria sanitisers and recovered there; the
# estimator never lets them reach a caller.
# =============================================================================


class CriteriaError(StudyRegError):
    """Base error for malformed recruitment criteria."""

    pass


class InvalidNumericField(CriteriaError):
    """A numeric criteria field could not be parsed."""

    def __init__(self, field: str, raw: Any):
        super().__init__(f"Invalid number for '{field}': {raw!r}", {"field": field, "raw": raw})
        self.field = field
        self.raw = raw


class UnknownEnumValue(CriteriaError):
    """A criteria field carried a value outside its vocabulary."""

    def __init__(self, field: str, raw: Any):
        super().__init__(f"Unknown value for '{field}': {raw!r}", {"field": field, "raw": raw})
        self.field = field
        self.raw = raw


# =============================================================================
# WIZARD ERRORS
# =============================================================================


class WizardError(StudyRegError):
    """Base error for wizard navigation."""

    pass


class UnknownSectionError(WizardError):
    """Requested wizard section does not exist."""

    def __init__(self, section: str):
        super().__init__(f"Unknown wizard section: {section}", {"section": section})


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(StudyRegError):
    """Base error for storage operations."""

    pass


class SessionNotFoundError(StorageError):
    """Requested wizard session not found."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}", {"session_id": session_id})
