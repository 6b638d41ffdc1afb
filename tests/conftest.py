"""
Study Registration Test Configuration

Shared fixtures and test utilities.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Set test environment before any imports
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("STUDYREG_SESSION_BACKEND", "memory")

_test_temp_dir = Path(tempfile.gettempdir()) / "studyreg_test"
_test_temp_dir.mkdir(parents=True, exist_ok=True)
os.environ.setdefault("STUDYREG_DB_PATH", str(_test_temp_dir / "sessions.db"))


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Reset settings, stores, metrics and tracers around each test."""
    from studyreg.config import reset_settings
    from studyreg.observability.metrics import reset_metrics
    from studyreg.observability.tracer import reset_tracers
    from studyreg.storage.session_store import reset_session_store

    reset_settings()
    reset_session_store()
    reset_metrics()
    reset_tracers()
    yield
    reset_settings()
    reset_session_store()
    reset_metrics()
    reset_tracers()


@pytest.fixture
def baseline_criteria() -> dict:
    """No narrowing except one site at the reference radius."""
    return {
        "platform": "bpor",
        "age": "18-65",
        "sex": "any",
        "sites": [{"name": "Leeds General", "coverage": {"type": "radius", "miles": 15}}],
    }


@pytest.fixture
def strict_criteria() -> dict:
    """JDR, confirmed diagnosis and many conditions, in the camelCase session shape."""
    return {
        "platform": "jdr",
        "targetRecruitment": "120",
        "ageSelection": {"mode": "custom", "ageMin": "60", "ageMax": "80"},
        "sex": "female",
        "regions": ["Yorkshire"],
        "diagnoses": ["Alzheimer's disease", "Vascular dementia"],
        "symptoms": "Memory loss",
        "demographicTags": ["White British"],
        "requiresConfirmedDiagnosis": "yes",
        "medicalConditions": {"include": ["Hypertension"], "exclude": ["Stroke", "Epilepsy"]},
        "disabilities": {"include": [], "exclude": ["Hearing loss"]},
        "sites": {
            "list": [
                {"name": "Site A", "coverage": {"type": "radius", "miles": 25}},
                {"name": "Site B", "coverage": {"type": "postcode", "districts": ["LS1"]}},
            ],
            "defaultRadius": 10,
        },
    }
