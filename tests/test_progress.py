"""
Tests for wizard progress and state extraction.
"""

import pytest

from studyreg.core.enums import AgeMode, Platform, SectionStatus, Sex, WizardSection
from studyreg.core.exceptions import UnknownSectionError
from studyreg.wizard.progress import (
    SECTION_ORDER,
    SectionProgress,
    complete,
    next_section,
    progress,
    touch,
)
from studyreg.wizard.state import FeasibilityState, parse_section, to_criteria


class TestProgress:
    """Tests for task-list status."""

    def test_new_state(self) -> None:
        state = FeasibilityState()
        assert progress(state) == SectionProgress(completed=0, total=10)
        assert all(state.status_of(s) is SectionStatus.NOT_STARTED for s in SECTION_ORDER)

    def test_touch_starts_section(self) -> None:
        state = FeasibilityState()
        touch(state, WizardSection.SITES)
        assert state.status_of(WizardSection.SITES) is SectionStatus.IN_PROGRESS

    def test_touch_keeps_completed(self) -> None:
        state = FeasibilityState()
        complete(state, WizardSection.TARGET)
        touch(state, WizardSection.TARGET)
        assert state.status_of(WizardSection.TARGET) is SectionStatus.COMPLETED
        assert state.last_saved is not None

    def test_all_complete(self) -> None:
        state = FeasibilityState()
        for section in SECTION_ORDER:
            complete(state, section)
        assert progress(state).is_complete


class TestNextSection:
    """Tests for wizard navigation order."""

    @pytest.mark.parametrize(
        "section, expected",
        [
            (WizardSection.PLATFORM, WizardSection.TARGET),
            (WizardSection.DEMOGRAPHICS, WizardSection.DEMOGRAPHICS_EXTENDED),
            (WizardSection.OTHER, WizardSection.RESULTS),
            (WizardSection.RESULTS, None),
        ],
    )
    def test_order(self, section: WizardSection, expected: WizardSection | None) -> None:
        assert next_section(section) is expected


class TestParseSection:
    """Tests for section name lookup."""

    def test_known(self) -> None:
        assert parse_section(" Demographics-Extended ") is WizardSection.DEMOGRAPHICS_EXTENDED

    def test_unknown(self) -> None:
        with pytest.raises(UnknownSectionError):
            parse_section("payment")


class TestToCriteria:
    """Tests for extracting estimator input from wizard state."""

    def test_empty_state(self) -> None:
        criteria = to_criteria(FeasibilityState())
        assert criteria.platform is Platform.BPOR
        assert criteria.age.mode is AgeMode.ANY
        assert criteria.sex is Sex.ANY
        assert criteria.default_radius == 10.0

    def test_demographic_tags_merged(self) -> None:
        state = FeasibilityState()
        state.demographics_extended.ethnicity = ["Asian"]
        state.demographics_extended.gender = ["Woman"]
        state.demographics_extended.sex_at_birth = ["Female"]
        assert to_criteria(state).demographic_tags == ("Asian", "Woman", "Female")

    def test_other_section_ignored(self) -> None:
        state = FeasibilityState()
        state.other.cares_for_pwd = "yes"
        state.other.mmse = "24"
        assert to_criteria(state) == to_criteria(FeasibilityState())
