"""
Wizard Progress

Task-list status per section and overall completion counts.
"""

from __future__ import annotations

from pydantic import BaseModel

from studyreg.core.enums import SectionStatus, WizardSection
from studyreg.wizard.state import FeasibilityState, utcnow

SECTION_ORDER: tuple[WizardSection, ...] = tuple(WizardSection)


class SectionProgress(BaseModel):
    """Completed sections out of the total."""

    completed: int
    total: int

    @property
    def is_complete(self) -> bool:
        return self.completed >= self.total


def mark(state: FeasibilityState, section: WizardSection, status: SectionStatus) -> None:
    state.status[section] = status


def stamp(state: FeasibilityState) -> None:
    """Record the time of the latest save."""
    state.last_saved = utcnow()


def complete(state: FeasibilityState, section: WizardSection) -> None:
    mark(state, section, SectionStatus.COMPLETED)
    stamp(state)


def touch(state: FeasibilityState, section: WizardSection) -> None:
    """Viewing a section that has not been started moves it to in-progress."""
    if state.status_of(section) is SectionStatus.NOT_STARTED:
        mark(state, section, SectionStatus.IN_PROGRESS)


def progress(state: FeasibilityState) -> SectionProgress:
    done = sum(1 for s in SECTION_ORDER if state.status_of(s) is SectionStatus.COMPLETED)
    return SectionProgress(completed=done, total=len(SECTION_ORDER))


def next_section(section: WizardSection) -> WizardSection | None:
    """Section that follows `section`, or None after the last one."""
    index = SECTION_ORDER.index(section)
    if index + 1 < len(SECTION_ORDER):
        return SECTION_ORDER[index + 1]
    return None
