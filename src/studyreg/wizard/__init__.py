"""
Study Registration Wizard Layer

Feasibility wizard state, form handling, progress and live preview.
"""

from studyreg.wizard.forms import (
    add_site,
    clamp_miles,
    parse_districts,
    remove_site,
    save_section,
    to_list,
)
from studyreg.wizard.preview import apply_section_override, preview_estimate
from studyreg.wizard.progress import SectionProgress, mark, next_section, progress, touch
from studyreg.wizard.state import FeasibilityState, WizardSession, parse_section, to_criteria

__all__ = [
    # State
    "FeasibilityState",
    "WizardSession",
    "to_criteria",
    "parse_section",
    # Forms
    "save_section",
    "add_site",
    "remove_site",
    "to_list",
    "clamp_miles",
    "parse_districts",
    # Preview
    "apply_section_override",
    "preview_estimate",
    # Progress
    "SectionProgress",
    "mark",
    "touch",
    "progress",
    "next_section",
]
