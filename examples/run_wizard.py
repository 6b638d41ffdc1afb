#!/usr/bin/env python3
"""
Example: Walk the feasibility wizard from Python

Fills in every wizard section the way the web forms would, previews a
what-if change, then prints the final estimate and readiness check.

Usage:
    PYTHONPATH=src python examples/run_wizard.py
"""

import sys
from pathlib import Path

# Ensure src is in path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from studyreg.core.exceptions import FormValidationError  # noqa: E402
from studyreg.feasibility import assess_readiness, explain  # noqa: E402
from studyreg.wizard import (  # noqa: E402
    FeasibilityState,
    preview_estimate,
    save_section,
    to_criteria,
)

FORMS = [
    ("platform", {"platform": "jdr"}),
    ("target", {"target_recruitment": "150"}),
    (
        "sites",
        {
            "default_radius": "10",
            "sites": [
                {"name": "Leeds General", "coverage_type": "radius", "radius": "25"},
                {"name": "York Hospital", "coverage_type": "postcode", "districts": "YO1, YO10"},
            ],
        },
    ),
    ("diagnoses", {"diagnoses": ["Alzheimer's disease"], "confirmed": "yes"}),
    ("demographics", {"age_mode": "preset", "age_preset": "60plus", "sex": "any"}),
    ("demographics-extended", {}),
    ("medical", {"exclude": ["Stroke"]}),
    ("disabilities", {}),
    ("other", {}),
]


def main() -> int:
    state = FeasibilityState()

    # A rejected form leaves the state as it was
    try:
        save_section(state, "target", {"target_recruitment": "12.5"})
    except FormValidationError as e:
        for error in e.errors:
            print(f"Form error {error.href}: {error.text}")

    for section, form in FORMS:
        following = save_section(state, section, form)
        print(f"Saved {section:<22} next: {following.value if following else '-'}")

    what_if = preview_estimate(state, "platform", {"platform": "bpor"})
    print(f"\nWith the broader platform: {what_if.summary()}")

    criteria = to_criteria(state)
    breakdown = explain(criteria)
    print(breakdown.result.summary())
    for adj in breakdown.adjustments:
        print(f"  {adj.step:<22} {adj.kind.value:<9} {adj.amount:g}")

    readiness = assess_readiness(breakdown.result, criteria.target_recruitment)
    print(f"\n[{readiness.status.value}] {readiness.message}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
