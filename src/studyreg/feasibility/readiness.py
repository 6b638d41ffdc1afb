"""
Readiness Check

Compares the matched estimate against the researcher's recruitment target.
"""

from __future__ import annotations

import logging
import math

from studyreg.config import ReadinessSettings
from studyreg.core.enums import ReadinessStatus
from studyreg.core.schemas import EstimateResult, ReadinessCheck

logger = logging.getLogger(__name__)

NO_TARGET_MESSAGE = "No overall target provided."
WARN_SUFFIX = " Consider site coverage or criteria."
FAIL_SUFFIX = " Target likely unrealistic for current criteria."


def assess_readiness(
    result: EstimateResult,
    target: int | None,
    settings: ReadinessSettings | None = None,
) -> ReadinessCheck:
    """
    Classify how well the matched estimate covers the target.

    Args:
        result: Estimate to assess.
        target: Overall recruitment target; None or <= 0 means not provided.
        settings: Pass/warn ratio thresholds (defaults 0.8 / 0.3).

    Returns:
        ReadinessCheck with status, matched/target ratio and a display message.
    """
    settings = settings or ReadinessSettings()
    if not target or target <= 0:
        return ReadinessCheck(status=ReadinessStatus.WARN, message=NO_TARGET_MESSAGE)

    ratio = result.matched / target
    pct = math.floor(ratio * 100 + 0.5)
    message = f"Feasibility matched {result.matched:,} vs target {target:,} ({pct}%)."

    if ratio >= settings.pass_ratio:
        status = ReadinessStatus.PASS
    elif ratio >= settings.warn_ratio:
        status = ReadinessStatus.WARN
        message += WARN_SUFFIX
    else:
        status = ReadinessStatus.FAIL
        message += FAIL_SUFFIX

    logger.debug("Readiness %s at ratio %.3f", status.value, ratio)
    return ReadinessCheck(status=status, ratio=ratio, message=message)
