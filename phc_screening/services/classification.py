"""
Clinical classifiers: raw measurement -> named category.

Pure functions with fixed thresholds. Blood pressure is evaluated as an
ordered rule list (first match wins) so the precedence is data rather than
nested conditionals; two precedences exist because the application has
historically used both (see BpPrecedence).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

logger = logging.getLogger(__name__)


class BloodPressureCategory(str, Enum):
    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH_STAGE_1 = "high_stage1"
    HIGH_STAGE_2 = "high_stage2"
    CRISIS = "crisis"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return {
            "normal": "Normal",
            "elevated": "Elevated",
            "high_stage1": "High (Stage 1)",
            "high_stage2": "High (Stage 2)",
            "crisis": "Crisis",
            "unknown": "Unknown",
        }[self.value]


class BloodSugarCategory(str, Enum):
    NORMAL = "normal"
    PREDIABETES = "prediabetes"
    DIABETES = "diabetes"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class PsaCategory(str, Enum):
    NORMAL = "normal"
    SLIGHTLY_ELEVATED = "slightly_elevated"
    ELEVATED = "elevated"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class BpPrecedence(str, Enum):
    """
    Rule order for blood-pressure categorisation.

    GUIDELINE checks Crisis before the High stages, so a crisis-level
    reading is reported as Crisis.

    DASHBOARD reproduces the order the clinic dashboards have always used:
    High-Stage-1 (s<140 or d<90) is tested before High-Stage-2 and Crisis
    comes last, which makes the Crisis rule unreachable and labels readings
    like 181/70 as High-Stage-1. Kept until clinical stakeholders confirm
    which ordering is intended.
    """

    GUIDELINE = "guideline"
    DASHBOARD = "dashboard"


BpRule = tuple[Callable[[float, float], bool], BloodPressureCategory]


def _normal(s: float, d: float) -> bool:
    return s < 120 and d < 80


def _elevated(s: float, d: float) -> bool:
    return s < 130 and d < 80


def _crisis(s: float, d: float) -> bool:
    return s > 180 or d > 120


def _stage_2(s: float, d: float) -> bool:
    return s >= 140 or d >= 90


def _stage_1(s: float, d: float) -> bool:
    return s < 140 or d < 90


BP = BloodPressureCategory

BP_RULES: dict[BpPrecedence, list[BpRule]] = {
    BpPrecedence.GUIDELINE: [
        (_normal, BP.NORMAL),
        (_elevated, BP.ELEVATED),
        (_crisis, BP.CRISIS),
        (_stage_2, BP.HIGH_STAGE_2),
        (_stage_1, BP.HIGH_STAGE_1),
    ],
    BpPrecedence.DASHBOARD: [
        (_normal, BP.NORMAL),
        (_elevated, BP.ELEVATED),
        (_stage_1, BP.HIGH_STAGE_1),
        (_stage_2, BP.HIGH_STAGE_2),
        (_crisis, BP.CRISIS),
    ],
}


def classify_blood_pressure(
    systolic: float,
    diastolic: float,
    precedence: BpPrecedence = BpPrecedence.GUIDELINE,
) -> BloodPressureCategory:
    for predicate, category in BP_RULES[BpPrecedence(precedence)]:
        if predicate(systolic, diastolic):
            return category
    # Only reachable for values that compare false against everything (NaN)
    logger.warning("Unclassifiable blood pressure %s/%s", systolic, diastolic)
    return BP.UNKNOWN


def classify_blood_sugar(value: float, fasting: bool) -> BloodSugarCategory:
    """Fasting and random (non-fasting) tests use separate thresholds (mg/dL)."""
    normal_below, prediabetes_below = (100, 126) if fasting else (140, 200)
    if value < normal_below:
        return BloodSugarCategory.NORMAL
    if value < prediabetes_below:
        return BloodSugarCategory.PREDIABETES
    return BloodSugarCategory.DIABETES


def classify_psa(level: float) -> PsaCategory:
    """Three fixed bands in ng/mL. Age-adjusted ranges are stored, not applied."""
    if level < 4:
        return PsaCategory.NORMAL
    if level < 10:
        return PsaCategory.SLIGHTLY_ELEVATED
    return PsaCategory.ELEVATED
