"""Tests for the clinical classifiers – thresholds are exact boundaries."""

import pytest

from phc_screening.services.classification import (
    BloodPressureCategory as BP,
    BloodSugarCategory,
    BpPrecedence,
    PsaCategory,
    classify_blood_pressure,
    classify_blood_sugar,
    classify_psa,
)


@pytest.mark.parametrize(
    "systolic, diastolic, expected",
    [
        (119, 79, BP.NORMAL),
        (120, 79, BP.ELEVATED),
        (129, 79, BP.ELEVATED),
        (130, 79, BP.HIGH_STAGE_1),
        (139, 89, BP.HIGH_STAGE_1),
        (125, 85, BP.HIGH_STAGE_1),
        (140, 90, BP.HIGH_STAGE_2),
        (145, 70, BP.HIGH_STAGE_2),
        (180, 120, BP.HIGH_STAGE_2),
        (181, 70, BP.CRISIS),
        (150, 121, BP.CRISIS),
    ],
)
def test_blood_pressure_guideline_precedence(systolic, diastolic, expected):
    assert classify_blood_pressure(systolic, diastolic) is expected


def test_dashboard_precedence_never_reports_crisis():
    """The dashboard ordering checks Stage 1 with 'or', so Crisis is dead code."""
    dashboard = BpPrecedence.DASHBOARD
    assert classify_blood_pressure(181, 70, dashboard) is BP.HIGH_STAGE_1
    assert classify_blood_pressure(200, 130, dashboard) is BP.HIGH_STAGE_2
    assert classify_blood_pressure(145, 70, dashboard) is BP.HIGH_STAGE_1


@pytest.mark.parametrize(
    "systolic, diastolic",
    [(119, 79), (120, 79), (139, 89), (140, 90)],
)
def test_precedences_agree_on_listed_boundaries(systolic, diastolic):
    assert classify_blood_pressure(systolic, diastolic, "guideline") is classify_blood_pressure(
        systolic, diastolic, "dashboard"
    )


def test_unclassifiable_reading_is_unknown():
    nan = float("nan")
    assert classify_blood_pressure(nan, nan) is BP.UNKNOWN


def test_blood_pressure_labels():
    assert BP.HIGH_STAGE_2.label == "High (Stage 2)"
    assert BP.CRISIS.label == "Crisis"


@pytest.mark.parametrize(
    "value, fasting, expected",
    [
        (99, True, BloodSugarCategory.NORMAL),
        (100, True, BloodSugarCategory.PREDIABETES),
        (125.9, True, BloodSugarCategory.PREDIABETES),
        (126, True, BloodSugarCategory.DIABETES),
        (139, False, BloodSugarCategory.NORMAL),
        (140, False, BloodSugarCategory.PREDIABETES),
        (199, False, BloodSugarCategory.PREDIABETES),
        (200, False, BloodSugarCategory.DIABETES),
    ],
)
def test_blood_sugar_thresholds(value, fasting, expected):
    assert classify_blood_sugar(value, fasting) is expected


@pytest.mark.parametrize(
    "level, expected",
    [
        (0, PsaCategory.NORMAL),
        (3.9, PsaCategory.NORMAL),
        (4.0, PsaCategory.SLIGHTLY_ELEVATED),
        (9.9, PsaCategory.SLIGHTLY_ELEVATED),
        (10.0, PsaCategory.ELEVATED),
    ],
)
def test_psa_bands(level, expected):
    assert classify_psa(level) is expected


def test_psa_labels():
    assert PsaCategory.SLIGHTLY_ELEVATED.label == "Slightly Elevated"
    assert BloodSugarCategory.PREDIABETES.label == "Prediabetes"
