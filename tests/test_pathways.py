"""Tests for pathway validation, classification and referral rules."""

import pytest

from phc_screening.services.classification import (
    BloodPressureCategory,
    BloodSugarCategory,
    PsaCategory,
)
from phc_screening.workflow.pathways import (
    PATHWAYS,
    BreastRiskLevel,
    CervicalResult,
    Pathway,
    PathwayRegistry,
)
from phc_screening.workflow.results import ValidationError

registry = PathwayRegistry()


def _make_hypertension(**overrides):
    data = {
        "systolicBp1": 150,
        "diastolicBp1": 95,
        "position1": "sitting",
        "armUsed1": "left",
    }
    data.update(overrides)
    return data


def _make_diabetes(**overrides):
    data = {"testType": "fasting", "bloodSugarLevel": 95, "testTime": "08:30"}
    data.update(overrides)
    return data


def _make_cervical(**overrides):
    data = {"screeningMethod": "via", "screeningResult": "negative"}
    data.update(overrides)
    return data


def _make_breast(**overrides):
    data = {
        "lumpPresent": False,
        "dischargePresent": False,
        "nippleInversion": False,
        "lymphNodeStatus": "normal",
        "summaryFindings": "No abnormality detected",
        "riskAssessment": "low",
    }
    data.update(overrides)
    return data


def _make_psa(**overrides):
    data = {
        "psaLevel": 2.1,
        "patientAge": 58,
        "collectionTime": "09:15",
        "normalRangeMax": 4.0,
    }
    data.update(overrides)
    return data


def _assess(pathway, raw):
    return registry.assess(registry.validate(pathway, raw).unwrap())


def test_every_pathway_is_registered():
    assert set(PATHWAYS) == set(Pathway)


def test_pathway_names_parse():
    assert Pathway.parse("Hypertension Screening") is Pathway.HYPERTENSION
    assert Pathway.parse("PSA Screening") is Pathway.PSA
    assert Pathway.parse(" diabetes ") is Pathway.DIABETES
    assert Pathway.parse("eye screening") is None


# ---------------------------------------------------------------------------
# Hypertension
# ---------------------------------------------------------------------------


def test_hypertension_single_reading():
    outcome = _assess(Pathway.HYPERTENSION, _make_hypertension())
    assert outcome.category is BloodPressureCategory.HIGH_STAGE_2
    assert outcome.requires_referral


def test_hypertension_classifies_on_mean_reading():
    raw = _make_hypertension(
        systolicBp1=142,
        diastolicBp1=88,
        systolicBp2=130,
        diastolicBp2=82,
        systolicBp3=125,
        diastolicBp3=80,
    )
    payload = registry.validate(Pathway.HYPERTENSION, raw).unwrap()

    assert len(payload.readings) == 3
    assert payload.mean_reading == (132.3, 83.3)
    assert registry.classify(payload) is BloodPressureCategory.HIGH_STAGE_1
    assert not registry.assess(payload).requires_referral


def test_hypertension_third_reading_needs_second():
    raw = _make_hypertension(systolicBp3=130, diastolicBp3=85)
    result = registry.validate(Pathway.HYPERTENSION, raw)
    assert result.error.field_names == ["systolicBp2"]


def test_hypertension_systolic_must_exceed_diastolic():
    result = registry.validate(
        Pathway.HYPERTENSION, _make_hypertension(systolicBp1=80, diastolicBp1=90)
    )
    assert isinstance(result.error, ValidationError)
    assert result.error.field_names == ["diastolicBp1"]


def test_clinician_flag_forces_referral():
    outcome = _assess(
        Pathway.HYPERTENSION,
        _make_hypertension(systolicBp1=118, diastolicBp1=76, referToDoctor=True),
    )
    assert outcome.category is BloodPressureCategory.NORMAL
    assert outcome.requires_referral
    assert outcome.clinician_flagged


def test_crisis_depends_on_precedence():
    raw = _make_hypertension(systolicBp1=181, diastolicBp1=70)
    guideline = PathwayRegistry("guideline")
    dashboard = PathwayRegistry("dashboard")

    assert guideline.assess(guideline.validate(Pathway.HYPERTENSION, raw).unwrap()).category is (
        BloodPressureCategory.CRISIS
    )
    dashboard_outcome = dashboard.assess(dashboard.validate(Pathway.HYPERTENSION, raw).unwrap())
    assert dashboard_outcome.category is BloodPressureCategory.HIGH_STAGE_1
    assert not dashboard_outcome.requires_referral


# ---------------------------------------------------------------------------
# Diabetes
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "test_type, level, expected",
    [
        ("fasting", 95, BloodSugarCategory.NORMAL),
        ("fasting", 110, BloodSugarCategory.PREDIABETES),
        ("fasting", 130, BloodSugarCategory.DIABETES),
        ("random", 130, BloodSugarCategory.NORMAL),
        ("random", 210, BloodSugarCategory.DIABETES),
    ],
)
def test_diabetes_category(test_type, level, expected):
    outcome = _assess(Pathway.DIABETES, _make_diabetes(testType=test_type, bloodSugarLevel=level))
    assert outcome.category is expected
    assert not outcome.requires_referral


def test_diabetes_referral_is_clinician_decision():
    outcome = _assess(Pathway.DIABETES, _make_diabetes(bloodSugarLevel=250, referToDoctor=True))
    assert outcome.category is BloodSugarCategory.DIABETES
    assert outcome.requires_referral


def test_diabetes_field_errors():
    result = registry.validate(
        Pathway.DIABETES,
        {"testType": "fasting", "bloodSugarLevel": -5, "testTime": "25:00"},
    )
    assert result.error.field_names == ["bloodSugarLevel", "testTime"]


def test_fasting_duration_only_for_fasting_tests():
    assert registry.validate(Pathway.DIABETES, _make_diabetes(fastingDurationHours=10)).ok
    result = registry.validate(
        Pathway.DIABETES, _make_diabetes(testType="random", fastingDurationHours=10)
    )
    assert result.error.field_names == ["fastingDurationHours"]


# ---------------------------------------------------------------------------
# Cervical, breast, PSA
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "result, referral",
    [("negative", False), ("positive", True), ("suspicious", True), ("inconclusive", False)],
)
def test_cervical_result_drives_referral(result, referral):
    outcome = _assess(Pathway.CERVICAL, _make_cervical(screeningResult=result))
    assert outcome.category is CervicalResult(result)
    assert outcome.requires_referral is referral


def test_cervical_other_method_needs_details():
    result = registry.validate(Pathway.CERVICAL, _make_cervical(screeningMethod="other"))
    assert result.error.field_names == ["otherMethodDetails"]

    result = registry.validate(Pathway.CERVICAL, _make_cervical(specimenCollected=True))
    assert result.error.field_names == ["specimenType"]


def test_breast_high_risk_refers():
    outcome = _assess(Pathway.BREAST, _make_breast(riskAssessment="high", lumpPresent=True))
    assert outcome.category is BreastRiskLevel.HIGH
    assert outcome.requires_referral
    assert outcome.label == "High risk"


def test_breast_blank_summary_rejected():
    result = registry.validate(Pathway.BREAST, _make_breast(summaryFindings="   "))
    assert result.error.field_names == ["summaryFindings"]


@pytest.mark.parametrize(
    "level, expected, referral",
    [
        (2.1, PsaCategory.NORMAL, False),
        (6.5, PsaCategory.SLIGHTLY_ELEVATED, False),
        (12.0, PsaCategory.ELEVATED, True),
    ],
)
def test_psa_category_and_referral(level, expected, referral):
    outcome = _assess(Pathway.PSA, _make_psa(psaLevel=level))
    assert outcome.category is expected
    assert outcome.requires_referral is referral


def test_psa_range_must_be_ordered():
    result = registry.validate(Pathway.PSA, _make_psa(normalRangeMin=5.0))
    assert result.error.field_names == ["normalRangeMin"]


# ---------------------------------------------------------------------------
# Shared behaviour
# ---------------------------------------------------------------------------


def test_validation_is_idempotent():
    raw = _make_psa(psaLevel=12.0)
    first = registry.validate(Pathway.PSA, raw).unwrap()
    second = registry.validate(Pathway.PSA, raw).unwrap()

    assert first == second
    assert registry.assess(first) == registry.assess(second)


def test_null_fields_are_treated_as_absent():
    outcome = _assess(Pathway.PSA, _make_psa(referralReason=None, unit=None))
    assert outcome.category is PsaCategory.NORMAL


def test_non_object_payload_rejected():
    result = registry.validate(Pathway.BREAST, "lump")
    assert not result.ok
    assert result.error.field_names == ["$"]


def test_restore_rebuilds_stored_classification():
    payload = registry.validate(Pathway.CERVICAL, _make_cervical(screeningResult="positive")).unwrap()
    restored = registry.restore(payload, "positive", True)
    assert restored == registry.assess(payload)


def test_unknown_pathway_is_an_error_value():
    result = registry.validate("eye screening", {"acuity": "6/6"})
    assert isinstance(result.error, ValidationError)
    assert result.error.field_names == ["pathway"]

    by_name = registry.validate("Prostate Cancer Screening", _make_psa())
    assert by_name.ok


def test_non_string_pathway_does_not_parse():
    assert Pathway.parse(None) is None
    assert Pathway.parse(42) is None
    assert registry.validate(None, _make_psa()).error.field_names == ["pathway"]
