"""
Pathway registry: one entry per screening pathway.

Each entry carries the pathway's JSON schema, the cross-field rules the schema
cannot express, a builder turning a validated dict into a typed payload, a
classifier, and the categories that trigger referral on their own.

Usage:
    from phc_screening.workflow.pathways import Pathway, registry

    result = registry.validate(Pathway.DIABETES, raw_payload)
    if result.ok:
        outcome = registry.assess(result.value)
        print(outcome.category, outcome.requires_referral)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from phc_screening.schemas.pathways import (
    BREAST_SCHEMA,
    CERVICAL_SCHEMA,
    DIABETES_SCHEMA,
    HYPERTENSION_SCHEMA,
    PSA_SCHEMA,
)
from phc_screening.services.classification import (
    BloodPressureCategory,
    BloodSugarCategory,
    BpPrecedence,
    PsaCategory,
    classify_blood_pressure,
    classify_blood_sugar,
    classify_psa,
)
from phc_screening.services.permissions import Capability
from phc_screening.services.validation import drop_empty, validate_against_schema
from phc_screening.workflow.results import FieldError, Result, ValidationError

logger = logging.getLogger(__name__)


class Pathway(str, Enum):
    HYPERTENSION = "hypertension"
    DIABETES = "diabetes"
    CERVICAL = "cervical"
    BREAST = "breast"
    PSA = "psa"

    @classmethod
    def parse(cls, value: Any) -> Pathway | None:
        """Accept pathway codes or the screening-type names staff see."""
        if isinstance(value, Pathway):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        try:
            return cls(key)
        except ValueError:
            return _SCREENING_TYPE_NAMES.get(key)


_SCREENING_TYPE_NAMES = {
    "hypertension screening": Pathway.HYPERTENSION,
    "diabetes screening": Pathway.DIABETES,
    "cervical cancer screening": Pathway.CERVICAL,
    "breast cancer screening": Pathway.BREAST,
    "prostate cancer screening": Pathway.PSA,
    "psa screening": Pathway.PSA,
}


class CervicalResult(str, Enum):
    NEGATIVE = "negative"
    POSITIVE = "positive"
    SUSPICIOUS = "suspicious"
    INCONCLUSIVE = "inconclusive"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class BreastRiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

    @property
    def label(self) -> str:
        return f"{self.value.capitalize()} risk"


ClinicalCategory = Union[
    BloodPressureCategory, BloodSugarCategory, PsaCategory, CervicalResult, BreastRiskLevel
]


# ---------------------------------------------------------------------------
# Validated payloads (one per pathway)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BpReading:
    systolic: float
    diastolic: float
    position: str | None = None
    arm: str | None = None


@dataclass(frozen=True)
class HypertensionPayload:
    readings: tuple[BpReading, ...]
    refer_to_doctor: bool = False
    referral_reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    pathway = Pathway.HYPERTENSION

    @property
    def mean_reading(self) -> tuple[float, float]:
        n = len(self.readings)
        return (
            round(sum(r.systolic for r in self.readings) / n, 1),
            round(sum(r.diastolic for r in self.readings) / n, 1),
        )

    @property
    def clinician_flag(self) -> bool:
        return self.refer_to_doctor


@dataclass(frozen=True)
class DiabetesPayload:
    test_type: str
    blood_sugar_level: float
    test_time: str
    unit: str = "mg/dL"
    fasting_duration_hours: float | None = None
    refer_to_doctor: bool = False
    referral_reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    pathway = Pathway.DIABETES

    @property
    def fasting(self) -> bool:
        return self.test_type == "fasting"

    @property
    def clinician_flag(self) -> bool:
        return self.refer_to_doctor


@dataclass(frozen=True)
class CervicalPayload:
    screening_method: str
    screening_result: CervicalResult
    screening_performed: bool = True
    specimen_collected: bool = False
    follow_up_required: bool = False
    follow_up_date: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    pathway = Pathway.CERVICAL

    @property
    def clinician_flag(self) -> bool:
        return self.follow_up_required


@dataclass(frozen=True)
class BreastPayload:
    lump_present: bool
    discharge_present: bool
    nipple_inversion: bool
    lymph_node_status: str
    summary_findings: str
    risk_assessment: BreastRiskLevel
    referral_required: bool = False
    referral_facility: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    pathway = Pathway.BREAST

    @property
    def clinician_flag(self) -> bool:
        return self.referral_required


@dataclass(frozen=True)
class PsaPayload:
    psa_level: float
    patient_age: int
    collection_time: str
    normal_range_max: float
    normal_range_min: float = 0.0
    unit: str = "ng/mL"
    sample_quality: str = "adequate"
    refer_to_doctor: bool = False
    referral_reason: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, hash=False, repr=False)

    pathway = Pathway.PSA

    @property
    def clinician_flag(self) -> bool:
        return self.refer_to_doctor


PathwayPayload = Union[
    HypertensionPayload, DiabetesPayload, CervicalPayload, BreastPayload, PsaPayload
]


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one validated payload."""

    pathway: Pathway
    category: ClinicalCategory
    requires_referral: bool
    clinician_flagged: bool = False

    @property
    def label(self) -> str:
        return self.category.label

    def to_dict(self) -> dict[str, Any]:
        return {
            "pathway": self.pathway.value,
            "category": self.category.value,
            "label": self.label,
            "requires_referral": self.requires_referral,
            "clinician_flagged": self.clinician_flagged,
        }


# ---------------------------------------------------------------------------
# Cross-field rules
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_bp_pair(
    data: dict[str, Any], systolic_key: str, diastolic_key: str
) -> list[FieldError]:
    systolic, diastolic = data.get(systolic_key), data.get(diastolic_key)
    if _is_number(systolic) and _is_number(diastolic) and systolic <= diastolic:
        return [FieldError(diastolic_key, f"must be lower than {systolic_key}")]
    return []


def _hypertension_rules(data: dict[str, Any]) -> list[FieldError]:
    errors: list[FieldError] = []
    for n in (1, 2, 3):
        errors.extend(check_bp_pair(data, f"systolicBp{n}", f"diastolicBp{n}"))
    if "systolicBp3" in data and "systolicBp2" not in data:
        errors.append(FieldError("systolicBp2", "reading 2 is required before reading 3"))
    return errors


def _diabetes_rules(data: dict[str, Any]) -> list[FieldError]:
    if data.get("testType") == "random" and "fastingDurationHours" in data:
        return [FieldError("fastingDurationHours", "only applies to fasting tests")]
    return []


def _cervical_rules(data: dict[str, Any]) -> list[FieldError]:
    errors = []
    if data.get("screeningMethod") == "other" and not str(
        data.get("otherMethodDetails", "")
    ).strip():
        errors.append(FieldError("otherMethodDetails", "required when method is 'other'"))
    if data.get("specimenCollected") is True and not str(data.get("specimenType", "")).strip():
        errors.append(FieldError("specimenType", "required when a specimen was collected"))
    return errors


def _breast_rules(data: dict[str, Any]) -> list[FieldError]:
    summary = data.get("summaryFindings")
    if isinstance(summary, str) and summary and not summary.strip():
        return [FieldError("summaryFindings", "must not be blank")]
    return []


def _psa_rules(data: dict[str, Any]) -> list[FieldError]:
    low, high = data.get("normalRangeMin"), data.get("normalRangeMax")
    if _is_number(low) and _is_number(high) and low > high:
        return [FieldError("normalRangeMin", "must not exceed normalRangeMax")]
    return []


# ---------------------------------------------------------------------------
# Builders (validated dict -> typed payload)
# ---------------------------------------------------------------------------


def _build_hypertension(data: dict[str, Any]) -> HypertensionPayload:
    readings = tuple(
        BpReading(
            systolic=data[f"systolicBp{n}"],
            diastolic=data[f"diastolicBp{n}"],
            position=data.get(f"position{n}"),
            arm=data.get(f"armUsed{n}"),
        )
        for n in (1, 2, 3)
        if f"systolicBp{n}" in data
    )
    return HypertensionPayload(
        readings=readings,
        refer_to_doctor=data.get("referToDoctor", False),
        referral_reason=data.get("referralReason"),
        raw=data,
    )


def _build_diabetes(data: dict[str, Any]) -> DiabetesPayload:
    return DiabetesPayload(
        test_type=data["testType"],
        blood_sugar_level=data["bloodSugarLevel"],
        test_time=data["testTime"],
        unit=data.get("unit", "mg/dL"),
        fasting_duration_hours=data.get("fastingDurationHours"),
        refer_to_doctor=data.get("referToDoctor", False),
        referral_reason=data.get("referralReason"),
        raw=data,
    )


def _build_cervical(data: dict[str, Any]) -> CervicalPayload:
    return CervicalPayload(
        screening_method=data["screeningMethod"],
        screening_result=CervicalResult(data["screeningResult"]),
        screening_performed=data.get("screeningPerformed", True),
        specimen_collected=data.get("specimenCollected", False),
        follow_up_required=data.get("followUpRequired", False),
        follow_up_date=data.get("followUpDate"),
        raw=data,
    )


def _build_breast(data: dict[str, Any]) -> BreastPayload:
    return BreastPayload(
        lump_present=data["lumpPresent"],
        discharge_present=data["dischargePresent"],
        nipple_inversion=data["nippleInversion"],
        lymph_node_status=data["lymphNodeStatus"],
        summary_findings=data["summaryFindings"].strip(),
        risk_assessment=BreastRiskLevel(data["riskAssessment"]),
        referral_required=data.get("referralRequired", False),
        referral_facility=data.get("referralFacility"),
        raw=data,
    )


def _build_psa(data: dict[str, Any]) -> PsaPayload:
    return PsaPayload(
        psa_level=data["psaLevel"],
        patient_age=int(data["patientAge"]),
        collection_time=data["collectionTime"],
        normal_range_max=data["normalRangeMax"],
        normal_range_min=data.get("normalRangeMin", 0.0),
        unit=data.get("unit", "ng/mL"),
        sample_quality=data.get("sampleQuality", "adequate"),
        refer_to_doctor=data.get("referToDoctor", False),
        referral_reason=data.get("referralReason"),
        raw=data,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PathwayDefinition:
    pathway: Pathway
    title: str
    capability: Capability
    schema: dict[str, Any]
    rules: Callable[[dict[str, Any]], list[FieldError]]
    build: Callable[[dict[str, Any]], Any]
    classify: Callable[[Any, BpPrecedence], ClinicalCategory]
    category_type: type[Enum]
    referral_categories: frozenset = frozenset()


PATHWAYS: dict[Pathway, PathwayDefinition] = {
    Pathway.HYPERTENSION: PathwayDefinition(
        pathway=Pathway.HYPERTENSION,
        title="Hypertension Screening",
        capability=Capability.SCREENING_HYPERTENSION_CREATE,
        schema=HYPERTENSION_SCHEMA,
        rules=_hypertension_rules,
        build=_build_hypertension,
        classify=lambda p, precedence: classify_blood_pressure(*p.mean_reading, precedence),
        category_type=BloodPressureCategory,
        referral_categories=frozenset(
            {BloodPressureCategory.HIGH_STAGE_2, BloodPressureCategory.CRISIS}
        ),
    ),
    Pathway.DIABETES: PathwayDefinition(
        pathway=Pathway.DIABETES,
        title="Diabetes Screening",
        capability=Capability.LAB_DIABETES_CREATE,
        schema=DIABETES_SCHEMA,
        rules=_diabetes_rules,
        build=_build_diabetes,
        classify=lambda p, _: classify_blood_sugar(p.blood_sugar_level, p.fasting),
        category_type=BloodSugarCategory,
        # One screening glucose is not diagnostic; referral is the clinician's call
        referral_categories=frozenset(),
    ),
    Pathway.CERVICAL: PathwayDefinition(
        pathway=Pathway.CERVICAL,
        title="Cervical Cancer Screening",
        capability=Capability.SCREENING_CERVICAL_CREATE,
        schema=CERVICAL_SCHEMA,
        rules=_cervical_rules,
        build=_build_cervical,
        classify=lambda p, _: p.screening_result,
        category_type=CervicalResult,
        referral_categories=frozenset({CervicalResult.POSITIVE, CervicalResult.SUSPICIOUS}),
    ),
    Pathway.BREAST: PathwayDefinition(
        pathway=Pathway.BREAST,
        title="Breast Cancer Screening",
        capability=Capability.SCREENING_BREAST_CREATE,
        schema=BREAST_SCHEMA,
        rules=_breast_rules,
        build=_build_breast,
        classify=lambda p, _: p.risk_assessment,
        category_type=BreastRiskLevel,
        referral_categories=frozenset({BreastRiskLevel.HIGH}),
    ),
    Pathway.PSA: PathwayDefinition(
        pathway=Pathway.PSA,
        title="Prostate Cancer Screening",
        capability=Capability.LAB_PSA_CREATE,
        schema=PSA_SCHEMA,
        rules=_psa_rules,
        build=_build_psa,
        classify=lambda p, _: classify_psa(p.psa_level),
        category_type=PsaCategory,
        referral_categories=frozenset({PsaCategory.ELEVATED}),
    ),
}

_missing = set(Pathway) - set(PATHWAYS)
if _missing:
    raise RuntimeError(f"Pathways without a registry entry: {sorted(p.value for p in _missing)}")


class PathwayRegistry:
    """Validates, classifies and flags referral for any registered pathway."""

    def __init__(self, bp_precedence: BpPrecedence | str = BpPrecedence.GUIDELINE):
        self.bp_precedence = BpPrecedence(bp_precedence)

    def definition(self, pathway: Pathway) -> PathwayDefinition:
        return PATHWAYS[Pathway(pathway)]

    def capability_for(self, pathway: Pathway) -> Capability:
        return self.definition(pathway).capability

    def validate(self, pathway: Pathway | str, raw: Any) -> Result[PathwayPayload]:
        """Validate a raw payload; never partially accepts it."""
        parsed = Pathway.parse(pathway)
        if parsed is None:
            return Result.failure(
                ValidationError.of(
                    "pathway", [FieldError("pathway", f"unknown pathway '{pathway}'")]
                )
            )
        definition = self.definition(parsed)
        subject = definition.pathway.value
        if not isinstance(raw, dict):
            return Result.failure(
                ValidationError.of(subject, [FieldError("$", "payload must be an object")])
            )

        data = drop_empty(raw)
        errors = validate_against_schema(data, definition.schema) + definition.rules(data)
        if errors:
            logger.info("%s payload rejected: %s", subject, [e.field for e in errors])
            return Result.failure(ValidationError.of(subject, errors))
        return Result.success(definition.build(data))

    def classify(self, payload: PathwayPayload) -> ClinicalCategory:
        definition = self.definition(payload.pathway)
        return definition.classify(payload, self.bp_precedence)

    def requires_referral(self, payload: PathwayPayload, category: ClinicalCategory) -> bool:
        definition = self.definition(payload.pathway)
        return payload.clinician_flag or category in definition.referral_categories

    def restore(
        self, payload: PathwayPayload, category: str, requires_referral: bool
    ) -> Classification:
        """Rebuild a stored classification without re-running the classifier."""
        definition = self.definition(payload.pathway)
        return Classification(
            pathway=payload.pathway,
            category=definition.category_type(category),
            requires_referral=requires_referral,
            clinician_flagged=payload.clinician_flag,
        )

    def assess(self, payload: PathwayPayload) -> Classification:
        category = self.classify(payload)
        return Classification(
            pathway=payload.pathway,
            category=category,
            requires_referral=self.requires_referral(payload, category),
            clinician_flagged=payload.clinician_flag,
        )


registry = PathwayRegistry()
