"""
JSON schemas for screening payloads.

One schema per pathway plus vitals and doctor assessments. Field names follow
the request bodies the clinic front-end already sends (camelCase). Rules that
JSON Schema cannot express cleanly (cross-field conditions) live next to the
payload builders in phc_screening.workflow.pathways.
"""

HHMM_PATTERN = "^([01]\\d|2[0-3]):[0-5]\\d$"
DATE_PATTERN = "^\\d{4}-\\d{2}-\\d{2}"

_TEXT = {"type": "string"}
_FLAG = {"type": "boolean"}
_SYSTOLIC = {"type": "number", "minimum": 50, "maximum": 300}
_DIASTOLIC = {"type": "number", "minimum": 30, "maximum": 200}
_POSITION = {"type": "string", "enum": ["sitting", "standing", "lying"]}
_ARM = {"type": "string", "enum": ["left", "right"]}
_LATERALITY = {"type": "string", "enum": ["left", "right", "bilateral", "none"]}


def _reading(n: int) -> dict:
    return {
        f"systolicBp{n}": _SYSTOLIC,
        f"diastolicBp{n}": _DIASTOLIC,
        f"position{n}": _POSITION,
        f"armUsed{n}": _ARM,
    }


HYPERTENSION_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Hypertension screening",
    "description": "Up to three BP readings; the first is mandatory.",
    "type": "object",
    "required": ["systolicBp1", "diastolicBp1", "position1", "armUsed1"],
    "properties": {
        **_reading(1),
        **_reading(2),
        **_reading(3),
        "clinicalObservations": _TEXT,
        "recommendations": _TEXT,
        "referToDoctor": _FLAG,
        "referralReason": _TEXT,
    },
    # Readings are pairs: one half without the other is rejected
    "dependencies": {
        "systolicBp2": ["diastolicBp2"],
        "diastolicBp2": ["systolicBp2"],
        "position2": ["systolicBp2", "diastolicBp2"],
        "armUsed2": ["systolicBp2", "diastolicBp2"],
        "systolicBp3": ["diastolicBp3"],
        "diastolicBp3": ["systolicBp3"],
        "position3": ["systolicBp3", "diastolicBp3"],
        "armUsed3": ["systolicBp3", "diastolicBp3"],
    },
    "additionalProperties": False,
}


DIABETES_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Diabetes screening",
    "type": "object",
    "required": ["testType", "bloodSugarLevel", "testTime"],
    "properties": {
        "testType": {"type": "string", "enum": ["random", "fasting"]},
        "bloodSugarLevel": {
            "type": "number",
            "exclusiveMinimum": 0,
            "maximum": 1000,
            "description": "Glucose in mg/dL.",
        },
        "unit": {"type": "string", "enum": ["mg/dL"]},
        "fastingDurationHours": {"type": "number", "minimum": 0, "maximum": 72},
        "testTime": {"type": "string", "pattern": HHMM_PATTERN},
        "clinicalObservations": _TEXT,
        "referToDoctor": _FLAG,
        "referralReason": _TEXT,
    },
    "additionalProperties": False,
}


CERVICAL_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Cervical cancer screening",
    "type": "object",
    "required": ["screeningMethod", "screeningResult"],
    "properties": {
        "screeningPerformed": _FLAG,
        "screeningMethod": {
            "type": "string",
            "enum": ["via", "vili", "pap_smear", "hpv_test", "other"],
        },
        "otherMethodDetails": _TEXT,
        "visualInspectionFindings": _TEXT,
        "specimenCollected": _FLAG,
        "specimenType": _TEXT,
        "screeningResult": {
            "type": "string",
            "enum": ["negative", "positive", "suspicious", "inconclusive"],
        },
        "clinicalObservations": _TEXT,
        "remarks": _TEXT,
        "followUpRequired": _FLAG,
        "followUpDate": {"type": "string", "pattern": DATE_PATTERN},
        "followUpNotes": _TEXT,
    },
    "additionalProperties": False,
}


BREAST_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Breast cancer screening (clinical breast exam)",
    "type": "object",
    "required": [
        "lumpPresent",
        "dischargePresent",
        "nippleInversion",
        "lymphNodeStatus",
        "summaryFindings",
        "riskAssessment",
    ],
    "properties": {
        "lumpPresent": _FLAG,
        "lumpLocation": _TEXT,
        "lumpSize": _TEXT,
        "lumpCharacteristics": _TEXT,
        "dischargePresent": _FLAG,
        "dischargeType": _TEXT,
        "dischargeLocation": _LATERALITY,
        "nippleInversion": _FLAG,
        "nippleInversionLaterality": _LATERALITY,
        "lymphNodeStatus": {"type": "string", "enum": ["normal", "enlarged"]},
        "lymphNodeLocation": _TEXT,
        "skinChanges": _TEXT,
        "breastSymmetry": _TEXT,
        "summaryFindings": {"type": "string", "minLength": 1},
        "riskAssessment": {"type": "string", "enum": ["low", "moderate", "high"]},
        "recommendations": _TEXT,
        "referralRequired": _FLAG,
        "referralFacility": _TEXT,
        "referralReason": _TEXT,
    },
    "additionalProperties": False,
}


PSA_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Prostate-specific antigen screening",
    "type": "object",
    "required": ["psaLevel", "patientAge", "collectionTime", "normalRangeMax"],
    "properties": {
        "psaLevel": {
            "type": "number",
            "minimum": 0,
            "maximum": 10000,
            "description": "Serum PSA in ng/mL.",
        },
        "unit": {"type": "string", "enum": ["ng/mL"]},
        "testMethod": _TEXT,
        "testKit": _TEXT,
        "collectionTime": {"type": "string", "pattern": HHMM_PATTERN},
        "sampleQuality": _TEXT,
        "sampleQualityNotes": _TEXT,
        "patientAge": {"type": "integer", "minimum": 0, "maximum": 130},
        "normalRangeMin": {"type": "number", "minimum": 0},
        "normalRangeMax": {"type": "number", "exclusiveMinimum": 0},
        "resultInterpretation": _TEXT,
        "clinicalObservations": _TEXT,
        "referToDoctor": _FLAG,
        "referralReason": _TEXT,
    },
    "additionalProperties": False,
}


VITALS_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Vital signs",
    "type": "object",
    "required": ["systolicBp", "diastolicBp"],
    "properties": {
        "systolicBp": _SYSTOLIC,
        "diastolicBp": _DIASTOLIC,
        "weight": {"type": "number", "minimum": 0.5, "maximum": 500, "description": "kg"},
        "height": {"type": "number", "minimum": 30, "maximum": 272, "description": "cm"},
        "pulseRate": {"type": "number", "minimum": 20, "maximum": 250},
        "temperature": {"type": "number", "minimum": 30, "maximum": 45, "description": "°C"},
        "respiratoryRate": {"type": "number", "minimum": 4, "maximum": 80},
        "notes": _TEXT,
    },
    "additionalProperties": False,
}


ASSESSMENT_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Doctor assessment",
    "type": "object",
    "required": ["clinicalAssessment"],
    "properties": {
        "clinicalAssessment": {"type": "string", "minLength": 1},
        "patientStatus": {
            "type": "string",
            "enum": ["normal", "abnormal", "critical", "requires_followup"],
        },
        "recommendations": _TEXT,
        "prescription": _TEXT,
        "referralFacility": _TEXT,
        "nextAppointment": {"type": "string", "pattern": DATE_PATTERN},
    },
    "additionalProperties": False,
}
