"""
Screening sessions and the workflow operations that advance them.

Sessions are immutable records. Each operation returns a Result holding either
the updated session (a new object, with `version` bumped) or the error that
stopped it; the input session is never modified, so a rejected call leaves no
partial state behind.

The caller owns persistence and must serialise operations on the same
session id (e.g. an optimistic check on `version`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from phc_screening.schemas.pathways import ASSESSMENT_SCHEMA, VITALS_SCHEMA
from phc_screening.services.classification import (
    BloodPressureCategory,
    BpPrecedence,
    classify_blood_pressure,
)
from phc_screening.services.validation import drop_empty, validate_against_schema
from phc_screening.workflow.machine import SessionEvent, SessionState, transition
from phc_screening.workflow.pathways import (
    Classification,
    Pathway,
    PathwayPayload,
    PathwayRegistry,
    check_bp_pair,
    registry as default_registry,
)
from phc_screening.workflow.results import (
    FieldError,
    Result,
    TransitionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class PatientStatus(str, Enum):
    NORMAL = "normal"
    ABNORMAL = "abnormal"
    CRITICAL = "critical"
    REQUIRES_FOLLOWUP = "requires_followup"


@dataclass(frozen=True)
class Vitals:
    """One vitals measurement. Blood pressure is always a complete pair."""

    systolic: float
    diastolic: float
    weight: float | None = None
    height: float | None = None
    pulse_rate: float | None = None
    temperature: float | None = None
    respiratory_rate: float | None = None
    notes: str | None = None
    recorded_at: datetime | None = None

    @property
    def bmi(self) -> float | None:
        if self.weight is None or self.height is None:
            return None
        metres = self.height / 100
        return round(self.weight / (metres * metres), 1)

    @property
    def blood_pressure(self) -> str:
        return f"{self.systolic:g}/{self.diastolic:g}"

    def bp_category(
        self, precedence: BpPrecedence = BpPrecedence.GUIDELINE
    ) -> BloodPressureCategory:
        return classify_blood_pressure(self.systolic, self.diastolic, precedence)

    def to_dict(self) -> dict[str, Any]:
        return drop_empty(
            {
                "systolicBp": self.systolic,
                "diastolicBp": self.diastolic,
                "weight": self.weight,
                "height": self.height,
                "pulseRate": self.pulse_rate,
                "temperature": self.temperature,
                "respiratoryRate": self.respiratory_rate,
                "notes": self.notes,
            }
        )


@dataclass(frozen=True)
class DoctorAssessment:
    clinical_assessment: str
    patient_status: PatientStatus = PatientStatus.NORMAL
    recommendations: str | None = None
    prescription: str | None = None
    referral_facility: str | None = None
    next_appointment: str | None = None
    assessed_at: datetime | None = None

    @property
    def requires_followup(self) -> bool:
        return self.patient_status is PatientStatus.REQUIRES_FOLLOWUP

    def to_dict(self) -> dict[str, Any]:
        return drop_empty(
            {
                "clinicalAssessment": self.clinical_assessment,
                "patientStatus": self.patient_status.value,
                "recommendations": self.recommendations,
                "prescription": self.prescription,
                "referralFacility": self.referral_facility,
                "nextAppointment": self.next_appointment,
            }
        )


@dataclass(frozen=True)
class TransitionRecord:
    from_state: SessionState
    to_state: SessionState
    event: SessionEvent


@dataclass(frozen=True)
class ScreeningSession:
    session_id: str
    patient_id: str
    pathway: Pathway
    state: SessionState = SessionState.PENDING
    vitals_history: tuple[Vitals, ...] = ()
    payload: PathwayPayload | None = None
    classification: Classification | None = None
    assessments: tuple[DoctorAssessment, ...] = ()
    history: tuple[TransitionRecord, ...] = ()
    version: int = 0

    @property
    def vitals(self) -> Vitals | None:
        """The active vitals record: the most recent measurement."""
        return self.vitals_history[-1] if self.vitals_history else None

    @property
    def assessment(self) -> DoctorAssessment | None:
        """Latest assessment wins; earlier ones remain in `assessments`."""
        return self.assessments[-1] if self.assessments else None

    @property
    def requires_referral(self) -> bool:
        flagged = self.classification is not None and self.classification.requires_referral
        return flagged or any(a.requires_followup for a in self.assessments)


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def parse_vitals(raw: Any, recorded_at: datetime | None = None) -> Result[Vitals]:
    if not isinstance(raw, dict):
        return Result.failure(
            ValidationError.of("vitals", [FieldError("$", "payload must be an object")])
        )
    data = drop_empty(raw)
    errors = validate_against_schema(data, VITALS_SCHEMA)
    errors += check_bp_pair(data, "systolicBp", "diastolicBp")
    if errors:
        return Result.failure(ValidationError.of("vitals", errors))
    return Result.success(
        Vitals(
            systolic=data["systolicBp"],
            diastolic=data["diastolicBp"],
            weight=data.get("weight"),
            height=data.get("height"),
            pulse_rate=data.get("pulseRate"),
            temperature=data.get("temperature"),
            respiratory_rate=data.get("respiratoryRate"),
            notes=data.get("notes"),
            recorded_at=recorded_at,
        )
    )


def parse_assessment(raw: Any, assessed_at: datetime | None = None) -> Result[DoctorAssessment]:
    if not isinstance(raw, dict):
        return Result.failure(
            ValidationError.of("assessment", [FieldError("$", "payload must be an object")])
        )
    data = drop_empty(raw)
    errors = validate_against_schema(data, ASSESSMENT_SCHEMA)
    narrative = data.get("clinicalAssessment")
    if isinstance(narrative, str) and narrative and not narrative.strip():
        errors.append(FieldError("clinicalAssessment", "must not be blank"))
    if errors:
        return Result.failure(ValidationError.of("assessment", errors))
    return Result.success(
        DoctorAssessment(
            clinical_assessment=data["clinicalAssessment"].strip(),
            patient_status=PatientStatus(data.get("patientStatus", "normal")),
            recommendations=data.get("recommendations"),
            prescription=data.get("prescription"),
            referral_facility=data.get("referralFacility"),
            next_appointment=data.get("nextAppointment"),
            assessed_at=assessed_at,
        )
    )


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class ScreeningWorkflow:
    """Applies clinical events to sessions, one atomic change per call."""

    def __init__(self, registry: PathwayRegistry | None = None):
        self.registry = registry or default_registry

    @staticmethod
    def create(session_id: str, patient_id: str, pathway: Pathway | str) -> Result[ScreeningSession]:
        parsed = Pathway.parse(pathway)
        if parsed is None:
            return Result.failure(
                ValidationError.of(
                    "session", [FieldError("pathway", f"unknown pathway '{pathway}'")]
                )
            )
        logger.info("Created %s screening session %s", parsed.value, session_id)
        return Result.success(
            ScreeningSession(session_id=str(session_id), patient_id=str(patient_id), pathway=parsed)
        )

    @staticmethod
    def _advance(
        session: ScreeningSession, events: list[SessionEvent]
    ) -> Result[tuple[SessionState, tuple[TransitionRecord, ...]]]:
        """Run events in order; the first rejection aborts the whole call."""
        state, records = session.state, []
        for event in events:
            outcome = transition(state, event)
            if not outcome.ok:
                return Result.failure(outcome.error)
            records.append(TransitionRecord(state, outcome.value, event))
            state = outcome.value
        return Result.success((state, tuple(records)))

    def record_vitals(
        self, session: ScreeningSession, raw: Any, recorded_at: datetime | None = None
    ) -> Result[ScreeningSession]:
        advanced = self._advance(session, [SessionEvent.VITALS_RECORDED])
        if not advanced.ok:
            return Result.failure(advanced.error)
        parsed = parse_vitals(raw, recorded_at)
        if not parsed.ok:
            return Result.failure(parsed.error)

        state, records = advanced.value
        return Result.success(
            replace(
                session,
                state=state,
                vitals_history=session.vitals_history + (parsed.value,),
                history=session.history + records,
                version=session.version + 1,
            )
        )

    def submit_pathway(self, session: ScreeningSession, raw: Any) -> Result[ScreeningSession]:
        """
        Validate and classify the pathway payload and complete the session.
        A referral flag from the classifier carries the session on to
        follow-up in the same call.
        """
        if session.vitals is None:
            return Result.failure(
                TransitionError.of(
                    "Vitals must be recorded before the pathway screening",
                    state=session.state.value,
                    event=SessionEvent.PATHWAY_SUBMITTED.value,
                )
            )
        ordering = self._advance(session, [SessionEvent.PATHWAY_SUBMITTED])
        if not ordering.ok:
            return Result.failure(ordering.error)

        validated = self.registry.validate(session.pathway, raw)
        if not validated.ok:
            return Result.failure(validated.error)
        classification = self.registry.assess(validated.value)

        events = [SessionEvent.PATHWAY_SUBMITTED]
        if classification.requires_referral:
            events.append(SessionEvent.FOLLOW_UP_FLAGGED)
        state, records = self._advance(session, events).unwrap()

        logger.info(
            "Session %s %s screening classified %s (referral=%s)",
            session.session_id,
            session.pathway.value,
            classification.category.value,
            classification.requires_referral,
        )
        return Result.success(
            replace(
                session,
                state=state,
                payload=validated.value,
                classification=classification,
                history=session.history + records,
                version=session.version + 1,
            )
        )

    def record_assessment(
        self, session: ScreeningSession, raw: Any, assessed_at: datetime | None = None
    ) -> Result[ScreeningSession]:
        """
        Append a doctor assessment. Earlier assessments are kept; the latest
        one is what `session.assessment` returns.
        """
        ordering = transition(session.state, SessionEvent.ASSESSMENT_RECORDED)
        if not ordering.ok:
            return Result.failure(ordering.error)
        parsed = parse_assessment(raw, assessed_at)
        if not parsed.ok:
            return Result.failure(parsed.error)
        assessment = parsed.value

        events = [SessionEvent.ASSESSMENT_RECORDED]
        if assessment.requires_followup:
            events.append(SessionEvent.FOLLOW_UP_FLAGGED)
        advanced = self._advance(session, events)
        if not advanced.ok:
            return Result.failure(advanced.error)

        state, records = advanced.value
        return Result.success(
            replace(
                session,
                state=state,
                assessments=session.assessments + (assessment,),
                history=session.history + records,
                version=session.version + 1,
            )
        )
