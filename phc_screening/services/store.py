"""
Session store: maps screening sessions to and from their database rows.

Writes are guarded by the session `version`. A save is accepted only when the
stored row is exactly one version behind the session being saved; the ORM's
version column then re-checks the same condition inside the UPDATE, so two
requests racing on one session cannot both win.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from phc_screening.models.screening import (
    AssessmentRecord,
    ScreeningSessionRecord,
    VitalRecord,
)
from phc_screening.services.encryption import EncryptionService
from phc_screening.services.encryption import encryption as default_encryption
from phc_screening.workflow.machine import SessionEvent, SessionState
from phc_screening.workflow.pathways import Pathway, PathwayRegistry
from phc_screening.workflow.pathways import registry as default_registry
from phc_screening.workflow.session import (
    DoctorAssessment,
    PatientStatus,
    ScreeningSession,
    TransitionRecord,
    Vitals,
)

logger = logging.getLogger(__name__)


class ConcurrencyConflict(Exception):
    """The stored session changed since the caller loaded it."""

    def __init__(self, session_id: str, expected: int, found: int | None):
        super().__init__(
            f"Session {session_id} is at version {found}, expected {expected}"
        )
        self.session_id = session_id
        self.expected = expected
        self.found = found


class SessionStore:
    def __init__(
        self,
        db: Session,
        registry: PathwayRegistry | None = None,
        encryption: EncryptionService | None = None,
    ):
        self.db = db
        self.registry = registry or default_registry
        self.encryption = encryption or default_encryption

    # -- reading ------------------------------------------------------------

    def get(self, session_id: str) -> ScreeningSession | None:
        row = self.db.get(ScreeningSessionRecord, session_id)
        return self._to_session(row) if row is not None else None

    def exists(self, session_id: str) -> bool:
        return self.db.get(ScreeningSessionRecord, session_id) is not None

    def _to_session(self, row: ScreeningSessionRecord) -> ScreeningSession:
        pathway = Pathway(row.pathway)
        payload = classification = None
        if row.pathway_payload is not None:
            # Stored payloads were validated on the way in
            payload = self.registry.validate(pathway, row.pathway_payload).unwrap()
            classification = self.registry.restore(
                payload, row.category, bool(row.category_referral)
            )

        return ScreeningSession(
            session_id=row.id,
            patient_id=row.patient_id,
            pathway=pathway,
            state=SessionState(row.state),
            vitals_history=tuple(
                Vitals(
                    systolic=v.systolic,
                    diastolic=v.diastolic,
                    weight=v.weight,
                    height=v.height,
                    pulse_rate=v.pulse_rate,
                    temperature=v.temperature,
                    respiratory_rate=v.respiratory_rate,
                    notes=v.notes,
                    recorded_at=v.recorded_at,
                )
                for v in row.vitals
            ),
            payload=payload,
            classification=classification,
            assessments=tuple(
                DoctorAssessment(
                    clinical_assessment=self.encryption.decrypt(a.encrypted_clinical_assessment),
                    patient_status=PatientStatus(a.patient_status),
                    recommendations=self.encryption.decrypt(a.encrypted_recommendations),
                    prescription=self.encryption.decrypt(a.encrypted_prescription),
                    referral_facility=a.referral_facility,
                    next_appointment=a.next_appointment,
                    assessed_at=a.assessed_at,
                )
                for a in row.assessments
            ),
            history=tuple(
                TransitionRecord(
                    SessionState(t["from"]), SessionState(t["to"]), SessionEvent(t["event"])
                )
                for t in row.transitions or []
            ),
            version=row.version,
        )

    # -- writing ------------------------------------------------------------

    def save(self, session: ScreeningSession) -> None:
        """Insert a new session or apply one workflow step to a stored one."""
        row = self.db.get(ScreeningSessionRecord, session.session_id)
        if row is None:
            if session.version != 0:
                raise ConcurrencyConflict(session.session_id, session.version - 1, None)
            row = ScreeningSessionRecord(
                id=session.session_id,
                patient_id=session.patient_id,
                pathway=session.pathway.value,
                version=0,
            )
            self.db.add(row)
        elif row.version != session.version - 1:
            raise ConcurrencyConflict(session.session_id, session.version - 1, row.version)

        row.state = session.state.value
        row.version = session.version
        row.transitions = [
            {"from": t.from_state.value, "to": t.to_state.value, "event": t.event.value}
            for t in session.history
        ]
        if session.payload is not None and row.pathway_payload is None:
            row.pathway_payload = dict(session.payload.raw)
        if session.classification is not None:
            row.category = session.classification.category.value
            row.category_referral = session.classification.requires_referral
        row.requires_referral = session.requires_referral

        # Append-only children: only records the row does not have yet
        for vitals in session.vitals_history[len(row.vitals):]:
            row.vitals.append(
                VitalRecord(
                    systolic=vitals.systolic,
                    diastolic=vitals.diastolic,
                    weight=vitals.weight,
                    height=vitals.height,
                    pulse_rate=vitals.pulse_rate,
                    temperature=vitals.temperature,
                    respiratory_rate=vitals.respiratory_rate,
                    notes=vitals.notes,
                    recorded_at=vitals.recorded_at or datetime.now(timezone.utc),
                )
            )
        for assessment in session.assessments[len(row.assessments):]:
            row.assessments.append(
                AssessmentRecord(
                    encrypted_clinical_assessment=self.encryption.encrypt(
                        assessment.clinical_assessment
                    ),
                    patient_status=assessment.patient_status.value,
                    encrypted_recommendations=self.encryption.encrypt(assessment.recommendations),
                    encrypted_prescription=self.encryption.encrypt(assessment.prescription),
                    referral_facility=assessment.referral_facility,
                    next_appointment=assessment.next_appointment,
                    assessed_at=assessment.assessed_at or datetime.now(timezone.utc),
                )
            )

        try:
            self.db.flush()
        except StaleDataError as exc:
            self.db.rollback()
            raise ConcurrencyConflict(session.session_id, session.version - 1, None) from exc
        logger.debug("Saved session %s at version %d", session.session_id, session.version)
