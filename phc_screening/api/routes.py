"""
FastAPI routes – a thin transport over the screening service.

Every command route follows the same shape: load the session, hand it to
the service with the caller's role, map an error value to its HTTP status,
otherwise persist the new version, audit it, and return the session view.
The acting role arrives in the X-Staff-Role header; token handling happens
upstream.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query
from sqlalchemy import text
from sqlalchemy.orm import Session

from phc_screening.config import settings
from phc_screening.models.database import get_db
from phc_screening.schemas.api import (
    ActionResponse,
    AssessmentResponse,
    AuditEntryResponse,
    ClassificationResponse,
    CreateScreeningRequest,
    HealthResponse,
    PermissionsResponse,
    SessionResponse,
    VitalsResponse,
)
from phc_screening.services.audit import audit_trail, log_action
from phc_screening.services.permissions import parse_role
from phc_screening.services.screening import ScreeningOutcome, ScreeningService
from phc_screening.services.store import ConcurrencyConflict, SessionStore
from phc_screening.workflow.machine import SessionState, allowed_events
from phc_screening.workflow.pathways import Pathway
from phc_screening.workflow.results import (
    AuthorizationError,
    ScreeningError,
    TransitionError,
    ValidationError,
)
from phc_screening.workflow.session import ScreeningSession

logger = logging.getLogger(__name__)

router = APIRouter()

service = ScreeningService(bp_precedence=settings.BP_PRECEDENCE)

_STATUS_FOR_ERROR = {
    ValidationError: 422,
    AuthorizationError: 403,
    TransitionError: 409,
}


def _raise_for(error: ScreeningError) -> None:
    status = _STATUS_FOR_ERROR.get(type(error), 400)
    raise HTTPException(status_code=status, detail=error.to_dict())


def _session_view(session: ScreeningSession, role: str | None) -> SessionResponse:
    vitals = session.vitals
    assessment = session.assessment
    return SessionResponse(
        session_id=session.session_id,
        patient_id=session.patient_id,
        pathway=session.pathway.value,
        state=session.state.value,
        version=session.version,
        vitals=VitalsResponse(
            systolic=vitals.systolic,
            diastolic=vitals.diastolic,
            blood_pressure=vitals.blood_pressure,
            bp_category=vitals.bp_category(service.registry.bp_precedence).value,
            weight=vitals.weight,
            height=vitals.height,
            bmi=vitals.bmi,
            pulse_rate=vitals.pulse_rate,
            temperature=vitals.temperature,
            respiratory_rate=vitals.respiratory_rate,
            notes=vitals.notes,
            recorded_at=vitals.recorded_at,
        )
        if vitals
        else None,
        vitals_count=len(session.vitals_history),
        pathway_data=dict(session.payload.raw) if session.payload else None,
        classification=ClassificationResponse(**session.classification.to_dict())
        if session.classification
        else None,
        requires_referral=session.requires_referral,
        assessment=AssessmentResponse(
            clinical_assessment=assessment.clinical_assessment,
            patient_status=assessment.patient_status.value,
            recommendations=assessment.recommendations,
            prescription=assessment.prescription,
            referral_facility=assessment.referral_facility,
            next_appointment=assessment.next_appointment,
            assessed_at=assessment.assessed_at,
        )
        if assessment
        else None,
        assessment_count=len(session.assessments),
        allowed_events=[e.value for e in allowed_events(session.state)],
        actions=[ActionResponse(**a.to_dict()) for a in service.actions_for(session, role)],
    )


def _load(store: SessionStore, session_id: str) -> ScreeningSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Screening session not found")
    return session


def _commit(
    db: Session,
    store: SessionStore,
    previous: ScreeningSession | None,
    outcome: ScreeningOutcome,
    *,
    role: str | None,
    action: str,
) -> SessionResponse:
    """Persist a successful outcome with its audit entry, or raise its error."""
    if not outcome.ok:
        _raise_for(outcome.error)
    session = outcome.session
    try:
        store.save(session)
    except ConcurrencyConflict as exc:
        logger.warning("Conflict saving %s: %s", session.session_id, exc)
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    log_action(
        db,
        actor=role or "unknown",
        action=action,
        resource_type="ScreeningSession",
        resource_id=session.session_id,
        detail={
            "from": previous.state.value if previous else None,
            "to": session.state.value,
            "version": session.version,
            "category": outcome.classification.category.value
            if outcome.classification
            else None,
            "requires_referral": session.requires_referral,
        },
    )
    db.commit()
    return _session_view(session, role)


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """Basic health endpoint – verifies DB connectivity."""
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception:
        logger.exception("Database health check failed")
        db_status = "disconnected"
    return HealthResponse(
        status="healthy",
        environment=settings.ENVIRONMENT,
        database=db_status,
        bp_precedence=service.registry.bp_precedence.value,
    )


# ---------------------------------------------------------------------------
# Stateless queries
# ---------------------------------------------------------------------------

@router.get("/permissions/{role}", response_model=PermissionsResponse)
def get_permissions(role: str):
    """Capabilities granted to a role. Unknown roles get none."""
    engine = service.permissions
    return PermissionsResponse(
        role=role,
        display_name=engine.display_name(role),
        clinical=engine.is_clinical_role(role),
        capabilities=sorted(c.value for c in engine.capabilities_for(role)),
    )


@router.get("/actions", response_model=list[ActionResponse])
def get_actions(
    pathway: str = Query(...),
    state: SessionState = Query(...),
    role: str | None = Query(None),
):
    """Actions a role may take on a session in the given pathway and state."""
    if Pathway.parse(pathway) is None:
        raise HTTPException(status_code=422, detail=f"Unknown pathway: {pathway}")
    actions = service.resolver.actions_for(pathway, state, role)
    return [ActionResponse(**a.to_dict()) for a in actions]


@router.post("/classify/{pathway}", response_model=ClassificationResponse)
def classify_payload(pathway: str, payload: dict[str, Any] = Body(...)):
    """Validate and classify a pathway form without recording anything."""
    result = service.classify(pathway, payload)
    if not result.ok:
        _raise_for(result.error)
    return ClassificationResponse(**result.value.to_dict())


# ---------------------------------------------------------------------------
# Screening sessions
# ---------------------------------------------------------------------------

@router.post("/screenings", response_model=SessionResponse, status_code=201)
def create_screening(
    request: CreateScreeningRequest,
    x_staff_role: str | None = Header(None),
    db: Session = Depends(get_db),
):
    """Open a pending screening session on one pathway."""
    store = SessionStore(db, registry=service.registry)
    session_id = request.sessionId or f"SCR-{uuid.uuid4().hex[:10].upper()}"
    if store.exists(session_id):
        raise HTTPException(status_code=409, detail="Screening session already exists")

    outcome = service.create_session(session_id, request.patientId, request.pathway, x_staff_role)
    return _commit(db, store, None, outcome, role=x_staff_role, action="session_created")


@router.get("/screenings/{session_id}", response_model=SessionResponse)
def get_screening(
    session_id: str,
    x_staff_role: str | None = Header(None),
    db: Session = Depends(get_db),
):
    """Session view, with the actions available to the calling role."""
    session = _load(SessionStore(db, registry=service.registry), session_id)
    if parse_role(x_staff_role) is None:
        logger.info("Session %s viewed without a recognised role", session_id)
    return _session_view(session, x_staff_role)


@router.get("/screenings/{session_id}/audit", response_model=list[AuditEntryResponse])
def get_screening_audit(session_id: str, db: Session = Depends(get_db)):
    """Every applied change to a session, oldest first."""
    _load(SessionStore(db, registry=service.registry), session_id)
    return [
        AuditEntryResponse(
            actor=entry.actor,
            action=entry.action,
            detail=entry.detail,
            timestamp=entry.timestamp,
        )
        for entry in audit_trail(db, session_id)
    ]


@router.put("/screenings/{session_id}/vitals", response_model=SessionResponse)
def record_vitals(
    session_id: str,
    payload: dict[str, Any] = Body(...),
    x_staff_role: str | None = Header(None),
    db: Session = Depends(get_db),
):
    store = SessionStore(db, registry=service.registry)
    session = _load(store, session_id)
    outcome = service.record_vitals(
        session, payload, x_staff_role, recorded_at=datetime.now(timezone.utc)
    )
    return _commit(db, store, session, outcome, role=x_staff_role, action="vitals_recorded")


@router.post("/screenings/{session_id}/pathway", response_model=SessionResponse)
def submit_pathway(
    session_id: str,
    payload: dict[str, Any] = Body(...),
    x_staff_role: str | None = Header(None),
    db: Session = Depends(get_db),
):
    """Submit the pathway form; the session completes (or goes to follow-up)."""
    store = SessionStore(db, registry=service.registry)
    session = _load(store, session_id)
    outcome = service.submit_pathway(session, payload, x_staff_role)
    return _commit(db, store, session, outcome, role=x_staff_role, action="pathway_submitted")


@router.put("/screenings/{session_id}/doctor-assessment", response_model=SessionResponse)
def record_assessment(
    session_id: str,
    payload: dict[str, Any] = Body(...),
    x_staff_role: str | None = Header(None),
    db: Session = Depends(get_db),
):
    """Append a doctor assessment; the latest one is shown."""
    store = SessionStore(db, registry=service.registry)
    session = _load(store, session_id)
    outcome = service.record_assessment(
        session, payload, x_staff_role, assessed_at=datetime.now(timezone.utc)
    )
    return _commit(db, store, session, outcome, role=x_staff_role, action="assessment_recorded")
