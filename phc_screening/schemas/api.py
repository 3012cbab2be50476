"""Pydantic models for API request/response serialization."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class CreateScreeningRequest(BaseModel):
    """Open a screening session for a registered patient."""
    patientId: str = Field(..., min_length=1)
    pathway: str = Field(..., description="Pathway code or screening-type name")
    sessionId: str | None = Field(None, max_length=64)


# Vitals, pathway and assessment bodies are passed through as plain dicts:
# their schemas live in phc_screening.schemas.pathways and are enforced by
# the workflow so field-level errors come back in one consistent shape.


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ActionResponse(BaseModel):
    id: str
    label: str
    icon: str
    color: str
    capability: str


class ClassificationResponse(BaseModel):
    pathway: str
    category: str
    label: str
    requires_referral: bool
    clinician_flagged: bool = False


class VitalsResponse(BaseModel):
    systolic: float
    diastolic: float
    blood_pressure: str
    bp_category: str
    weight: float | None = None
    height: float | None = None
    bmi: float | None = None
    pulse_rate: float | None = None
    temperature: float | None = None
    respiratory_rate: float | None = None
    notes: str | None = None
    recorded_at: datetime | None = None


class AssessmentResponse(BaseModel):
    clinical_assessment: str
    patient_status: str
    recommendations: str | None = None
    prescription: str | None = None
    referral_facility: str | None = None
    next_appointment: str | None = None
    assessed_at: datetime | None = None


class SessionResponse(BaseModel):
    session_id: str
    patient_id: str
    pathway: str
    state: str
    version: int
    vitals: VitalsResponse | None = None
    vitals_count: int = 0
    pathway_data: dict[str, Any] | None = None
    classification: ClassificationResponse | None = None
    requires_referral: bool = False
    assessment: AssessmentResponse | None = None
    assessment_count: int = 0
    allowed_events: list[str] = []
    actions: list[ActionResponse] = []


class AuditEntryResponse(BaseModel):
    actor: str
    action: str
    detail: dict[str, Any] | None = None
    timestamp: datetime


class PermissionsResponse(BaseModel):
    role: str
    display_name: str
    clinical: bool
    capabilities: list[str]


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str = "healthy"
    environment: str
    database: str = "connected"
    bp_precedence: str
