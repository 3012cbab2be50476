"""
Persistence models for screening sessions.

- One row per session; `version` is the optimistic-concurrency column
- Vitals and doctor assessments are append-only child tables
- Assessment free text is stored encrypted
- Audit log of every applied change
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from phc_screening.models.database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Screening session – one patient on one pathway
# ---------------------------------------------------------------------------
class ScreeningSessionRecord(Base):
    __tablename__ = "screening_sessions"

    id = Column(String(64), primary_key=True, comment="Session id shown to staff")
    patient_id = Column(String(64), nullable=False)
    pathway = Column(
        Enum("hypertension", "diabetes", "cervical", "breast", "psa", name="pathway_enum"),
        nullable=False,
    )
    state = Column(
        Enum("pending", "in_progress", "completed", "follow_up", name="session_state_enum"),
        nullable=False,
        default="pending",
    )
    version = Column(Integer, nullable=False, default=0)
    pathway_payload = Column(JSON, nullable=True, comment="Validated pathway form")
    category = Column(String(32), nullable=True)
    category_referral = Column(
        Boolean, nullable=True, comment="Referral flag from the pathway classifier alone"
    )
    requires_referral = Column(
        Boolean, nullable=False, default=False, comment="Classifier or doctor follow-up"
    )
    transitions = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    vitals = relationship(
        "VitalRecord",
        back_populates="session",
        order_by="VitalRecord.id",
        lazy="selectin",
    )
    assessments = relationship(
        "AssessmentRecord",
        back_populates="session",
        order_by="AssessmentRecord.id",
        lazy="selectin",
    )

    # Versions are assigned by the workflow; the ORM only checks them
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
    __table_args__ = (
        Index("ix_sessions_patient", "patient_id"),
        Index("ix_sessions_state", "state"),
    )


# ---------------------------------------------------------------------------
# Vitals – append-only measurement log
# ---------------------------------------------------------------------------
class VitalRecord(Base):
    __tablename__ = "vital_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), ForeignKey("screening_sessions.id"), nullable=False)
    systolic = Column(Float, nullable=False)
    diastolic = Column(Float, nullable=False)
    weight = Column(Float)
    height = Column(Float)
    pulse_rate = Column(Float)
    temperature = Column(Float)
    respiratory_rate = Column(Float)
    notes = Column(Text)
    recorded_at = Column(DateTime, default=_now, nullable=False)

    session = relationship("ScreeningSessionRecord", back_populates="vitals")


# ---------------------------------------------------------------------------
# Doctor assessment – append-only, latest wins for display
# ---------------------------------------------------------------------------
class AssessmentRecord(Base):
    __tablename__ = "doctor_assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(64), ForeignKey("screening_sessions.id"), nullable=False)
    encrypted_clinical_assessment = Column(Text, nullable=False)
    patient_status = Column(
        Enum("normal", "abnormal", "critical", "requires_followup", name="patient_status_enum"),
        nullable=False,
    )
    encrypted_recommendations = Column(Text)
    encrypted_prescription = Column(Text)
    referral_facility = Column(String(255))
    next_appointment = Column(String(32))
    assessed_at = Column(DateTime, default=_now, nullable=False)

    session = relationship("ScreeningSessionRecord", back_populates="assessments")


# ---------------------------------------------------------------------------
# Audit Log – immutable compliance trail
# ---------------------------------------------------------------------------
class AuditLog(Base):
    __tablename__ = "audit_log"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    actor = Column(String(128), nullable=False, comment="Staff role or service identity")
    action = Column(String(64), nullable=False, comment="e.g. vitals_recorded")
    resource_type = Column(String(64), nullable=False)
    resource_id = Column(String(64), nullable=False)
    detail = Column(JSON, comment="State change and classification")
    timestamp = Column(DateTime, default=_now, nullable=False)

    __table_args__ = (Index("ix_audit_timestamp", "timestamp"),)
