"""
Role-based permission engine.

Every staff role owns a fixed set of capabilities. The table is built once
at import time and never mutated; changing what a role may do is a
deployment change, not a runtime one.

Denial is expressed as a missing capability: an unknown role simply has no
capabilities, and none of the queries below ever raise.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    HIM_OFFICER = "him_officer"
    NURSE = "nurse"
    DOCTOR = "doctor"
    MLS = "mls"
    CHO = "cho"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


class Capability(str, Enum):
    # Patient / client management
    PATIENT_REGISTER = "patient:register"
    PATIENT_VIEW = "patient:view"
    PATIENT_EDIT = "patient:edit"
    # Vitals
    VITALS_RECORD = "vitals:record"
    VITALS_VIEW = "vitals:view"
    VITALS_EDIT = "vitals:edit"
    # Doctor assessment
    ASSESSMENT_CREATE = "assessment:create"
    ASSESSMENT_VIEW = "assessment:view"
    ASSESSMENT_EDIT = "assessment:edit"
    # Lab pathways
    LAB_DIABETES_CREATE = "lab:diabetes:create"
    LAB_DIABETES_VIEW = "lab:diabetes:view"
    LAB_PSA_CREATE = "lab:psa:create"
    LAB_PSA_VIEW = "lab:psa:view"
    # Clinical pathways
    SCREENING_HYPERTENSION_CREATE = "screening:hypertension:create"
    SCREENING_HYPERTENSION_VIEW = "screening:hypertension:view"
    SCREENING_CERVICAL_CREATE = "screening:cervical:create"
    SCREENING_CERVICAL_VIEW = "screening:cervical:view"
    SCREENING_BREAST_CREATE = "screening:breast:create"
    SCREENING_BREAST_VIEW = "screening:breast:view"
    # Screening management
    SCREENING_CREATE = "screening:create"
    SCREENING_VIEW = "screening:view"
    SCREENING_ROUTE = "screening:route"
    SCREENING_COMPLETE = "screening:complete"
    # Appointments
    APPOINTMENT_CREATE = "appointment:create"
    APPOINTMENT_VIEW = "appointment:view"
    APPOINTMENT_EDIT = "appointment:edit"
    # Admin only
    STAFF_MANAGE = "staff:manage"
    FACILITY_MANAGE = "facility:manage"
    SYSTEM_ADMIN = "system:admin"


_DISPLAY_NAMES = {
    Role.ADMIN: "Administrator",
    Role.HIM_OFFICER: "HIM Officer",
    Role.NURSE: "Nurse",
    Role.DOCTOR: "Doctor",
    Role.MLS: "Medical Lab Scientist",
    Role.CHO: "Community Health Officer",
}

C = Capability

# Viewing rights shared by every clinical role
_CLINICAL_VIEW = {
    C.PATIENT_VIEW,
    C.VITALS_VIEW,
    C.ASSESSMENT_VIEW,
    C.SCREENING_VIEW,
    C.APPOINTMENT_VIEW,
    C.LAB_DIABETES_VIEW,
    C.LAB_PSA_VIEW,
    C.SCREENING_HYPERTENSION_VIEW,
    C.SCREENING_CERVICAL_VIEW,
    C.SCREENING_BREAST_VIEW,
}

# ---------------------------------------------------------------------------
# Role -> capability table
# ---------------------------------------------------------------------------
ROLE_CAPABILITIES: Mapping[Role, frozenset[Capability]] = {
    # Admin has every capability
    Role.ADMIN: frozenset(Capability),
    # Registration and routing; read-only on clinical data
    Role.HIM_OFFICER: frozenset(
        _CLINICAL_VIEW
        | {
            C.PATIENT_REGISTER,
            C.PATIENT_EDIT,
            C.SCREENING_CREATE,
            C.SCREENING_ROUTE,
            C.APPOINTMENT_CREATE,
            C.APPOINTMENT_EDIT,
        }
    ),
    # Vitals plus cervical screening
    Role.NURSE: frozenset(
        _CLINICAL_VIEW
        | {
            C.VITALS_RECORD,
            C.VITALS_EDIT,
            C.SCREENING_CERVICAL_CREATE,
        }
    ),
    # Assessments, vitals when needed, clinical breast exam
    Role.DOCTOR: frozenset(
        _CLINICAL_VIEW
        | {
            C.VITALS_RECORD,
            C.VITALS_EDIT,
            C.ASSESSMENT_CREATE,
            C.ASSESSMENT_EDIT,
            C.SCREENING_COMPLETE,
            C.APPOINTMENT_CREATE,
            C.APPOINTMENT_EDIT,
            C.SCREENING_BREAST_CREATE,
        }
    ),
    # Lab tests only
    Role.MLS: frozenset(
        _CLINICAL_VIEW
        | {
            C.LAB_DIABETES_CREATE,
            C.LAB_PSA_CREATE,
        }
    ),
    # Community health officers: vitals and hypertension screening
    Role.CHO: frozenset(
        _CLINICAL_VIEW
        | {
            C.VITALS_RECORD,
            C.VITALS_EDIT,
            C.SCREENING_HYPERTENSION_CREATE,
        }
    ),
}

CLINICAL_ROLES = frozenset(
    {Role.HIM_OFFICER, Role.NURSE, Role.DOCTOR, Role.MLS, Role.CHO}
)


def parse_role(role: Role | str | None) -> Role | None:
    """Coerce a role name to a Role; anything unrecognised becomes None."""
    if role is None or isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def _parse_capability(capability: Capability | str) -> Capability | None:
    if isinstance(capability, Capability):
        return capability
    try:
        return Capability(capability)
    except ValueError:
        return None


class PermissionEngine:
    """Answers authorization queries against a read-only role table."""

    def __init__(self, table: Mapping[Role, frozenset[Capability]] | None = None):
        self._table = dict(table if table is not None else ROLE_CAPABILITIES)

    def capabilities_for(self, role: Role | str | None) -> frozenset[Capability]:
        parsed = parse_role(role)
        if parsed is None:
            if role is not None:
                logger.debug("Unknown role %r - denying by default", role)
            return frozenset()
        return self._table.get(parsed, frozenset())

    def has(self, role: Role | str | None, capability: Capability | str) -> bool:
        parsed = _parse_capability(capability)
        return parsed is not None and parsed in self.capabilities_for(role)

    def has_any(
        self, role: Role | str | None, capabilities: Iterable[Capability | str]
    ) -> bool:
        return any(self.has(role, c) for c in capabilities)

    def has_all(
        self, role: Role | str | None, capabilities: Iterable[Capability | str]
    ) -> bool:
        if parse_role(role) is None:
            return False
        return all(self.has(role, c) for c in capabilities)

    def is_clinical_role(self, role: Role | str | None) -> bool:
        return parse_role(role) in CLINICAL_ROLES

    def display_name(self, role: Role | str | None) -> str:
        parsed = parse_role(role)
        return parsed.display_name if parsed is not None else "Unknown"


permissions = PermissionEngine()
