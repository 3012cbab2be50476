"""
Screening service: the single entry point the outer layers call.

Wraps the workflow with the authorization check for each operation and
shapes every call's result into one ScreeningOutcome: new state, category,
referral flag, errors and the actions now available to the caller's role.
Performs no I/O; persistence and auditing are the caller's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from phc_screening.services.classification import BpPrecedence
from phc_screening.services.permissions import Capability, PermissionEngine, Role
from phc_screening.services.permissions import permissions as default_permissions
from phc_screening.workflow.actions import Action, ActionResolver
from phc_screening.workflow.pathways import Classification, Pathway, PathwayRegistry
from phc_screening.workflow.results import (
    AuthorizationError,
    Result,
    ScreeningError,
)
from phc_screening.workflow.session import ScreeningSession, ScreeningWorkflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScreeningOutcome:
    """What the presentation layer needs after any screening operation."""

    session: ScreeningSession | None
    actions: list[Action] = field(default_factory=list)
    error: ScreeningError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def state(self) -> str | None:
        return self.session.state.value if self.session else None

    @property
    def classification(self) -> Classification | None:
        return self.session.classification if self.session else None

    def to_dict(self) -> dict[str, Any]:
        classification = self.classification
        return {
            "session_id": self.session.session_id if self.session else None,
            "state": self.state,
            "category": classification.category.value if classification else None,
            "requires_referral": self.session.requires_referral if self.session else False,
            "error": self.error.to_dict() if self.error else None,
            "actions": [a.to_dict() for a in self.actions],
        }


class ScreeningService:
    def __init__(
        self,
        permissions: PermissionEngine | None = None,
        bp_precedence: BpPrecedence | str = BpPrecedence.GUIDELINE,
    ):
        self.permissions = permissions or default_permissions
        self.registry = PathwayRegistry(bp_precedence)
        self.workflow = ScreeningWorkflow(self.registry)
        self.resolver = ActionResolver(self.permissions, self.registry)

    # -- queries ------------------------------------------------------------

    def actions_for(self, session: ScreeningSession, role: Role | str | None) -> list[Action]:
        return self.resolver.actions_for(session.pathway, session.state, role)

    def classify(self, pathway: Pathway | str, raw: Any) -> Result[Classification]:
        """Validate and classify a payload without touching any session."""
        validated = self.registry.validate(pathway, raw)
        if not validated.ok:
            return Result.failure(validated.error)
        return Result.success(self.registry.assess(validated.value))

    # -- commands -----------------------------------------------------------

    def _outcome(
        self,
        previous: ScreeningSession | None,
        result: Result[ScreeningSession],
        role: Role | str | None,
    ) -> ScreeningOutcome:
        session = result.value if result.ok else previous
        actions = self.actions_for(session, role) if session is not None else []
        return ScreeningOutcome(session=session, actions=actions, error=result.error)

    def _denied(
        self, session: ScreeningSession | None, role: Role | str | None, capability: Capability
    ) -> ScreeningOutcome | None:
        if self.permissions.has(role, capability):
            return None
        logger.warning("Denied %s to role %r", capability.value, role)
        role_name = role.value if isinstance(role, Role) else role
        return self._outcome(
            session, Result.failure(AuthorizationError.of(role_name, capability.value)), role
        )

    def create_session(
        self, session_id: str, patient_id: str, pathway: Pathway | str, role: Role | str | None
    ) -> ScreeningOutcome:
        denied = self._denied(None, role, Capability.SCREENING_CREATE)
        if denied:
            return denied
        return self._outcome(None, self.workflow.create(session_id, patient_id, pathway), role)

    def record_vitals(
        self,
        session: ScreeningSession,
        raw: Any,
        role: Role | str | None,
        recorded_at: datetime | None = None,
    ) -> ScreeningOutcome:
        denied = self._denied(session, role, Capability.VITALS_RECORD)
        if denied:
            return denied
        return self._outcome(session, self.workflow.record_vitals(session, raw, recorded_at), role)

    def submit_pathway(
        self, session: ScreeningSession, raw: Any, role: Role | str | None
    ) -> ScreeningOutcome:
        denied = self._denied(session, role, self.registry.capability_for(session.pathway))
        if denied:
            return denied
        return self._outcome(session, self.workflow.submit_pathway(session, raw), role)

    def record_assessment(
        self,
        session: ScreeningSession,
        raw: Any,
        role: Role | str | None,
        assessed_at: datetime | None = None,
    ) -> ScreeningOutcome:
        denied = self._denied(session, role, Capability.ASSESSMENT_CREATE)
        if denied:
            return denied
        return self._outcome(
            session, self.workflow.record_assessment(session, raw, assessed_at), role
        )
