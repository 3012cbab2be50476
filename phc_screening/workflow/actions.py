"""
Action resolver: which next steps a role may take on a session.

Candidates depend only on (pathway, state) and are listed in a fixed order:
record vitals, the pathway's own screening action, then doctor assessment.
Anything the role lacks the capability for is dropped, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass

from phc_screening.services.permissions import Capability, PermissionEngine, Role
from phc_screening.services.permissions import permissions as default_permissions
from phc_screening.workflow.machine import SessionState
from phc_screening.workflow.pathways import Pathway, PathwayRegistry
from phc_screening.workflow.pathways import registry as default_registry


@dataclass(frozen=True)
class Action:
    id: str
    label: str
    icon: str
    color: str
    capability: Capability

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "label": self.label,
            "icon": self.icon,
            "color": self.color,
            "capability": self.capability.value,
        }


RECORD_VITALS = Action("vitals", "Record Vitals", "heart", "teal", Capability.VITALS_RECORD)
DOCTOR_ASSESSMENT = Action(
    "assessment", "Doctor Assessment", "stethoscope", "indigo", Capability.ASSESSMENT_CREATE
)

# Presentation of each pathway's screening action
_PATHWAY_ACTIONS = {
    Pathway.HYPERTENSION: ("BP Screening", "activity", "red"),
    Pathway.DIABETES: ("Blood Sugar Test", "flask", "orange"),
    Pathway.CERVICAL: ("Cervical Screening", "clipboard", "pink"),
    Pathway.BREAST: ("Breast Exam", "search", "rose"),
    Pathway.PSA: ("PSA Test", "flask", "blue"),
}


class ActionResolver:
    def __init__(
        self,
        permissions: PermissionEngine | None = None,
        registry: PathwayRegistry | None = None,
    ):
        self.permissions = permissions or default_permissions
        self.registry = registry or default_registry

    def pathway_action(self, pathway: Pathway) -> Action:
        label, icon, color = _PATHWAY_ACTIONS[pathway]
        return Action(pathway.value, label, icon, color, self.registry.capability_for(pathway))

    def candidates(self, pathway: Pathway | str, state: SessionState | str) -> list[Action]:
        """Every action legal in this state, before any role filtering."""
        state = SessionState(state)
        parsed = Pathway.parse(pathway)
        actions: list[Action] = []
        if state.is_open:
            actions.append(RECORD_VITALS)
            if parsed is not None:
                actions.append(self.pathway_action(parsed))
        if state is SessionState.IN_PROGRESS:
            actions.append(DOCTOR_ASSESSMENT)
        return actions

    def actions_for(
        self,
        pathway: Pathway | str,
        state: SessionState | str,
        role: Role | str | None,
    ) -> list[Action]:
        granted = self.permissions.capabilities_for(role)
        return [a for a in self.candidates(pathway, state) if a.capability in granted]
