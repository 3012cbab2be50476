"""
Screening-session state machine.

    pending --vitals--> in_progress --pathway/assessment--> completed --flag--> follow_up

The machine is a lookup table of legal (state, event) pairs. Anything not in
the table is rejected with a TransitionError; nothing is partially applied and
no state ever moves backwards.
"""

from __future__ import annotations

import logging
from enum import Enum

from phc_screening.workflow.results import Result, TransitionError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FOLLOW_UP = "follow_up"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @property
    def is_open(self) -> bool:
        """Pending and in-progress sessions still accept clinical data."""
        return self in (SessionState.PENDING, SessionState.IN_PROGRESS)


class SessionEvent(str, Enum):
    VITALS_RECORDED = "vitals_recorded"
    PATHWAY_SUBMITTED = "pathway_submitted"
    ASSESSMENT_RECORDED = "assessment_recorded"
    FOLLOW_UP_FLAGGED = "follow_up_flagged"


_RANK = {
    SessionState.PENDING: 0,
    SessionState.IN_PROGRESS: 1,
    SessionState.COMPLETED: 2,
    SessionState.FOLLOW_UP: 3,
}

S, E = SessionState, SessionEvent

TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    (S.PENDING, E.VITALS_RECORDED): S.IN_PROGRESS,
    # Re-measured vitals replace the active record; state is unchanged
    (S.IN_PROGRESS, E.VITALS_RECORDED): S.IN_PROGRESS,
    (S.IN_PROGRESS, E.PATHWAY_SUBMITTED): S.COMPLETED,
    (S.IN_PROGRESS, E.ASSESSMENT_RECORDED): S.COMPLETED,
    # Assessments layer on top of a finished session
    (S.COMPLETED, E.ASSESSMENT_RECORDED): S.COMPLETED,
    (S.FOLLOW_UP, E.ASSESSMENT_RECORDED): S.FOLLOW_UP,
    (S.COMPLETED, E.FOLLOW_UP_FLAGGED): S.FOLLOW_UP,
    (S.FOLLOW_UP, E.FOLLOW_UP_FLAGGED): S.FOLLOW_UP,
}

_REJECTIONS: dict[tuple[SessionState, SessionEvent], str] = {
    (S.PENDING, E.PATHWAY_SUBMITTED): "Vitals must be recorded before the pathway screening",
    (S.PENDING, E.ASSESSMENT_RECORDED): "Vitals must be recorded before a doctor assessment",
    (S.PENDING, E.FOLLOW_UP_FLAGGED): "Only a completed session can move to follow-up",
    (S.IN_PROGRESS, E.FOLLOW_UP_FLAGGED): "Only a completed session can move to follow-up",
    (S.COMPLETED, E.VITALS_RECORDED): "Session is completed; vitals can no longer be recorded",
    (S.FOLLOW_UP, E.VITALS_RECORDED): "Session is in follow-up; vitals can no longer be recorded",
    (S.COMPLETED, E.PATHWAY_SUBMITTED): "Pathway screening has already been submitted",
    (S.FOLLOW_UP, E.PATHWAY_SUBMITTED): "Pathway screening has already been submitted",
}

for _key, _target in TRANSITIONS.items():
    if _target.rank < _key[0].rank:
        raise RuntimeError(f"Transition {_key} would regress to {_target.value}")


def transition(state: SessionState, event: SessionEvent) -> Result[SessionState]:
    """Return the state `event` moves `state` to, or a TransitionError."""
    state, event = SessionState(state), SessionEvent(event)
    target = TRANSITIONS.get((state, event))
    if target is None:
        message = _REJECTIONS.get(
            (state, event), f"'{event.value}' is not allowed while {state.value}"
        )
        logger.warning("Rejected %s in state %s: %s", event.value, state.value, message)
        return Result.failure(
            TransitionError.of(message, state=state.value, event=event.value)
        )
    if target != state:
        logger.info("Session state %s -> %s (%s)", state.value, target.value, event.value)
    return Result.success(target)


def allowed_events(state: SessionState) -> list[SessionEvent]:
    return [event for event in SessionEvent if (SessionState(state), event) in TRANSITIONS]
