"""Tests for the screening workflow – sessions end to end, no database required."""

from datetime import datetime, timezone

from phc_screening.services.classification import BloodSugarCategory
from phc_screening.services.permissions import Role
from phc_screening.workflow.actions import ActionResolver
from phc_screening.workflow.machine import SessionEvent, SessionState
from phc_screening.workflow.pathways import Pathway
from phc_screening.workflow.results import TransitionError, ValidationError
from phc_screening.workflow.session import PatientStatus, ScreeningWorkflow

workflow = ScreeningWorkflow()


def _make_vitals(systolic=120, diastolic=80, **extra):
    return {"systolicBp": systolic, "diastolicBp": diastolic, **extra}


def _make_session(pathway=Pathway.DIABETES, with_vitals=False):
    session = workflow.create("SCR-001", "PAT-001", pathway).unwrap()
    if with_vitals:
        session = workflow.record_vitals(session, _make_vitals()).unwrap()
    return session


def test_new_session_is_pending():
    session = _make_session()
    assert session.state is SessionState.PENDING
    assert session.version == 0
    assert session.vitals is None


def test_unknown_pathway_rejected_at_creation():
    result = workflow.create("SCR-002", "PAT-001", "eye screening")
    assert isinstance(result.error, ValidationError)
    assert result.error.field_names == ["pathway"]


def test_diabetes_session_end_to_end():
    """
    Vitals, then a fasting glucose of 130: completed, no referral, no HIM
    actions. A follow-up assessment on the completed session then moves it to
    follow-up without touching the pathway classification.
    """
    session = _make_session()

    session = workflow.record_vitals(session, _make_vitals(120, 80)).unwrap()
    assert session.state is SessionState.IN_PROGRESS

    session = workflow.submit_pathway(
        session, {"testType": "fasting", "bloodSugarLevel": 130, "testTime": "08:30"}
    ).unwrap()

    assert session.state is SessionState.COMPLETED
    assert session.classification.category is BloodSugarCategory.DIABETES
    assert session.requires_referral is False
    assert session.version == 2
    assert ActionResolver().actions_for(session.pathway, session.state, Role.HIM_OFFICER) == []

    completed = session
    session = workflow.record_assessment(
        session,
        {"clinicalAssessment": "Confirm with HbA1c", "patientStatus": "requires_followup"},
    ).unwrap()

    assert session.state is SessionState.FOLLOW_UP
    assert session.classification == completed.classification
    assert session.classification.requires_referral is False
    assert session.requires_referral is True
    assert [(h.from_state, h.to_state, h.event) for h in session.history[-2:]] == [
        (SessionState.COMPLETED, SessionState.COMPLETED, SessionEvent.ASSESSMENT_RECORDED),
        (SessionState.COMPLETED, SessionState.FOLLOW_UP, SessionEvent.FOLLOW_UP_FLAGGED),
    ]
    assert ActionResolver().actions_for(session.pathway, session.state, Role.HIM_OFFICER) == []


def test_vitals_can_be_remeasured_while_in_progress():
    session = _make_session(with_vitals=True)
    session = workflow.record_vitals(session, _make_vitals(132, 86, weight=80, height=180)).unwrap()

    assert session.state is SessionState.IN_PROGRESS
    assert len(session.vitals_history) == 2
    assert session.vitals.blood_pressure == "132/86"
    assert session.vitals.bmi == 24.7


def test_recorded_at_is_kept():
    stamp = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)
    session = workflow.record_vitals(_make_session(), _make_vitals(), recorded_at=stamp).unwrap()
    assert session.vitals.recorded_at == stamp


def test_invalid_vitals_leave_session_untouched():
    session = _make_session()
    result = workflow.record_vitals(session, {"systolicBp": 120})

    assert isinstance(result.error, ValidationError)
    assert result.error.field_names == ["diastolicBp"]
    assert session.state is SessionState.PENDING
    assert session.version == 0


def test_vitals_systolic_must_exceed_diastolic():
    result = workflow.record_vitals(_make_session(), _make_vitals(80, 90))
    assert result.error.field_names == ["diastolicBp"]


def test_pathway_before_vitals_is_transition_error():
    result = workflow.submit_pathway(
        _make_session(), {"testType": "fasting", "bloodSugarLevel": 95, "testTime": "08:30"}
    )
    assert isinstance(result.error, TransitionError)
    assert result.error.details["state"] == "pending"


def test_invalid_pathway_payload_keeps_state():
    session = _make_session(with_vitals=True)
    result = workflow.submit_pathway(session, {"testType": "fasting"})

    assert isinstance(result.error, ValidationError)
    assert set(result.error.field_names) == {"bloodSugarLevel", "testTime"}
    assert session.state is SessionState.IN_PROGRESS
    assert session.payload is None


def test_pathway_cannot_be_submitted_twice():
    session = _make_session(with_vitals=True)
    raw = {"testType": "random", "bloodSugarLevel": 110, "testTime": "14:00"}
    session = workflow.submit_pathway(session, raw).unwrap()

    result = workflow.submit_pathway(session, raw)
    assert isinstance(result.error, TransitionError)


def test_vitals_rejected_after_completion():
    session = _make_session(with_vitals=True)
    session = workflow.submit_pathway(
        session, {"testType": "random", "bloodSugarLevel": 110, "testTime": "14:00"}
    ).unwrap()

    result = workflow.record_vitals(session, _make_vitals())
    assert isinstance(result.error, TransitionError)
    assert len(session.vitals_history) == 1


def test_referral_carries_session_to_follow_up():
    """A Stage 2 reading completes the session and flags it in one call."""
    session = _make_session(Pathway.HYPERTENSION, with_vitals=True)
    session = workflow.submit_pathway(
        session,
        {"systolicBp1": 150, "diastolicBp1": 95, "position1": "sitting", "armUsed1": "left"},
    ).unwrap()

    assert session.state is SessionState.FOLLOW_UP
    assert session.requires_referral
    assert [(h.from_state, h.to_state) for h in session.history[-2:]] == [
        (SessionState.IN_PROGRESS, SessionState.COMPLETED),
        (SessionState.COMPLETED, SessionState.FOLLOW_UP),
    ]
    assert session.version == 2


def test_assessment_before_vitals_is_transition_error():
    """Ordering is checked before the payload, so even a bad payload reports ordering."""
    result = workflow.record_assessment(_make_session(), {})
    assert isinstance(result.error, TransitionError)


def test_assessment_completes_in_progress_session():
    session = _make_session(with_vitals=True)
    session = workflow.record_assessment(session, {"clinicalAssessment": "Well patient"}).unwrap()

    assert session.state is SessionState.COMPLETED
    assert session.assessment.patient_status is PatientStatus.NORMAL


def test_followup_assessment_moves_to_follow_up():
    session = _make_session(with_vitals=True)
    session = workflow.record_assessment(
        session,
        {"clinicalAssessment": "Persistent headaches", "patientStatus": "requires_followup"},
    ).unwrap()

    assert session.state is SessionState.FOLLOW_UP
    assert session.requires_referral
    assert [h.event for h in session.history] == [
        SessionEvent.VITALS_RECORDED,
        SessionEvent.ASSESSMENT_RECORDED,
        SessionEvent.FOLLOW_UP_FLAGGED,
    ]
    assert ActionResolver().actions_for(session.pathway, session.state, Role.HIM_OFFICER) == []


def test_latest_assessment_wins():
    session = _make_session(with_vitals=True)
    session = workflow.record_assessment(session, {"clinicalAssessment": "First look"}).unwrap()
    session = workflow.record_assessment(
        session, {"clinicalAssessment": "Second opinion", "patientStatus": "abnormal"}
    ).unwrap()

    assert len(session.assessments) == 2
    assert session.assessment.clinical_assessment == "Second opinion"
    assert session.state is SessionState.COMPLETED


def test_blank_assessment_rejected():
    session = _make_session(with_vitals=True)
    result = workflow.record_assessment(session, {"clinicalAssessment": "   "})
    assert result.error.field_names == ["clinicalAssessment"]


def test_operations_never_modify_their_input():
    session = _make_session()
    updated = workflow.record_vitals(session, _make_vitals()).unwrap()

    assert session.state is SessionState.PENDING
    assert session.vitals_history == ()
    assert updated is not session
    assert updated.version == session.version + 1


def test_state_never_regresses_across_a_session():
    session = _make_session(Pathway.PSA)
    ranks = [session.state.rank]
    steps = [
        lambda s: workflow.record_vitals(s, _make_vitals()),
        lambda s: workflow.record_vitals(s, _make_vitals(125, 82)),
        lambda s: workflow.submit_pathway(
            s, {"psaLevel": 12.0, "patientAge": 66, "collectionTime": "10:00", "normalRangeMax": 4.0}
        ),
        lambda s: workflow.record_assessment(s, {"clinicalAssessment": "Refer to urology"}),
        lambda s: workflow.record_vitals(s, _make_vitals()),
    ]
    for step in steps:
        result = step(session)
        if result.ok:
            session = result.value
        ranks.append(session.state.rank)

    assert ranks == sorted(ranks)
    assert session.state is SessionState.FOLLOW_UP
