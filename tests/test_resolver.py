from __future__ import annotations

from datetime import datetime, timedelta, timezone

from onboardflow.workflow.models import CalendarEvent, CandidateProfile, StepTemplate, normalize_step_type
from onboardflow.workflow.resolver import DEFAULT_SIGNALS, SignalTable, build_step_instances, match_event, resolve_status

START = datetime(2024, 2, 1, 3, 30, tzinfo=timezone.utc)


def _template(step_type, step):
    return StepTemplate(department="SALES", stepNumber=step, type=step_type)


def _event(step_type, step, status="SCHEDULED", event_id=None):
    return CalendarEvent(
        id=event_id or f"E{step}-{status}",
        candidateId="C1",
        type=step_type,
        stepNumber=step,
        startTime=START,
        endTime=START + timedelta(minutes=30),
        status=status,
    )


def _candidate(**flags):
    return CandidateProfile(candidateId="C1", flags=flags)


def test_completed_event_wins():
    t = _template("CEO_INDUCTION", 5)
    assert resolve_status(t, _candidate(), [_event("CEO_INDUCTION", 5, "COMPLETED")]) == "completed"


def test_flag_beats_scheduled_event():
    t = _template("OFFER_LETTER", 1)
    events = [_event("OFFER_LETTER", 1, "SCHEDULED")]
    assert resolve_status(t, _candidate(offerSentAt="2024-02-01T04:00:00Z"), events) == "completed"
    assert resolve_status(t, _candidate(), events) == "scheduled"


def test_rescheduled_event_counts_as_scheduled():
    t = _template("HR_INDUCTION", 3)
    assert resolve_status(t, _candidate(), [_event("HR_INDUCTION", 3, "RESCHEDULED")]) == "scheduled"


def test_pending_signals():
    whatsapp = _template("WHATSAPP_ADDITION", 6)
    assert resolve_status(whatsapp, _candidate(whatsappTaskCreated=True), []) == "pending"
    assert resolve_status(whatsapp, _candidate(whatsappTaskCreated=True, whatsappGroupsAdded=True), []) == "completed"

    form_reminder = _template("FORM_REMINDER", 8)
    assert resolve_status(form_reminder, _candidate(onboardingFormSentAt="2024-02-01"), []) == "pending"
    assert resolve_status(form_reminder, _candidate(), []) == "waiting"


def test_whatsapp_events_use_aliased_type():
    t = _template("WHATSAPP_ADDITION", 6)
    assert resolve_status(t, _candidate(), [_event("WHATSAPP_TASK", 6)]) == "scheduled"
    assert resolve_status(t, _candidate(), [_event("WHATSAPP_ADDITION", 6)]) == "waiting"


def test_cancelled_event_reverts_event_only_step():
    t = _template("CEO_INDUCTION", 5)
    assert resolve_status(t, _candidate(), [_event("CEO_INDUCTION", 5, "CANCELLED")]) == "waiting"


def test_cancelled_offer_with_flag_stays_completed():
    t = _template("OFFER_LETTER", 1)
    events = [_event("OFFER_LETTER", 1, "CANCELLED")]
    assert resolve_status(t, _candidate(offerSentAt="2024-02-01T04:00:00Z"), events) == "completed"


def test_same_type_steps_never_cross_resolve():
    first, second = _template("DEPARTMENT_INDUCTION", 4), _template("DEPARTMENT_INDUCTION", 9)
    events = [_event("DEPARTMENT_INDUCTION", 4, "COMPLETED")]
    assert resolve_status(first, _candidate(), events) == "completed"
    assert resolve_status(second, _candidate(), events) == "waiting"


def test_match_event_falls_back_to_type_only_without_step():
    events = [_event("OFFER_REMINDER", 2, "CANCELLED", "old"), _event("OFFER_REMINDER", 2, "SCHEDULED", "new")]
    assert match_event(events, "OFFER_REMINDER").id == "new"
    assert match_event(events, "OFFER_REMINDER", 3) is None


def test_custom_signal_table_adds_type_without_new_branches():
    signals = SignalTable(completion={**DEFAULT_SIGNALS.completion, "CHECKIN_CALL": ("checkinDoneAt",)})
    t = _template("CHECKIN_CALL", 10)
    assert resolve_status(t, _candidate(checkinDoneAt="2024-03-01"), [], signals) == "completed"
    assert resolve_status(t, _candidate(checkinDoneAt="2024-03-01"), []) == "waiting"


def test_build_step_instances_orders_and_gates():
    templates = [_template("WELCOME_EMAIL", 3), _template("OFFER_LETTER", 1), _template("OFFER_REMINDER", 2)]
    candidate = CandidateProfile(candidateId="C1", offerLetterPath="offers/c1.pdf", flags={"offerSentAt": "2024-02-01"})
    steps = build_step_instances(templates, candidate, [])
    assert [s.template.stepNumber for s in steps] == [1, 2, 3]
    assert [s.status for s in steps] == ["completed", "waiting", "waiting"]
    assert [s.gate.allowed for s in steps] == [True, True, False]


def test_normalize_step_type():
    assert normalize_step_type("manual") == "CUSTOM"
    assert normalize_step_type("whatsapp_task") == "WHATSAPP_ADDITION"
    assert normalize_step_type("offer letter") == "OFFER_LETTER"
    assert normalize_step_type("SOMETHING_NEW") == "CUSTOM"
