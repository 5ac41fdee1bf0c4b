from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from onboardflow.utils.errors import ApiError, MissingPrerequisite
from onboardflow.workflow.gate import assert_can_act, can_act
from onboardflow.workflow.models import CalendarEvent, CandidateProfile, StepTemplate
from onboardflow.workflow.resolver import resolve_status

START = datetime(2024, 2, 1, 3, 30, tzinfo=timezone.utc)

TEMPLATES = [
    StepTemplate(department="SALES", stepNumber=1, type="OFFER_LETTER"),
    StepTemplate(department="SALES", stepNumber=2, type="OFFER_REMINDER"),
    StepTemplate(department="SALES", stepNumber=3, type="WELCOME_EMAIL"),
    StepTemplate(department="SALES", stepNumber=5, type="CEO_INDUCTION"),
]


def _event(step_type, step, status="COMPLETED", attachments=()):
    return CalendarEvent(
        id=f"E{step}",
        candidateId="C1",
        type=step_type,
        stepNumber=step,
        startTime=START,
        endTime=START + timedelta(minutes=30),
        status=status,
        attachmentPaths=tuple(attachments),
    )


def test_first_step_needs_offer_document():
    bare = CandidateProfile(candidateId="C1")
    assert can_act(TEMPLATES, 1, bare, []).reason == "MISSING_PREREQUISITE"

    with_doc = CandidateProfile(candidateId="C1", offerLetterPath="offers/c1.pdf")
    assert can_act(TEMPLATES, 1, with_doc, []).allowed is True


def test_event_attachment_satisfies_document_check():
    bare = CandidateProfile(candidateId="C1")
    events = [_event("OFFER_LETTER", 1, "SCHEDULED", attachments=["uploads/offer.pdf"])]
    assert can_act(TEMPLATES, 1, bare, events).allowed is True


def test_gap_in_step_numbers_uses_previous_template():
    candidate = CandidateProfile(candidateId="C1", flags={"welcomeEmailSentAt": "2024-01-09"})
    assert can_act(TEMPLATES, 5, candidate, []).allowed is True
    assert can_act(TEMPLATES, 5, CandidateProfile(candidateId="C1"), []).reason == "PREVIOUS_STEP_INCOMPLETE"


def test_unknown_step():
    assert can_act(TEMPLATES, 4, CandidateProfile(candidateId="C1"), []).reason == "UNKNOWN_STEP"


@pytest.mark.parametrize(
    "flags,events",
    [
        ({}, []),
        ({"offerSentAt": "2024-02-01"}, []),
        ({"offerSentAt": "2024-02-01", "offerReminderSent": True}, []),
        ({}, [_event("OFFER_LETTER", 1), _event("OFFER_REMINDER", 2)]),
        ({"welcomeEmailSentAt": "x"}, [_event("OFFER_REMINDER", 2, "SCHEDULED")]),
    ],
)
def test_can_act_follows_previous_status(flags, events):
    candidate = CandidateProfile(candidateId="C1", offerLetterPath="offers/c1.pdf", flags=flags)
    ordered = sorted(TEMPLATES, key=lambda t: t.stepNumber)
    assert can_act(TEMPLATES, 1, candidate, events).allowed is True
    for prev, cur in zip(ordered, ordered[1:]):
        expected = resolve_status(prev, candidate, events) == "completed"
        assert can_act(TEMPLATES, cur.stepNumber, candidate, events).allowed is expected


def test_assert_can_act_errors():
    with pytest.raises(MissingPrerequisite) as exc:
        assert_can_act(TEMPLATES, 1, CandidateProfile(candidateId="C1"), [])
    assert exc.value.status == 422

    with pytest.raises(ApiError) as exc:
        assert_can_act(TEMPLATES, 3, CandidateProfile(candidateId="C1"), [])
    assert exc.value.code == "STEP_LOCKED"
    assert exc.value.details == {"stepNumber": 3, "reason": "PREVIOUS_STEP_INCOMPLETE"}
