from __future__ import annotations

from typing import Iterable, Sequence

from onboardflow.utils.errors import ApiError, MissingPrerequisite
from onboardflow.workflow.models import (
    STATUS_COMPLETED,
    CalendarEvent,
    CandidateProfile,
    GateDecision,
    StepTemplate,
)
from onboardflow.workflow.resolver import DEFAULT_SIGNALS, SignalTable, match_event, resolve_status, sort_templates

REASON_OK = "OK"
REASON_UNKNOWN_STEP = "UNKNOWN_STEP"
REASON_PREVIOUS_INCOMPLETE = "PREVIOUS_STEP_INCOMPLETE"
REASON_MISSING_PREREQUISITE = "MISSING_PREREQUISITE"

# Step type -> candidate field holding the document that must exist before acting.
DOCUMENT_PREREQUISITES = {
    "OFFER_LETTER": "offerLetterPath",
}


def has_prerequisite_document(
    template: StepTemplate, candidate: CandidateProfile, events: Sequence[CalendarEvent]
) -> bool:
    field_name = DOCUMENT_PREREQUISITES.get(template.type)
    if not field_name:
        return True
    if str(getattr(candidate, field_name, "") or candidate.flag(field_name) or "").strip():
        return True
    event = match_event(events, template.type, template.stepNumber)
    return bool(event and event.attachmentPaths)


def can_act(
    templates: Iterable[StepTemplate],
    step_number: int,
    candidate: CandidateProfile,
    events: Sequence[CalendarEvent],
    signals: SignalTable = DEFAULT_SIGNALS,
) -> GateDecision:
    ordered = sort_templates(templates)
    idx = next((i for i, t in enumerate(ordered) if t.stepNumber == int(step_number)), -1)
    if idx < 0:
        return GateDecision(False, REASON_UNKNOWN_STEP)

    template = ordered[idx]
    if idx > 0:
        previous = ordered[idx - 1]
        if resolve_status(previous, candidate, events, signals) != STATUS_COMPLETED:
            return GateDecision(False, REASON_PREVIOUS_INCOMPLETE)

    if not has_prerequisite_document(template, candidate, events):
        return GateDecision(False, REASON_MISSING_PREREQUISITE)

    return GateDecision(True, REASON_OK)


def assert_can_act(
    templates: Iterable[StepTemplate],
    step_number: int,
    candidate: CandidateProfile,
    events: Sequence[CalendarEvent],
    signals: SignalTable = DEFAULT_SIGNALS,
) -> None:
    decision = can_act(templates, step_number, candidate, events, signals)
    if decision.allowed:
        return
    details = {"stepNumber": int(step_number), "reason": decision.reason}
    if decision.reason == REASON_MISSING_PREREQUISITE:
        raise MissingPrerequisite("Offer letter must be uploaded before this step", details=details)
    if decision.reason == REASON_UNKNOWN_STEP:
        raise ApiError("NOT_FOUND", "Step not configured for department", status=404, details=details)
    raise ApiError("STEP_LOCKED", "Previous step must be completed first", status=409, details=details)
