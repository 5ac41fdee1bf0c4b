from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from onboardflow.utils.datetime import ORG_TZ, iso_utc
from onboardflow.utils.errors import ApiError, MissingPrerequisite, TransportError
from onboardflow.workflow.gate import assert_can_act, has_prerequisite_document
from onboardflow.workflow.models import STATUS_COMPLETED, CalendarEvent, default_duration, event_type_for
from onboardflow.workflow.reconciler import auto_schedule_offer_reminder, render_text
from onboardflow.workflow.resolver import DEFAULT_SIGNALS, SignalTable, find_template, match_event, resolve_status

logger = logging.getLogger("onboardflow.completion")


@dataclass(frozen=True)
class CompletionResult:
    candidateId: str
    stepNumber: int
    status: str
    skipped: bool
    eventId: Optional[str] = None
    flag: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidateId": self.candidateId,
            "stepNumber": self.stepNumber,
            "status": self.status,
            "skipped": self.skipped,
            "eventId": self.eventId,
            "flag": self.flag,
        }


def _flag_value(name: str, now: datetime) -> Any:
    return now if name.endswith("At") else True


def _load(store, candidate_id: str, step_number: int):
    candidate = store.get_candidate(candidate_id)
    if candidate is None:
        raise ApiError("NOT_FOUND", "Candidate not found", status=404, details={"candidateId": candidate_id})
    templates = store.list_templates(candidate.department)
    template = find_template(templates, step_number)
    if template is None:
        raise ApiError(
            "NOT_FOUND",
            "Step not configured for department",
            status=404,
            details={"department": candidate.department, "stepNumber": int(step_number)},
        )
    return candidate, templates, template


def complete_step(
    store,
    candidate_id: str,
    step_number: int,
    *,
    enforce_order: bool = True,
    now: Optional[datetime] = None,
    event_id: Optional[str] = None,
    notes: str = "",
    signals: SignalTable = DEFAULT_SIGNALS,
    tz: timezone = ORG_TZ,
) -> CompletionResult:
    """Mark one step of one candidate completed.

    A step that already resolves to completed is left untouched. ``event_id`` pins the event to
    close (used by the sweep); otherwise the step's matched event is used. Event-only step types
    with no event get a COMPLETED event at ``now`` so the completion survives a refetch.
    """
    now = now or datetime.now(timezone.utc)
    candidate, templates, template = _load(store, candidate_id, step_number)
    events = store.list_events(candidate.candidateId)

    if resolve_status(template, candidate, events, signals) == STATUS_COMPLETED:
        logger.info("step already completed candidate=%s step=%s", candidate.candidateId, template.stepNumber)
        pinned = next((e for e in events if event_id and e.id == str(event_id)), None)
        if pinned is not None and pinned.is_open:
            # Completed through a candidate flag; the pinned event is stale.
            store.claim_event(pinned.id, {"status": "COMPLETED", "metadata.completedAt": iso_utc(now)})
        existing = match_event(events, template.type, template.stepNumber)
        return CompletionResult(
            candidate.candidateId, template.stepNumber, STATUS_COMPLETED, True, eventId=existing.id if existing else None
        )

    if enforce_order:
        assert_can_act(templates, template.stepNumber, candidate, events, signals)
    elif not has_prerequisite_document(template, candidate, events):
        raise MissingPrerequisite(
            "Offer letter must be uploaded before this step",
            details={"stepNumber": template.stepNumber, "reason": "MISSING_PREREQUISITE"},
        )

    event: Optional[CalendarEvent] = None
    if event_id:
        event = next((e for e in events if e.id == str(event_id)), None)
        if event is None:
            raise ApiError("NOT_FOUND", "Event not found", status=404, details={"eventId": event_id})
    else:
        event = match_event(events, template.type, template.stepNumber, open_only=True)

    completed_at = iso_utc(now)
    event_ref: Optional[str] = None
    if event is not None and event.is_open:
        fields: dict[str, Any] = {"status": "COMPLETED", "metadata.completedAt": completed_at}
        if notes:
            fields["metadata.completionNotes"] = notes
        if not store.claim_event(event.id, fields):
            logger.info("event id=%s was closed concurrently; skipping", event.id)
            return CompletionResult(candidate.candidateId, template.stepNumber, STATUS_COMPLETED, True, eventId=event.id)
        event_ref = event.id

    flag_name = next(iter(signals.completion_fields(template.type)), None)
    if flag_name:
        store.set_candidate_flags(candidate.candidateId, {flag_name: _flag_value(flag_name, now)})
    elif event_ref is None:
        created = store.create_event(
            {
                "candidateId": candidate.candidateId,
                "type": event_type_for(template.type),
                "stepNumber": template.stepNumber,
                "title": render_text(template.title, candidate),
                "description": render_text(template.description, candidate),
                "startTime": now,
                "endTime": now + timedelta(minutes=default_duration(template.type)),
                "attendees": [candidate.email] if candidate.email else [],
                "status": "COMPLETED",
                "metadata": {"completedAt": completed_at, "recordedOnCompletion": True},
            }
        )
        event_ref = created.id

    logger.info(
        "step completed candidate=%s step=%s type=%s event=%s flag=%s",
        candidate.candidateId,
        template.stepNumber,
        template.type,
        event_ref,
        flag_name,
    )

    if template.type == "OFFER_LETTER":
        refreshed = store.get_candidate(candidate.candidateId) or candidate
        auto_schedule_offer_reminder(store, templates, refreshed, now=now, tz=tz)

    return CompletionResult(
        candidate.candidateId, template.stepNumber, STATUS_COMPLETED, False, eventId=event_ref, flag=flag_name
    )


def auto_complete_due_events(
    store, now: Optional[datetime] = None, *, limit: int = 500, tz: timezone = ORG_TZ
) -> dict[str, Any]:
    """Complete every open event whose start time has passed. Per-event failures are collected."""
    now = now or datetime.now(timezone.utc)
    due = store.due_events(now, limit=limit)

    completed: list[dict[str, Any]] = []
    skipped: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []

    for i, ev in enumerate(due):
        try:
            if ev.stepNumber is None:
                if store.claim_event(ev.id, {"status": "COMPLETED", "metadata.completedAt": iso_utc(now)}):
                    completed.append({"eventId": ev.id, "candidateId": ev.candidateId, "stepNumber": None})
                else:
                    skipped.append({"eventId": ev.id, "candidateId": ev.candidateId})
                continue

            res = complete_step(store, ev.candidateId, ev.stepNumber, enforce_order=False, now=now, event_id=ev.id, tz=tz)
            row = {"eventId": ev.id, "candidateId": ev.candidateId, "stepNumber": ev.stepNumber}
            if res.skipped:
                skipped.append(row)
            else:
                completed.append(row)
        except Exception as e:
            if isinstance(e, ApiError):
                code, msg = e.code, e.message
            else:
                code, msg = "INTERNAL", str(e) or "Failed"
                logger.exception("auto-complete failed event=%s", ev.id)
            errors.append({"index": i, "eventId": ev.id, "candidateId": ev.candidateId, "code": code, "message": msg})
            if not isinstance(e, TransportError):
                store.mark_auto_complete_failed(ev.id, code, msg, now)

    logger.info(
        "auto-complete sweep due=%s completed=%s skipped=%s errors=%s",
        len(due),
        len(completed),
        len(skipped),
        len(errors),
    )
    return {"processed": len(due), "completed": completed, "skipped": skipped, "errors": errors}
