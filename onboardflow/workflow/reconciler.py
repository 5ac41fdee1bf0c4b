from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional, Sequence

from onboardflow.utils.datetime import ORG_TZ, iso_utc, to_utc
from onboardflow.utils.errors import ApiError, AutoScheduleBestEffort, ConflictingEvent, MissingPrerequisite
from onboardflow.workflow.gate import DOCUMENT_PREREQUISITES
from onboardflow.workflow.models import (
    OPEN_EVENT_STATUSES,
    CalendarEvent,
    CandidateProfile,
    StepTemplate,
    event_type_for,
)
from onboardflow.workflow.resolver import match_event
from onboardflow.workflow.schedule import RelativeToEvent, ScheduledSlot, compute_schedule

logger = logging.getLogger("onboardflow.reconciler")

PLACEHOLDERS = ("firstName", "lastName", "position", "department")


def render_text(text: str, candidate: CandidateProfile) -> str:
    out = str(text or "")
    for key in PLACEHOLDERS:
        out = out.replace("{{" + key + "}}", str(getattr(candidate, key, "") or ""))
    return out


def merge_attachments(
    existing: Iterable[str], *, added: Iterable[str] = (), removed: Iterable[str] = ()
) -> list[str]:
    drop = {str(p) for p in removed}
    out = [p for p in existing if p not in drop]
    for p in added:
        p = str(p or "").strip()
        if p and p not in out:
            out.append(p)
    return out


def create_event(
    store,
    template: StepTemplate,
    candidate: CandidateProfile,
    slot: ScheduledSlot,
    *,
    events: Optional[Sequence[CalendarEvent]] = None,
    attachments: Iterable[str] = (),
    attendees: Optional[Iterable[str]] = None,
    step_number: Optional[int] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    templates: Optional[Sequence[StepTemplate]] = None,
    tz: timezone = ORG_TZ,
) -> CalendarEvent:
    step_no = int(step_number) if step_number is not None else template.stepNumber
    if events is None:
        events = store.list_events(candidate.candidateId)

    existing = match_event(events, template.type, step_no, open_only=True)
    if existing is not None:
        raise ConflictingEvent(
            details={"eventId": existing.id, "stepNumber": step_no, "type": existing.type},
        )

    paths = merge_attachments([], added=attachments)
    doc_field = DOCUMENT_PREREQUISITES.get(template.type)
    if doc_field and not paths and not str(getattr(candidate, doc_field, "") or "").strip():
        raise MissingPrerequisite(
            "Attach the document or upload it to the candidate before scheduling",
            details={"stepNumber": step_no, "field": doc_field},
        )

    if attendees is None:
        attendees = [candidate.email] if candidate.email else []

    meta = dict(metadata or {})
    if slot.provisional:
        meta["provisional"] = True

    event = store.create_event(
        {
            "candidateId": candidate.candidateId,
            "type": event_type_for(template.type),
            "stepNumber": step_no,
            "title": render_text(title if title is not None else template.title, candidate),
            "description": render_text(description if description is not None else template.description, candidate),
            "startTime": slot.start,
            "endTime": slot.end,
            "attendees": list(attendees),
            "attachmentPaths": paths,
            "status": "SCHEDULED",
            "metadata": meta,
        }
    )
    logger.info(
        "event created id=%s candidate=%s step=%s type=%s start=%s",
        event.id,
        candidate.candidateId,
        step_no,
        event.type,
        iso_utc(event.startTime),
    )

    if template.type == "OFFER_LETTER" and templates is not None:
        auto_schedule_offer_reminder(store, templates, candidate, [*events, event], tz=tz)

    return event


def _require_editable(event: CalendarEvent) -> None:
    if event.status not in OPEN_EVENT_STATUSES:
        raise ApiError(
            "EVENT_CLOSED",
            f"Event is {event.status.lower()} and cannot be edited",
            status=409,
            details={"eventId": event.id, "status": event.status},
        )


def edit_event(
    store,
    event: CalendarEvent,
    *,
    slot: Optional[ScheduledSlot] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    add_attachments: Iterable[str] = (),
    remove_attachments: Iterable[str] = (),
) -> CalendarEvent:
    _require_editable(event)

    fields: dict[str, Any] = {
        "attachmentPaths": merge_attachments(event.attachmentPaths, added=add_attachments, removed=remove_attachments)
    }
    if title is not None:
        fields["title"] = title
    if description is not None:
        fields["description"] = description
    if slot is not None and (slot.start != event.startTime or slot.end != event.endTime):
        fields["startTime"] = slot.start
        fields["endTime"] = slot.end
        fields["status"] = "RESCHEDULED"
        if "autoCompleteError" in event.metadata:
            fields["metadata"] = {k: v for k, v in event.metadata.items() if k != "autoCompleteError"}

    updated = store.update_event(event.id, fields)
    if updated is None:
        raise ApiError("NOT_FOUND", "Event not found", status=404, details={"eventId": event.id})
    logger.info("event edited id=%s fields=%s", event.id, sorted(fields))
    return updated


def reschedule_event(
    store, event: CalendarEvent, local_start: datetime, duration_minutes: Optional[int] = None, *, tz=ORG_TZ
) -> CalendarEvent:
    start = to_utc(local_start, tz)
    minutes = int(duration_minutes) if duration_minutes else max(1, int((event.endTime - event.startTime).total_seconds() // 60))
    slot = ScheduledSlot(start=start, end=start + timedelta(minutes=minutes), localStart=local_start, mode="exact")
    return edit_event(store, event, slot=slot)


def cancel_event(store, event: CalendarEvent, reason: str = "", *, now: Optional[datetime] = None) -> CalendarEvent:
    if event.status == "CANCELLED":
        return event
    meta = dict(event.metadata)
    meta["cancelledAt"] = iso_utc(now or datetime.now(timezone.utc))
    meta["cancellationReason"] = str(reason or "")
    updated = store.update_event(event.id, {"status": "CANCELLED", "metadata": meta})
    if updated is None:
        raise ApiError("NOT_FOUND", "Event not found", status=404, details={"eventId": event.id})
    logger.info("event cancelled id=%s candidate=%s step=%s", event.id, event.candidateId, event.stepNumber)
    return updated


def complete_event(store, event: CalendarEvent, *, notes: str = "", now: Optional[datetime] = None) -> CalendarEvent:
    if event.status == "COMPLETED":
        return event
    if event.status == "CANCELLED":
        raise ApiError("EVENT_CLOSED", "Cancelled event cannot be completed", status=409, details={"eventId": event.id})
    meta = dict(event.metadata)
    meta["completedAt"] = iso_utc(now or datetime.now(timezone.utc))
    if notes:
        meta["completionNotes"] = notes
    updated = store.update_event(event.id, {"status": "COMPLETED", "metadata": meta})
    if updated is None:
        raise ApiError("NOT_FOUND", "Event not found", status=404, details={"eventId": event.id})
    return updated


def _schedule_offer_reminder(
    store,
    templates: Sequence[StepTemplate],
    candidate: CandidateProfile,
    events: Sequence[CalendarEvent],
    now: Optional[datetime],
    tz: timezone,
) -> Optional[CalendarEvent]:
    reminder = next((t for t in templates if t.type == "OFFER_REMINDER"), None)
    if reminder is None:
        return None
    if match_event(events, "OFFER_REMINDER") is not None:
        logger.debug("candidate=%s already has an offer reminder event", candidate.candidateId)
        return None

    offer = next((t for t in templates if t.type == "OFFER_LETTER"), None)
    mode = RelativeToEvent("OFFER_LETTER", offer.stepNumber if offer else None)
    slot = compute_schedule(mode, reminder, candidate, events, now=now, tz=tz)
    return create_event(
        store,
        reminder,
        candidate,
        slot,
        events=events,
        metadata={"autoScheduled": True},
        tz=tz,
    )


def auto_schedule_offer_reminder(
    store,
    templates: Sequence[StepTemplate],
    candidate: CandidateProfile,
    events: Optional[Sequence[CalendarEvent]] = None,
    *,
    now: Optional[datetime] = None,
    tz: timezone = ORG_TZ,
) -> Optional[CalendarEvent]:
    """Create the OFFER_REMINDER event once the offer letter is scheduled or sent.

    Best-effort: any failure is logged and swallowed. Safe to call repeatedly.
    """
    try:
        if events is None:
            events = store.list_events(candidate.candidateId)
        return _schedule_offer_reminder(store, templates, candidate, events, now, tz)
    except Exception as e:
        err = e if isinstance(e, ApiError) else AutoScheduleBestEffort(str(e) or type(e).__name__)
        logger.warning(
            "%s candidate=%s code=%s message=%s",
            AutoScheduleBestEffort.CODE,
            candidate.candidateId,
            err.code,
            err.message,
            exc_info=not isinstance(e, ApiError),
        )
        return None
