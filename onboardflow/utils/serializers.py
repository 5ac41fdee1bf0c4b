from __future__ import annotations

from datetime import timezone
from typing import Any, Optional

from onboardflow.utils.datetime import ORG_TZ, iso_utc, local_iso
from onboardflow.workflow.models import CalendarEvent, CandidateProfile, StepInstance
from onboardflow.workflow.reconciler import render_text
from onboardflow.workflow.schedule import ScheduledSlot


def event_to_dict(event: Optional[CalendarEvent], tz: timezone = ORG_TZ) -> Optional[dict[str, Any]]:
    if event is None:
        return None
    return {
        "id": event.id,
        "candidateId": event.candidateId,
        "type": event.type,
        "stepNumber": event.stepNumber,
        "title": event.title,
        "description": event.description,
        "startTime": iso_utc(event.startTime),
        "endTime": iso_utc(event.endTime),
        "localStartTime": local_iso(event.startTime, tz),
        "localEndTime": local_iso(event.endTime, tz),
        "status": event.status,
        "attendees": list(event.attendees),
        "attachmentPaths": list(event.attachmentPaths),
        "metadata": event.metadata,
    }


def slot_to_dict(slot: ScheduledSlot, tz: timezone = ORG_TZ) -> dict[str, Any]:
    return {
        "mode": slot.mode,
        "startTime": iso_utc(slot.start),
        "endTime": iso_utc(slot.end),
        "localStartTime": local_iso(slot.start, tz),
        "durationMinutes": slot.durationMinutes,
        "provisional": slot.provisional,
    }


def step_to_dict(step: StepInstance, candidate: CandidateProfile, tz: timezone = ORG_TZ) -> dict[str, Any]:
    t = step.template
    return {
        "stepNumber": t.stepNumber,
        "type": t.type,
        "title": render_text(t.title, candidate),
        "description": render_text(t.description, candidate),
        "icon": t.icon,
        "isAuto": t.isAuto,
        "dueDateOffset": t.dueDateOffset,
        "scheduledTime": t.scheduledTime,
        "status": step.status,
        "canAct": step.gate.allowed,
        "reason": step.gate.reason,
        "event": event_to_dict(step.event, tz),
    }


def candidate_to_dict(candidate: CandidateProfile) -> dict[str, Any]:
    return {
        "candidateId": candidate.candidateId,
        "name": candidate.fullName,
        "email": candidate.email,
        "position": candidate.position,
        "department": candidate.department,
        "expectedJoiningDate": candidate.expectedJoiningDate.isoformat() if candidate.expectedJoiningDate else None,
        "hasOfferLetter": bool(candidate.offerLetterPath),
    }
