from __future__ import annotations

from datetime import timedelta

from flask import Blueprint, current_app, jsonify

from onboardflow.db import get_store
from onboardflow.utils.datetime import to_local
from onboardflow.utils.errors import ApiError
from onboardflow.utils.serializers import candidate_to_dict, event_to_dict, slot_to_dict, step_to_dict
from onboardflow.utils.validators import (
    optional_json,
    parse_positive_int,
    parse_schedule_mode,
    parse_str_list,
)
from onboardflow.workflow.completion import complete_step
from onboardflow.workflow.reconciler import cancel_event, create_event, edit_event
from onboardflow.workflow.resolver import build_step_instances, find_template, match_event, sort_templates
from onboardflow.workflow.schedule import ScheduledSlot, compute_schedule

workflow_bp = Blueprint("workflow", __name__)


def _load(candidate_id: str, step_number: int | None = None):
    store = get_store()
    candidate = store.get_candidate(candidate_id)
    if candidate is None:
        raise ApiError("NOT_FOUND", "Candidate not found", status=404, details={"candidateId": candidate_id})
    templates = store.list_templates(candidate.department)
    template = None
    if step_number is not None:
        template = find_template(templates, step_number)
        if template is None:
            raise ApiError(
                "NOT_FOUND",
                "Step not configured for department",
                status=404,
                details={"department": candidate.department, "stepNumber": step_number},
            )
    events = store.list_events(candidate.candidateId)
    return store, candidate, templates, template, events


def _step_event(events, template):
    return match_event(events, template.type, template.stepNumber, open_only=True) or match_event(
        events, template.type, template.stepNumber
    )


def _duration(body) -> int | None:
    return parse_positive_int(body.get("durationMinutes"), field="durationMinutes")


@workflow_bp.get("/departments/<department>/steps")
def department_steps(department: str):
    templates = sort_templates(get_store().list_templates(department))
    return jsonify({"success": True, "data": {"department": department, "items": [t.to_dict() for t in templates]}})


@workflow_bp.get("/candidates/<candidate_id>/workflow")
def candidate_workflow(candidate_id: str):
    _, candidate, templates, _, events = _load(candidate_id)
    tz = current_app.config["CFG"].ORG_TZ
    steps = build_step_instances(templates, candidate, events)
    completed = sum(1 for s in steps if s.status == "completed")
    return jsonify(
        {
            "success": True,
            "data": {
                "candidate": candidate_to_dict(candidate),
                "steps": [step_to_dict(s, candidate, tz) for s in steps],
                "progress": {"completed": completed, "total": len(steps)},
            },
        }
    )


@workflow_bp.post("/candidates/<candidate_id>/steps/<int:step_number>/preview")
def preview_step(candidate_id: str, step_number: int):
    body = optional_json()
    _, candidate, _, template, events = _load(candidate_id, step_number)
    tz = current_app.config["CFG"].ORG_TZ
    slot = compute_schedule(
        parse_schedule_mode(body), template, candidate, events, tz=tz, duration_minutes=_duration(body)
    )
    return jsonify({"success": True, "data": slot_to_dict(slot, tz)})


@workflow_bp.post("/candidates/<candidate_id>/steps/<int:step_number>/schedule")
def schedule_step(candidate_id: str, step_number: int):
    body = optional_json()
    store, candidate, templates, template, events = _load(candidate_id, step_number)
    tz = current_app.config["CFG"].ORG_TZ

    slot = compute_schedule(
        parse_schedule_mode(body), template, candidate, events, tz=tz, duration_minutes=_duration(body)
    )
    attendees = parse_str_list(body.get("attendees"), field="attendees") if "attendees" in body else None
    event = create_event(
        store,
        template,
        candidate,
        slot,
        events=events,
        attachments=parse_str_list(body.get("attachments"), field="attachments"),
        attendees=attendees,
        title=body.get("title") if isinstance(body.get("title"), str) else None,
        description=body.get("description") if isinstance(body.get("description"), str) else None,
        templates=templates,
        tz=tz,
    )
    return jsonify({"success": True, "data": {"event": event_to_dict(event, tz), "slot": slot_to_dict(slot, tz)}}), 201


@workflow_bp.patch("/candidates/<candidate_id>/steps/<int:step_number>/event")
def edit_step_event(candidate_id: str, step_number: int):
    body = optional_json()
    store, candidate, _, template, events = _load(candidate_id, step_number)
    tz = current_app.config["CFG"].ORG_TZ

    event = _step_event(events, template)
    if event is None:
        raise ApiError("NOT_FOUND", "Step has no event to edit", status=404, details={"stepNumber": step_number})

    slot = None
    if body.get("schedule") or body.get("mode") or body.get("localDateTime") or body.get("dateTime"):
        slot = compute_schedule(
            parse_schedule_mode(body), template, candidate, events, tz=tz, duration_minutes=_duration(body)
        )
    elif body.get("durationMinutes") is not None:
        minutes = _duration(body)
        slot = ScheduledSlot(
            start=event.startTime,
            end=event.startTime + timedelta(minutes=minutes),
            localStart=to_local(event.startTime, tz),
            mode="exact",
        )

    added = parse_str_list(body.get("addAttachments") or body.get("attachments"), field="addAttachments")
    updated = edit_event(
        store,
        event,
        slot=slot,
        title=body.get("title") if isinstance(body.get("title"), str) else None,
        description=body.get("description") if isinstance(body.get("description"), str) else None,
        add_attachments=added,
        remove_attachments=parse_str_list(body.get("removeAttachments"), field="removeAttachments"),
    )
    return jsonify({"success": True, "data": {"event": event_to_dict(updated, tz)}})


@workflow_bp.post("/candidates/<candidate_id>/steps/<int:step_number>/cancel")
def cancel_step_event(candidate_id: str, step_number: int):
    body = optional_json()
    store, _, _, template, events = _load(candidate_id, step_number)
    event = _step_event(events, template)
    if event is None:
        raise ApiError("NOT_FOUND", "Step has no event to cancel", status=404, details={"stepNumber": step_number})
    cancelled = cancel_event(store, event, str(body.get("reason") or "").strip())
    return jsonify({"success": True, "data": {"event": event_to_dict(cancelled, current_app.config["CFG"].ORG_TZ)}})


@workflow_bp.post("/candidates/<candidate_id>/steps/<int:step_number>/complete")
def complete_candidate_step(candidate_id: str, step_number: int):
    body = optional_json()
    res = complete_step(
        get_store(),
        candidate_id,
        step_number,
        enforce_order=True,
        notes=str(body.get("notes") or "").strip(),
        tz=current_app.config["CFG"].ORG_TZ,
    )
    return jsonify({"success": True, "data": res.to_dict()})
