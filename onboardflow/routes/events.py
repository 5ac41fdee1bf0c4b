from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from onboardflow.db import get_store
from onboardflow.utils.errors import ApiError
from onboardflow.utils.serializers import event_to_dict
from onboardflow.utils.validators import optional_json, parse_local_datetime, parse_positive_int, require_json
from onboardflow.workflow.completion import complete_step
from onboardflow.workflow.reconciler import cancel_event, complete_event, reschedule_event

events_bp = Blueprint("events", __name__)


def _event_or_404(store, event_id: str):
    event = store.get_event(event_id)
    if event is None:
        raise ApiError("NOT_FOUND", "Event not found", status=404, details={"eventId": event_id})
    return event


@events_bp.get("/events/<event_id>")
def get_event(event_id: str):
    event = _event_or_404(get_store(), event_id)
    return jsonify({"success": True, "data": {"event": event_to_dict(event, current_app.config["CFG"].ORG_TZ)}})


@events_bp.post("/events/<event_id>/reschedule")
def reschedule(event_id: str):
    body = require_json()
    store = get_store()
    tz = current_app.config["CFG"].ORG_TZ

    event = _event_or_404(store, event_id)
    local_start = parse_local_datetime(body.get("localDateTime") or body.get("dateTime"), field="localDateTime")
    duration = parse_positive_int(body.get("durationMinutes"), field="durationMinutes")
    updated = reschedule_event(store, event, local_start, duration, tz=tz)
    return jsonify({"success": True, "data": {"event": event_to_dict(updated, tz)}})


@events_bp.post("/events/<event_id>/cancel")
def cancel(event_id: str):
    body = optional_json()
    store = get_store()
    event = _event_or_404(store, event_id)
    cancelled = cancel_event(store, event, str(body.get("reason") or "").strip())
    return jsonify({"success": True, "data": {"event": event_to_dict(cancelled, current_app.config["CFG"].ORG_TZ)}})


@events_bp.post("/events/<event_id>/complete")
def complete(event_id: str):
    body = optional_json()
    store = get_store()
    cfg = current_app.config["CFG"]
    notes = str(body.get("notes") or "").strip()

    event = _event_or_404(store, event_id)
    if event.stepNumber is None:
        # Ad-hoc events are not tied to a workflow step.
        done = complete_event(store, event, notes=notes)
        return jsonify({"success": True, "data": {"event": event_to_dict(done, cfg.ORG_TZ), "step": None}})

    res = complete_step(
        store, event.candidateId, event.stepNumber, enforce_order=True, event_id=event.id, notes=notes, tz=cfg.ORG_TZ
    )
    refreshed = store.get_event(event.id)
    return jsonify({"success": True, "data": {"event": event_to_dict(refreshed, cfg.ORG_TZ), "step": res.to_dict()}})
