from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from onboardflow.db import get_store
from onboardflow.utils.errors import ApiError
from onboardflow.utils.validators import parse_positive_int, parse_schedule_mode, parse_str_list, require_json
from onboardflow.workflow.batch import batch_schedule

batch_bp = Blueprint("batch", __name__)


@batch_bp.post("/batch/schedule")
def schedule():
    body = require_json()
    cfg = current_app.config["CFG"]

    step_type = str(body.get("eventType") or body.get("stepType") or "").strip()
    if not step_type:
        raise ApiError("BAD_REQUEST", "eventType is required", status=400)

    duration = parse_positive_int(body.get("durationMinutes"), field="durationMinutes")
    if duration is None and cfg.DEFAULT_BATCH_DURATION_MINUTES > 0:
        duration = cfg.DEFAULT_BATCH_DURATION_MINUTES

    out = batch_schedule(
        get_store(),
        parse_str_list(body.get("candidateIds"), field="candidateIds"),
        step_type,
        parse_positive_int(body.get("stepNumber"), field="stepNumber"),
        parse_schedule_mode(body),
        duration_minutes=duration,
        attachments=parse_str_list(body.get("attachments"), field="attachments"),
        max_size=cfg.MAX_BATCH_SIZE,
        tz=cfg.ORG_TZ,
    )
    return jsonify({"success": True, "data": out})
