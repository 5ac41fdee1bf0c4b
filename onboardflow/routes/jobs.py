from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from onboardflow.db import get_store
from onboardflow.utils.errors import ApiError
from onboardflow.utils.validators import optional_json, parse_positive_int
from onboardflow.workflow.completion import auto_complete_due_events

jobs_bp = Blueprint("jobs", __name__)


def _require_internal_token() -> None:
    expected = current_app.config["CFG"].INTERNAL_CRON_TOKEN
    if not expected:
        return
    provided = str(request.headers.get("X-Internal-Token") or "").strip()
    if not provided or not hmac.compare_digest(provided, expected):
        raise ApiError("FORBIDDEN", "Invalid internal token", status=403)


@jobs_bp.post("/jobs/auto-complete")
def auto_complete():
    _require_internal_token()
    body = optional_json()
    limit = parse_positive_int(body.get("limit"), field="limit", default=500)
    out = auto_complete_due_events(get_store(), limit=limit, tz=current_app.config["CFG"].ORG_TZ)
    return jsonify({"success": True, "data": out})
