from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from flask import request

from onboardflow.utils.errors import ApiError
from onboardflow.workflow.models import normalize_step_type
from onboardflow.workflow.schedule import Exact, RelativeToEvent, RelativeToJoining, ScheduleMode

_LOCAL_DT_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}(:\d{2})?$")


def require_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "JSON body must be an object", status=400)
    return body


def optional_json() -> dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ApiError("BAD_REQUEST", "JSON body must be an object", status=400)
    return body


def parse_local_datetime(value: Any, *, field: str = "localDateTime") -> datetime:
    s = str(value or "").strip()
    if not s or not _LOCAL_DT_RE.match(s):
        raise ApiError("BAD_REQUEST", f"{field} must be YYYY-MM-DDTHH:mm (local time)", status=400)
    fmt = "%Y-%m-%dT%H:%M:%S" if s.count(":") == 2 else "%Y-%m-%dT%H:%M"
    try:
        return datetime.strptime(s.replace(" ", "T"), fmt)
    except ValueError as e:
        raise ApiError("BAD_REQUEST", f"Invalid {field}", status=400) from e


def parse_positive_int(value: Any, *, field: str, default: int | None = None) -> int | None:
    if value is None or value == "":
        return default
    try:
        n = int(value)
    except (TypeError, ValueError) as e:
        raise ApiError("BAD_REQUEST", f"{field} must be an integer", status=400) from e
    if n < 1:
        raise ApiError("BAD_REQUEST", f"{field} must be >= 1", status=400)
    return n


def parse_str_list(value: Any, *, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ApiError("BAD_REQUEST", f"{field} must be a list", status=400)
    items: list[str] = []
    for raw in value:
        item = str(raw or "").strip()
        if item and item not in items:
            items.append(item)
    return items


def parse_schedule_mode(body: dict[str, Any]) -> ScheduleMode:
    """Read the scheduling intent from a request body.

    Accepts either a nested ``schedule`` object or the same keys at top level. A bare
    ``dateTime``/``localDateTime`` without ``mode`` means exact scheduling.
    """
    payload = body.get("schedule") if isinstance(body.get("schedule"), dict) else body
    mode = str(payload.get("mode") or "").strip().lower().replace("_", "")

    if not mode and (payload.get("localDateTime") or payload.get("dateTime")):
        mode = "exact"

    if mode == "exact":
        raw = payload.get("localDateTime") or payload.get("dateTime")
        return Exact(parse_local_datetime(raw, field="localDateTime"))
    if mode in {"relativetojoining", "joining", "doj"}:
        return RelativeToJoining()
    if mode in {"relativetoevent", "event", "offerletter"}:
        ref_type = normalize_step_type(payload.get("referenceType") or "OFFER_LETTER")
        ref_step = parse_positive_int(payload.get("referenceStepNumber"), field="referenceStepNumber")
        return RelativeToEvent(referenceType=ref_type, referenceStepNumber=ref_step)

    raise ApiError("BAD_REQUEST", "mode must be exact|relativeToJoining|relativeToEvent", status=400)
