from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from onboardflow.utils.datetime import ORG_TZ, iso_utc, local_iso
from onboardflow.utils.errors import ApiError
from onboardflow.workflow.models import StepTemplate, normalize_step_type
from onboardflow.workflow.reconciler import create_event
from onboardflow.workflow.resolver import find_template, sort_templates
from onboardflow.workflow.schedule import ScheduleMode, compute_schedule

logger = logging.getLogger("onboardflow.batch")

DEFAULT_MAX_BATCH_SIZE = 100


def _pick_template(templates: list[StepTemplate], step_type: str, step_number: Optional[int]) -> StepTemplate:
    if step_number is not None:
        template = find_template(templates, step_number)
        if template is None:
            raise ApiError("NOT_FOUND", "Step not configured for department", status=404, details={"stepNumber": step_number})
        if template.type != step_type:
            raise ApiError(
                "BAD_REQUEST",
                f"Step {step_number} is {template.type}, not {step_type}",
                status=400,
                details={"stepNumber": step_number},
            )
        return template
    for t in sort_templates(templates):
        if t.type == step_type:
            return t
    raise ApiError("NOT_FOUND", f"No {step_type} step configured for department", status=404)


def batch_schedule(
    store,
    candidate_ids: Iterable[str],
    step_type: str,
    step_number: Optional[int],
    mode: ScheduleMode,
    *,
    duration_minutes: Optional[int] = None,
    attachments: Iterable[str] = (),
    max_size: int = DEFAULT_MAX_BATCH_SIZE,
    now: Optional[datetime] = None,
    tz: timezone = ORG_TZ,
) -> dict[str, Any]:
    """Schedule one step for many candidates.

    Every candidate gets its own result row; a failure never stops the rest. All candidates must
    belong to the department of the first candidate that could be loaded.
    """
    ids: list[str] = []
    for raw in candidate_ids or []:
        cid = str(raw or "").strip()
        if cid and cid not in ids:
            ids.append(cid)
    if not ids:
        raise ApiError("BAD_REQUEST", "candidateIds must not be empty", status=400)
    if len(ids) > int(max_size):
        raise ApiError(
            "BAD_REQUEST",
            f"Too many candidates (max {int(max_size)})",
            status=400,
            details={"count": len(ids), "max": int(max_size)},
        )

    step_type = normalize_step_type(step_type)
    attachments = list(attachments or [])
    department: Optional[str] = None
    templates_by_dept: dict[str, list[StepTemplate]] = {}

    results: list[dict[str, Any]] = []
    for cid in ids:
        try:
            candidate = store.get_candidate(cid)
            if candidate is None:
                raise ApiError("NOT_FOUND", "Candidate not found", status=404)
            if department is None:
                department = candidate.department
            elif candidate.department != department:
                raise ApiError(
                    "DEPARTMENT_MISMATCH",
                    f"Candidate belongs to {candidate.department or 'no department'}, batch is for {department}",
                    status=400,
                )

            if department not in templates_by_dept:
                templates_by_dept[department] = store.list_templates(department)
            templates = templates_by_dept[department]
            template = _pick_template(templates, step_type, step_number)

            events = store.list_events(candidate.candidateId)
            slot = compute_schedule(mode, template, candidate, events, now=now, tz=tz, duration_minutes=duration_minutes)
            event = create_event(
                store,
                template,
                candidate,
                slot,
                events=events,
                attachments=attachments,
                templates=templates,
                tz=tz,
            )
            results.append(
                {
                    "candidateId": cid,
                    "ok": True,
                    "eventId": event.id,
                    "startTime": iso_utc(event.startTime),
                    "localStartTime": local_iso(event.startTime, tz),
                    "provisional": slot.provisional,
                }
            )
        except Exception as e:
            if isinstance(e, ApiError):
                err = {"code": e.code, "message": e.message}
            else:
                logger.exception("batch schedule failed candidate=%s", cid)
                err = {"code": "INTERNAL", "message": str(e) or "Failed"}
            results.append({"candidateId": cid, "ok": False, "error": err})

    succeeded = sum(1 for r in results if r["ok"])
    logger.info(
        "batch schedule type=%s step=%s mode=%s total=%s ok=%s failed=%s",
        step_type,
        step_number,
        mode.name,
        len(results),
        succeeded,
        len(results) - succeeded,
    )
    return {
        "department": department,
        "stepType": step_type,
        "results": results,
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }
