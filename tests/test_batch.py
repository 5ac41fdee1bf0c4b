from __future__ import annotations

from datetime import datetime, timezone

import pytest

from onboardflow.utils.errors import ApiError
from onboardflow.workflow.batch import batch_schedule
from onboardflow.workflow.schedule import Exact, RelativeToJoining

UTC = timezone.utc


def _by_id(out):
    return {row["candidateId"]: row for row in out["results"]}


def test_one_failure_does_not_stop_the_rest(store):
    out = batch_schedule(
        store,
        ["C1", "GHOST", "C3", "C4", "C1"],
        "DEPARTMENT_INDUCTION",
        4,
        Exact(datetime(2024, 1, 10, 11, 0)),
    )
    rows = _by_id(out)
    assert len(out["results"]) == 4
    assert out["succeeded"] == 2
    assert out["failed"] == 2
    assert rows["GHOST"]["error"]["code"] == "NOT_FOUND"
    assert rows["C3"]["error"]["code"] == "DEPARTMENT_MISMATCH"
    assert rows["C1"]["ok"] and rows["C4"]["ok"]
    assert rows["C4"]["startTime"] == "2024-01-10T05:30:00Z"
    assert rows["C4"]["localStartTime"] == "2024-01-10T11:00:00+05:30"
    assert store.get_event(rows["C4"]["eventId"]).candidateId == "C4"


def test_relative_to_joining_per_candidate(store):
    out = batch_schedule(store, ["C1", "C2", "C4"], "CEO_INDUCTION", None, RelativeToJoining())
    rows = _by_id(out)
    assert rows["C1"]["startTime"] == "2024-01-13T08:30:00Z"
    assert rows["C2"]["error"]["code"] == "MISSING_BASE_DATE"
    assert rows["C4"]["startTime"] == "2024-01-23T08:30:00Z"


def test_without_step_number_uses_first_step_of_type(store):
    out = batch_schedule(store, ["C1"], "DEPARTMENT_INDUCTION", None, RelativeToJoining())
    event = store.get_event(out["results"][0]["eventId"])
    assert event.stepNumber == 4


def test_type_must_match_step(store):
    out = batch_schedule(store, ["C1"], "CEO_INDUCTION", 4, RelativeToJoining())
    assert out["results"][0]["error"]["code"] == "BAD_REQUEST"


def test_repeated_batch_reports_conflicts(store):
    out = batch_schedule(store, ["C1", "C4"], "DEPARTMENT_INDUCTION", 4, RelativeToJoining())
    assert out["succeeded"] == 2
    again = batch_schedule(store, ["C1", "C4"], "DEPARTMENT_INDUCTION", 4, RelativeToJoining())
    assert {row["error"]["code"] for row in again["results"]} == {"CONFLICTING_EVENT"}


def test_offer_letter_batch_checks_documents_and_schedules_reminders(store):
    out = batch_schedule(store, ["C1", "C2"], "OFFER_LETTER", 1, Exact(datetime(2024, 2, 1, 9, 0)))
    rows = _by_id(out)
    assert rows["C1"]["ok"] is True
    assert rows["C2"]["error"]["code"] == "MISSING_PREREQUISITE"
    assert [e.type for e in store.list_events("C1")] == ["OFFER_LETTER", "OFFER_REMINDER"]

    out = batch_schedule(
        store, ["C2"], "OFFER_LETTER", 1, Exact(datetime(2024, 2, 1, 9, 0)), attachments=["up/c2-offer.pdf"]
    )
    assert out["succeeded"] == 1


def test_custom_duration(store):
    out = batch_schedule(store, ["C1"], "CHECKIN_CALL", 10, RelativeToJoining(), duration_minutes=45)
    event = store.get_event(out["results"][0]["eventId"])
    assert (event.endTime - event.startTime).total_seconds() == 45 * 60
    assert event.startTime == datetime(2024, 2, 9, 11, 0, tzinfo=UTC)


def test_empty_and_oversize_are_rejected(store):
    with pytest.raises(ApiError):
        batch_schedule(store, [], "CEO_INDUCTION", None, RelativeToJoining())
    with pytest.raises(ApiError) as exc:
        batch_schedule(store, ["C1", "C2", "C4"], "CEO_INDUCTION", None, RelativeToJoining(), max_size=2)
    assert exc.value.details == {"count": 3, "max": 2}
