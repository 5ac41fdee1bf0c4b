from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from onboardflow.store import MongoStore
from onboardflow.utils.errors import TransportError

UTC = timezone.utc


class _DownCollection:
    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise ServerSelectionTimeoutError("localhost:27017: [Errno 111] Connection refused")

        return _fail


class _DownDb:
    def __getattr__(self, name):
        return _DownCollection()


def test_driver_errors_become_transport_errors():
    store = MongoStore(_DownDb())
    with pytest.raises(TransportError) as exc:
        store.list_templates("SALES")
    assert exc.value.status == 502
    assert exc.value.code == "TRANSPORT_ERROR"
    assert "Connection refused" in exc.value.message
    assert exc.value.details == {"op": "list_templates"}


def test_inactive_templates_are_hidden(store):
    steps = [t.stepNumber for t in store.list_templates("SALES")]
    assert steps == list(range(1, 11))


def test_candidate_profile_fields(store):
    c = store.get_candidate("C1")
    assert c.fullName == "Asha Rao"
    assert c.expectedJoiningDate.isoformat() == "2024-01-10"
    assert c.email == "asha.rao@example.com"
    assert store.get_candidate("missing") is None


def test_legacy_single_attachment_is_folded(store, mongo_db):
    mongo_db.calendar_events.insert_one(
        {
            "candidateId": "C1",
            "type": "MANUAL",
            "stepNumber": None,
            "startTime": datetime(2024, 1, 5, tzinfo=UTC),
            "endTime": datetime(2024, 1, 5, 0, 15, tzinfo=UTC),
            "status": "scheduled",
            "attachmentPath": "legacy/offer.pdf",
            "attachmentPaths": ["new/a.pdf"],
        }
    )
    [event] = store.list_events("C1")
    assert event.attachmentPaths == ("legacy/offer.pdf", "new/a.pdf")
    assert event.status == "SCHEDULED"


def test_claim_only_applies_to_open_events(store):
    ev = store.create_event(
        {
            "candidateId": "C1",
            "type": "CUSTOM",
            "startTime": datetime(2024, 1, 5, tzinfo=UTC),
            "endTime": datetime(2024, 1, 5, 0, 15, tzinfo=UTC),
        }
    )
    assert store.claim_event(ev.id, {"status": "COMPLETED"}) is True
    assert store.claim_event(ev.id, {"status": "COMPLETED"}) is False
    assert store.claim_event("not-an-object-id", {"status": "COMPLETED"}) is False


def test_bad_event_id_is_not_found(store):
    assert store.get_event("zzz") is None
    assert store.update_event("zzz", {"title": "x"}) is None


def test_joining_date_follows_configured_offset(mongo_db):
    mongo_db.candidates.update_one({"candidateId": "C4"}, {"$set": {"expectedJoiningDate": "2024-01-20T02:00:00Z"}})
    assert MongoStore(mongo_db).get_candidate("C4").expectedJoiningDate.isoformat() == "2024-01-20"
    west = MongoStore(mongo_db, tz=timezone(timedelta(hours=-5)))
    assert west.get_candidate("C4").expectedJoiningDate.isoformat() == "2024-01-19"
