from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from onboardflow.utils.datetime import ORG_TZ, iso_utc
from onboardflow.utils.errors import TransportError
from onboardflow.workflow.models import OPEN_EVENT_STATUSES, CalendarEvent, CandidateProfile, StepTemplate

logger = logging.getLogger("onboardflow.store")


@contextmanager
def _transport(op: str) -> Iterator[None]:
    try:
        yield
    except PyMongoError as e:
        logger.error("store op=%s failed: %s", op, e)
        raise TransportError(str(e) or "Storage unavailable", details={"op": op}) from e


def _object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(str(value or "").strip())
    except (InvalidId, TypeError):
        return None


class MongoStore:
    """Template source, candidate source and event/step sinks over one MongoDB database."""

    def __init__(self, db, tz: timezone = ORG_TZ):
        self.db = db
        self.tz = tz

    # -- template source ------------------------------------------------------------------

    def list_templates(self, department: str) -> list[StepTemplate]:
        with _transport("list_templates"):
            docs = list(
                self.db.step_templates.find({"department": department, "isActive": {"$ne": False}}).sort(
                    "stepNumber", ASCENDING
                )
            )
        return [StepTemplate.from_doc(d) for d in docs]

    # -- candidate source -----------------------------------------------------------------

    def get_candidate(self, candidate_id: str) -> Optional[CandidateProfile]:
        with _transport("get_candidate"):
            doc = self.db.candidates.find_one({"candidateId": str(candidate_id or "").strip()})
        return CandidateProfile.from_doc(doc, self.tz) if doc else None

    def list_events(self, candidate_id: str) -> list[CalendarEvent]:
        with _transport("list_events"):
            docs = list(
                self.db.calendar_events.find({"candidateId": candidate_id}).sort(
                    [("startTime", ASCENDING), ("createdAt", ASCENDING)]
                )
            )
        return [CalendarEvent.from_doc(d) for d in docs]

    # -- event mutation sink --------------------------------------------------------------

    def get_event(self, event_id: str) -> Optional[CalendarEvent]:
        oid = _object_id(event_id)
        if oid is None:
            return None
        with _transport("get_event"):
            doc = self.db.calendar_events.find_one({"_id": oid})
        return CalendarEvent.from_doc(doc) if doc else None

    def create_event(self, payload: dict[str, Any]) -> CalendarEvent:
        now = datetime.now(timezone.utc)
        doc = {
            "candidateId": payload["candidateId"],
            "type": payload["type"],
            "stepNumber": payload.get("stepNumber"),
            "title": payload.get("title") or "",
            "description": payload.get("description") or "",
            "startTime": payload["startTime"],
            "endTime": payload["endTime"],
            "attendees": list(payload.get("attendees") or []),
            "attachmentPaths": list(payload.get("attachmentPaths") or []),
            "status": payload.get("status") or "SCHEDULED",
            "metadata": dict(payload.get("metadata") or {}),
            "createdAt": now,
            "updatedAt": now,
        }
        with _transport("create_event"):
            res = self.db.calendar_events.insert_one(doc)
        doc["_id"] = res.inserted_id
        return CalendarEvent.from_doc(doc)

    def update_event(self, event_id: str, fields: dict[str, Any]) -> Optional[CalendarEvent]:
        oid = _object_id(event_id)
        if oid is None:
            return None
        update = dict(fields)
        update["updatedAt"] = datetime.now(timezone.utc)
        with _transport("update_event"):
            doc = self.db.calendar_events.find_one_and_update(
                {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
            )
        return CalendarEvent.from_doc(doc) if doc else None

    def claim_event(self, event_id: str, fields: dict[str, Any]) -> bool:
        """Apply ``fields`` only while the event is still open; False if someone else got there."""
        oid = _object_id(event_id)
        if oid is None:
            return False
        update = dict(fields)
        update["updatedAt"] = datetime.now(timezone.utc)
        with _transport("claim_event"):
            res = self.db.calendar_events.update_one(
                {"_id": oid, "status": {"$in": sorted(OPEN_EVENT_STATUSES)}}, {"$set": update}
            )
        return res.modified_count == 1

    def due_events(self, now: datetime, *, limit: int = 500) -> list[CalendarEvent]:
        with _transport("due_events"):
            docs = list(
                self.db.calendar_events.find(
                    {
                        "status": {"$in": sorted(OPEN_EVENT_STATUSES)},
                        "startTime": {"$lte": now},
                        "metadata.autoCompleteError": {"$exists": False},
                    }
                )
                .sort("startTime", ASCENDING)
                .limit(limit)
            )
        return [CalendarEvent.from_doc(d) for d in docs]

    def mark_auto_complete_failed(self, event_id: str, code: str, message: str, now: datetime) -> None:
        """Park a due event the sweep could not complete; rescheduling it clears the marker."""
        oid = _object_id(event_id)
        if oid is None:
            return
        with _transport("mark_auto_complete_failed"):
            self.db.calendar_events.update_one(
                {"_id": oid},
                {
                    "$set": {
                        "metadata.autoCompleteError": {"code": code, "message": message, "at": iso_utc(now)},
                        "updatedAt": datetime.now(timezone.utc),
                    },
                    "$inc": {"metadata.autoCompleteAttempts": 1},
                },
            )

    # -- step completion sink -------------------------------------------------------------

    def set_candidate_flags(self, candidate_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        update = dict(fields)
        update["updatedAt"] = datetime.now(timezone.utc)
        with _transport("set_candidate_flags"):
            self.db.candidates.update_one({"candidateId": candidate_id}, {"$set": update})
