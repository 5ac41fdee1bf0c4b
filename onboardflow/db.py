from __future__ import annotations

import threading
from datetime import timezone

from flask import Flask, current_app
from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from onboardflow.store import MongoStore


_client: MongoClient | None = None
_client_lock = threading.Lock()


def _create_client(mongodb_uri: str, *, server_selection_timeout_ms: int) -> MongoClient:
    if mongodb_uri.startswith("mongomock://"):
        import mongomock  # type: ignore[import-not-found]

        return mongomock.MongoClient(tz_aware=True, tzinfo=timezone.utc)

    return MongoClient(
        mongodb_uri,
        serverSelectionTimeoutMS=server_selection_timeout_ms,
        tz_aware=True,
        tzinfo=timezone.utc,
        retryWrites=True,
    )


def get_client(app: Flask) -> MongoClient:
    global _client
    cfg = app.config["CFG"]
    with _client_lock:
        if _client is None:
            _client = _create_client(cfg.MONGODB_URI, server_selection_timeout_ms=cfg.MONGO_SERVER_SELECTION_TIMEOUT_MS)
    return _client


def get_db(app: Flask):
    cfg = app.config["CFG"]
    return get_client(app)[cfg.DB_NAME]


def get_store() -> MongoStore:
    return current_app.extensions["store"]


def ping_db(db) -> bool:
    try:
        db.command("ping")
        return True
    except (PyMongoError, NotImplementedError):
        try:
            # mongomock has no ping.
            db.list_collection_names()
            return True
        except PyMongoError:
            return False


def ensure_indexes(db) -> None:
    db.step_templates.create_index(
        [("department", ASCENDING), ("stepNumber", ASCENDING)], unique=True, name="step_templates_dept_step_unique"
    )
    db.candidates.create_index([("candidateId", ASCENDING)], unique=True, name="candidates_candidateId_unique")
    db.candidates.create_index([("department", ASCENDING)], name="candidates_department")
    db.calendar_events.create_index(
        [("candidateId", ASCENDING), ("type", ASCENDING), ("stepNumber", ASCENDING)], name="calendar_events_candidate_type_step"
    )
    db.calendar_events.create_index([("status", ASCENDING), ("startTime", ASCENDING)], name="calendar_events_status_start")


def init_mongo(app: Flask) -> None:
    db = get_db(app)
    app.extensions["mongo_db"] = db
    app.extensions["store"] = MongoStore(db, tz=app.config["CFG"].ORG_TZ)
    ensure_indexes(db)


def reset_client_for_tests() -> None:
    global _client
    with _client_lock:
        _client = None
