import sys
from datetime import timezone
from pathlib import Path

import mongomock
import pytest


BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


DEPARTMENT = "SALES"

STEP_TEMPLATES = [
    {"stepNumber": 1, "type": "OFFER_LETTER", "title": "Offer letter for {{firstName}}", "dueDateOffset": 0, "scheduledTime": "10:00"},
    {"stepNumber": 2, "type": "OFFER_REMINDER", "title": "Offer reminder", "dueDateOffset": 1, "scheduledTime": "14:00"},
    {"stepNumber": 3, "type": "WELCOME_EMAIL", "title": "Welcome {{firstName}} {{lastName}}", "dueDateOffset": -1, "scheduledTime": "10:00"},
    {"stepNumber": 4, "type": "DEPARTMENT_INDUCTION", "title": "{{department}} induction", "dueDateOffset": 0, "scheduledTime": "11:00"},
    {"stepNumber": 5, "type": "CEO_INDUCTION", "title": "CEO induction", "dueDateOffset": 3, "scheduledTime": "14:00"},
    {"stepNumber": 6, "type": "WHATSAPP_ADDITION", "title": "Add to groups", "dueDateOffset": 0},
    {"stepNumber": 7, "type": "ONBOARDING_FORM", "title": "Onboarding form", "dueDateOffset": 0, "scheduledTime": "12:00"},
    {"stepNumber": 8, "type": "FORM_REMINDER", "title": "Form reminder", "dueDateOffset": 2, "scheduledTime": "12:00"},
    {"stepNumber": 9, "type": "DEPARTMENT_INDUCTION", "title": "Second {{department}} induction", "dueDateOffset": 7, "scheduledTime": "11:00"},
    {"stepNumber": 10, "type": "CHECKIN_CALL", "title": "30-day check-in", "dueDateOffset": 30, "scheduledTime": "16:30"},
]

CANDIDATES = [
    {
        "candidateId": "C1",
        "firstName": "Asha",
        "lastName": "Rao",
        "email": "Asha.Rao@example.com",
        "position": "Sales Executive",
        "department": DEPARTMENT,
        "expectedJoiningDate": "2024-01-10",
        "offerLetterPath": "offers/c1.pdf",
    },
    {
        "candidateId": "C2",
        "firstName": "Vikram",
        "lastName": "Shah",
        "email": "vikram@example.com",
        "position": "Sales Executive",
        "department": DEPARTMENT,
    },
    {
        "candidateId": "C3",
        "firstName": "Meera",
        "lastName": "Iyer",
        "email": "meera@example.com",
        "position": "Ops Analyst",
        "department": "OPS",
        "expectedJoiningDate": "2024-01-15",
    },
    {
        "candidateId": "C4",
        "firstName": "Rohan",
        "lastName": "Das",
        "email": "rohan@example.com",
        "position": "Sales Lead",
        "department": DEPARTMENT,
        "expectedJoiningDate": "2024-01-20",
        "offerLetterPath": "offers/c4.pdf",
    },
]


def seed_workflow_data(db) -> None:
    db.step_templates.insert_many([{"department": DEPARTMENT, **t} for t in STEP_TEMPLATES])
    db.step_templates.insert_one(
        {"department": DEPARTMENT, "stepNumber": 99, "type": "CUSTOM", "title": "Retired", "isActive": False}
    )
    db.step_templates.insert_one({"department": "OPS", "stepNumber": 1, "type": "DEPARTMENT_INDUCTION", "title": "Ops"})
    db.candidates.insert_many([dict(c) for c in CANDIDATES])


@pytest.fixture()
def mongo_db():
    client = mongomock.MongoClient(tz_aware=True, tzinfo=timezone.utc)
    db = client["onboarding_test"]
    seed_workflow_data(db)
    return db


@pytest.fixture()
def store(mongo_db):
    from onboardflow.store import MongoStore

    return MongoStore(mongo_db)


@pytest.fixture()
def app_client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "testing")
    monkeypatch.setenv("MONGODB_URI", "mongomock://localhost")
    monkeypatch.setenv("DB_NAME", "onboarding_test")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    # Prevent accidental pollution from any existing env config.
    monkeypatch.delenv("INTERNAL_CRON_TOKEN", raising=False)
    monkeypatch.delenv("ORG_UTC_OFFSET_MINUTES", raising=False)
    monkeypatch.delenv("MAX_BATCH_SIZE", raising=False)

    from onboardflow import create_app
    from onboardflow.db import reset_client_for_tests

    reset_client_for_tests()

    app = create_app()
    app.testing = True
    seed_workflow_data(app.extensions["mongo_db"])

    with app.test_client() as client:
        yield app, client

    reset_client_for_tests()
