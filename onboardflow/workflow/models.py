from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from onboardflow.utils.datetime import ORG_TZ, parse_instant, parse_local_date

STEP_TYPES = (
    "OFFER_LETTER",
    "OFFER_REMINDER",
    "WELCOME_EMAIL",
    "HR_INDUCTION",
    "WHATSAPP_ADDITION",
    "ONBOARDING_FORM",
    "FORM_REMINDER",
    "CEO_INDUCTION",
    "SALES_INDUCTION",
    "DEPARTMENT_INDUCTION",
    "TRAINING_PLAN",
    "CHECKIN_CALL",
    "CUSTOM",
)

# Step type -> calendar event type tag. Types not listed map to themselves.
EVENT_TYPE_ALIASES = {
    "MANUAL": "CUSTOM",
    "WHATSAPP_ADDITION": "WHATSAPP_TASK",
}

EVENT_STATUSES = ("SCHEDULED", "COMPLETED", "CANCELLED", "RESCHEDULED")
OPEN_EVENT_STATUSES = frozenset({"SCHEDULED", "RESCHEDULED"})

STATUS_COMPLETED = "completed"
STATUS_SCHEDULED = "scheduled"
STATUS_PENDING = "pending"
STATUS_WAITING = "waiting"

# Minutes.
DEFAULT_DURATIONS = {
    "OFFER_LETTER": 30,
    "OFFER_REMINDER": 15,
    "WELCOME_EMAIL": 30,
    "HR_INDUCTION": 60,
    "WHATSAPP_ADDITION": 15,
    "ONBOARDING_FORM": 30,
    "FORM_REMINDER": 15,
    "CEO_INDUCTION": 60,
    "SALES_INDUCTION": 90,
    "DEPARTMENT_INDUCTION": 90,
    "TRAINING_PLAN": 30,
    "CHECKIN_CALL": 30,
}
FALLBACK_DURATION = 15


def normalize_step_type(value: Any) -> str:
    s = str(value or "").upper().strip().replace(" ", "_").replace("-", "_")
    if s == "MANUAL":
        return "CUSTOM"
    if s == "WHATSAPP_TASK":
        return "WHATSAPP_ADDITION"
    if s not in STEP_TYPES:
        return "CUSTOM"
    return s


def event_type_for(step_type: str) -> str:
    s = str(step_type or "").upper().strip()
    return EVENT_TYPE_ALIASES.get(s, s)


def default_duration(step_type: str) -> int:
    return DEFAULT_DURATIONS.get(normalize_step_type(step_type), FALLBACK_DURATION)


def _opt_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class StepTemplate:
    department: str
    stepNumber: int
    type: str
    title: str = ""
    description: str = ""
    isAuto: bool = False
    dueDateOffset: int = 0
    scheduledTime: Optional[str] = None
    icon: str = ""

    @classmethod
    def from_doc(cls, doc: dict[str, Any]) -> "StepTemplate":
        return cls(
            department=str(doc.get("department") or ""),
            stepNumber=int(doc.get("stepNumber") or 0),
            type=normalize_step_type(doc.get("type")),
            title=str(doc.get("title") or ""),
            description=str(doc.get("description") or ""),
            isAuto=bool(doc.get("isAuto")),
            dueDateOffset=_opt_int(doc.get("dueDateOffset")) or 0,
            scheduledTime=(str(doc.get("scheduledTime") or "").strip() or None),
            icon=str(doc.get("icon") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "department": self.department,
            "stepNumber": self.stepNumber,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "isAuto": self.isAuto,
            "dueDateOffset": self.dueDateOffset,
            "scheduledTime": self.scheduledTime,
            "icon": self.icon,
        }


_CANDIDATE_IDENTITY_FIELDS = {
    "_id",
    "candidateId",
    "firstName",
    "lastName",
    "email",
    "position",
    "department",
    "expectedJoiningDate",
    "offerLetterPath",
}


@dataclass(frozen=True)
class CandidateProfile:
    candidateId: str
    firstName: str = ""
    lastName: str = ""
    email: str = ""
    position: str = ""
    department: str = ""
    expectedJoiningDate: Optional[date] = None
    offerLetterPath: str = ""
    # Completion/progress flags keyed by candidate field name (offerSentAt, trainingPlanSent, ...).
    flags: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_doc(cls, doc: dict[str, Any], tz: timezone = ORG_TZ) -> "CandidateProfile":
        return cls(
            candidateId=str(doc.get("candidateId") or doc.get("_id") or ""),
            firstName=str(doc.get("firstName") or ""),
            lastName=str(doc.get("lastName") or ""),
            email=str(doc.get("email") or "").strip().lower(),
            position=str(doc.get("position") or ""),
            department=str(doc.get("department") or ""),
            expectedJoiningDate=parse_local_date(doc.get("expectedJoiningDate"), tz),
            offerLetterPath=str(doc.get("offerLetterPath") or ""),
            flags={k: v for k, v in doc.items() if k not in _CANDIDATE_IDENTITY_FIELDS},
        )

    def flag(self, name: str) -> Any:
        return self.flags.get(name)

    @property
    def fullName(self) -> str:
        return f"{self.firstName} {self.lastName}".strip()


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    candidateId: str
    type: str
    stepNumber: Optional[int]
    startTime: datetime
    endTime: datetime
    status: str = "SCHEDULED"
    title: str = ""
    description: str = ""
    attendees: tuple[str, ...] = ()
    attachmentPaths: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_doc(cls, doc: dict[str, Any]) -> "CalendarEvent":
        paths = [str(p) for p in (doc.get("attachmentPaths") or []) if str(p or "").strip()]
        single = str(doc.get("attachmentPath") or "").strip()
        if single and single not in paths:
            paths.insert(0, single)

        start = parse_instant(doc.get("startTime"))
        end = parse_instant(doc.get("endTime")) or start
        return cls(
            id=str(doc.get("_id") or doc.get("id") or ""),
            candidateId=str(doc.get("candidateId") or ""),
            type=str(doc.get("type") or "CUSTOM").upper(),
            stepNumber=_opt_int(doc.get("stepNumber")),
            startTime=start,
            endTime=end,
            status=str(doc.get("status") or "SCHEDULED").upper(),
            title=str(doc.get("title") or ""),
            description=str(doc.get("description") or ""),
            attendees=tuple(str(a) for a in (doc.get("attendees") or [])),
            attachmentPaths=tuple(paths),
            metadata=dict(doc.get("metadata") or {}),
        )

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_EVENT_STATUSES


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: str


@dataclass(frozen=True)
class StepInstance:
    template: StepTemplate
    event: Optional[CalendarEvent]
    status: str
    gate: GateDecision
