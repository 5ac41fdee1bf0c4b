from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Optional, Sequence, Union

from onboardflow.utils.datetime import ORG_TZ, to_local, to_utc
from onboardflow.utils.errors import ApiError, MissingBaseDate
from onboardflow.workflow.models import (
    CalendarEvent,
    CandidateProfile,
    StepTemplate,
    default_duration,
)
from onboardflow.workflow.resolver import DEFAULT_SIGNALS, SignalTable, match_event, sent_timestamp

logger = logging.getLogger("onboardflow.schedule")

JOINING_FALLBACK_TIME = time(9, 0)
EVENT_FALLBACK_TIME = time(14, 0)

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class Exact:
    localDateTime: datetime
    name = "exact"


@dataclass(frozen=True)
class RelativeToJoining:
    name = "relativeToJoining"


@dataclass(frozen=True)
class RelativeToEvent:
    referenceType: str = "OFFER_LETTER"
    referenceStepNumber: Optional[int] = None
    name = "relativeToEvent"


ScheduleMode = Union[Exact, RelativeToJoining, RelativeToEvent]


@dataclass(frozen=True)
class ScheduledSlot:
    start: datetime
    end: datetime
    localStart: datetime
    mode: str
    provisional: bool = False

    @property
    def durationMinutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


def parse_hhmm(value: Optional[str]) -> Optional[time]:
    m = _HHMM_RE.match(str(value or "").strip())
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def _time_of_day(template: StepTemplate, fallback: time) -> time:
    if not template.scheduledTime:
        logger.info(
            "step=%s type=%s has no scheduledTime; using fallback %s",
            template.stepNumber,
            template.type,
            fallback.strftime("%H:%M"),
        )
        return fallback
    parsed = parse_hhmm(template.scheduledTime)
    if parsed is None:
        logger.warning(
            "step=%s type=%s has malformed scheduledTime=%r; using fallback %s",
            template.stepNumber,
            template.type,
            template.scheduledTime,
            fallback.strftime("%H:%M"),
        )
        return fallback
    return parsed


def _reference_base(
    mode: RelativeToEvent,
    candidate: CandidateProfile,
    events: Sequence[CalendarEvent],
    signals: SignalTable,
) -> Optional[datetime]:
    event = match_event(events, mode.referenceType, mode.referenceStepNumber, open_only=True)
    if event is not None:
        return event.startTime
    sent = sent_timestamp(candidate, mode.referenceType, signals)
    if sent is not None:
        return sent
    event = match_event(events, mode.referenceType, mode.referenceStepNumber)
    if event is not None and event.status == "COMPLETED":
        return event.startTime
    return None


def compute_schedule(
    mode: ScheduleMode,
    template: StepTemplate,
    candidate: CandidateProfile,
    events: Sequence[CalendarEvent] = (),
    *,
    now: Optional[datetime] = None,
    tz: timezone = ORG_TZ,
    duration_minutes: Optional[int] = None,
    signals: SignalTable = DEFAULT_SIGNALS,
) -> ScheduledSlot:
    provisional = False

    if isinstance(mode, Exact):
        local_start = mode.localDateTime
        if local_start.tzinfo is not None:
            local_start = to_local(local_start, tz)

    elif isinstance(mode, RelativeToJoining):
        base_date = candidate.expectedJoiningDate
        if base_date is None:
            raise MissingBaseDate(details={"candidateId": candidate.candidateId, "stepNumber": template.stepNumber})
        target_date = base_date + timedelta(days=template.dueDateOffset)
        local_start = datetime.combine(target_date, _time_of_day(template, JOINING_FALLBACK_TIME))

    elif isinstance(mode, RelativeToEvent):
        base = _reference_base(mode, candidate, events, signals)
        if base is None:
            base = now or datetime.now(timezone.utc)
            provisional = True
            logger.info(
                "candidate=%s reference=%s not scheduled or sent; using current time as provisional base",
                candidate.candidateId,
                mode.referenceType,
            )
        target_date = to_local(base, tz).date() + timedelta(days=template.dueDateOffset)
        local_start = datetime.combine(target_date, _time_of_day(template, EVENT_FALLBACK_TIME))

    else:
        raise ApiError("BAD_REQUEST", f"Unsupported schedule mode: {type(mode).__name__}", status=400)

    minutes = int(duration_minutes) if duration_minutes else default_duration(template.type)
    start = to_utc(local_start, tz)
    return ScheduledSlot(
        start=start,
        end=start + timedelta(minutes=minutes),
        localStart=local_start,
        mode=mode.name,
        provisional=provisional,
    )
