from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

from onboardflow.utils.datetime import parse_instant
from onboardflow.workflow.models import (
    OPEN_EVENT_STATUSES,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_SCHEDULED,
    STATUS_WAITING,
    CalendarEvent,
    CandidateProfile,
    StepInstance,
    StepTemplate,
    event_type_for,
)


@dataclass(frozen=True)
class SignalTable:
    """Candidate fields that count as progress for a step type.

    ``completion`` fields are independent of calendar events: any truthy value completes the
    step. ``pending`` fields mark an intermediate state that is not yet completion. Types absent
    from ``completion`` are event-only.
    """

    completion: dict[str, tuple[str, ...]] = field(default_factory=dict)
    pending: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def completion_fields(self, step_type: str) -> tuple[str, ...]:
        return self.completion.get(step_type, ())

    def pending_fields(self, step_type: str) -> tuple[str, ...]:
        return self.pending.get(step_type, ())


DEFAULT_SIGNALS = SignalTable(
    completion={
        "OFFER_LETTER": ("offerSentAt",),
        "OFFER_REMINDER": ("offerReminderSent", "offerSignedAt"),
        "WELCOME_EMAIL": ("welcomeEmailSentAt",),
        "WHATSAPP_ADDITION": ("whatsappGroupsAdded",),
        "ONBOARDING_FORM": ("onboardingFormSentAt",),
        "FORM_REMINDER": ("onboardingFormCompletedAt",),
        "TRAINING_PLAN": ("trainingPlanSent",),
    },
    pending={
        "WHATSAPP_ADDITION": ("whatsappTaskCreated",),
        "FORM_REMINDER": ("onboardingFormSentAt",),
    },
)


def match_event(
    events: Iterable[CalendarEvent],
    step_type: str,
    step_number: Optional[int] = None,
    *,
    open_only: bool = False,
) -> Optional[CalendarEvent]:
    """First non-cancelled event for ``(aliased type, stepNumber)``.

    Without a step number the lookup falls back to the type alone. With one, events that carry
    no step number never match, so two steps of the same type stay apart. ``open_only`` skips
    COMPLETED events as well.
    """
    wanted = event_type_for(step_type)
    for ev in events:
        if ev.status == "CANCELLED" or ev.type != wanted:
            continue
        if open_only and not ev.is_open:
            continue
        if step_number is not None and ev.stepNumber != int(step_number):
            continue
        return ev
    return None


def _any_truthy(candidate: CandidateProfile, names: Sequence[str]) -> bool:
    return any(bool(candidate.flag(n)) for n in names)


def resolve_status(
    template: StepTemplate,
    candidate: CandidateProfile,
    events: Sequence[CalendarEvent],
    signals: SignalTable = DEFAULT_SIGNALS,
) -> str:
    event = match_event(events, template.type, template.stepNumber)

    if event is not None and event.status == "COMPLETED":
        return STATUS_COMPLETED
    if _any_truthy(candidate, signals.completion_fields(template.type)):
        return STATUS_COMPLETED
    if event is not None and event.status in OPEN_EVENT_STATUSES:
        return STATUS_SCHEDULED
    if _any_truthy(candidate, signals.pending_fields(template.type)):
        return STATUS_PENDING
    return STATUS_WAITING


def sent_timestamp(
    candidate: CandidateProfile, step_type: str, signals: SignalTable = DEFAULT_SIGNALS
) -> Optional[datetime]:
    """First completion flag of ``step_type`` that holds a timestamp (e.g. offerSentAt)."""
    for name in signals.completion_fields(step_type):
        value = candidate.flag(name)
        if isinstance(value, (datetime, str)) and value:
            parsed = parse_instant(value)
            if parsed is not None:
                return parsed
    return None


def sort_templates(templates: Iterable[StepTemplate]) -> list[StepTemplate]:
    return sorted(templates, key=lambda t: t.stepNumber)


def find_template(templates: Iterable[StepTemplate], step_number: int) -> Optional[StepTemplate]:
    for t in templates:
        if t.stepNumber == int(step_number):
            return t
    return None


def build_step_instances(
    templates: Iterable[StepTemplate],
    candidate: CandidateProfile,
    events: Sequence[CalendarEvent],
    signals: SignalTable = DEFAULT_SIGNALS,
) -> list[StepInstance]:
    from onboardflow.workflow.gate import can_act

    ordered = sort_templates(templates)
    out = []
    for t in ordered:
        out.append(
            StepInstance(
                template=t,
                event=match_event(events, t.type, t.stepNumber),
                status=resolve_status(t, candidate, events, signals),
                gate=can_act(ordered, t.stepNumber, candidate, events, signals),
            )
        )
    return out
