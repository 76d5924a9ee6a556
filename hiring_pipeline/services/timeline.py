"""Read-only facts derived from an application's stage history.

Everything here is a pure function of data already fetched; nothing touches storage.
History sequences are expected in ascending `changed_at` order, as `AuditTrail.history_for`
returns them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Sequence

from hiring_pipeline.core.taxonomy import STAGE_ORDER, Stage
from hiring_pipeline.services.audit_trail import StageTransitionRecord

UNDER_A_MINUTE = "< 1 min"

_DAY_SECONDS = 24 * 60 * 60
_HOUR_SECONDS = 60 * 60
_DAYS_PER_MONTH = 30


class TimelineKind(str, Enum):
    STAGE = "stage"
    NOTE = "note"
    EMAIL = "email"


@dataclass(frozen=True)
class StageOccurrence:
    stage: Stage
    entered_at: datetime
    exited_at: datetime | None
    duration: timedelta
    entered_from: Stage | None = None

    @property
    def is_current(self) -> bool:
        return self.exited_at is None


@dataclass(frozen=True)
class StageSummary:
    stage: Stage
    visits: int
    first_entered_at: datetime
    total: timedelta


@dataclass(frozen=True)
class TimelineEntry:
    kind: TimelineKind
    timestamp: datetime
    payload: Any


def stage_occurrences(history: Sequence[StageTransitionRecord], now: datetime) -> list[StageOccurrence]:
    """One entry per record, closed by the nearest later record whose `from_stage` is that stage.

    A status-only record (same stage on both sides) closes the running occurrence and opens the
    next one, so a stay split by status changes is reported as consecutive occurrences.
    """
    occurrences: list[StageOccurrence] = []
    for index, record in enumerate(history):
        stage = record.to_stage
        exited_at: datetime | None = None
        for later in history[index + 1 :]:
            if later.from_stage == stage:
                exited_at = later.changed_at
                break
        end = exited_at if exited_at is not None else now
        occurrences.append(
            StageOccurrence(
                stage=stage,
                entered_from=record.from_stage,
                entered_at=record.changed_at,
                exited_at=exited_at,
                duration=end - record.changed_at,
            )
        )
    return occurrences


def time_in_stage(
    history: Sequence[StageTransitionRecord],
    stage: Stage,
    now: datetime,
    *,
    occurrence: int = 0,
) -> timedelta | None:
    """Duration of the n-th visit (0-based, negative counts from the last) to `stage`, or None."""
    visits = [item for item in stage_occurrences(history, now) if item.stage == stage]
    try:
        return visits[occurrence].duration
    except IndexError:
        return None


def time_since_last_transition(history: Sequence[StageTransitionRecord], now: datetime) -> timedelta | None:
    if not history:
        return None
    return now - history[-1].changed_at


def stage_summaries(history: Sequence[StageTransitionRecord], now: datetime) -> list[StageSummary]:
    """Per-stage rollup in pipeline order, covering only stages the application has visited.

    `visits` counts arrivals from another stage; `total` adds up every occurrence.
    """
    grouped: dict[Stage, list[StageOccurrence]] = {}
    for item in stage_occurrences(history, now):
        grouped.setdefault(item.stage, []).append(item)

    summaries: list[StageSummary] = []
    ordered = [stage for stage in STAGE_ORDER if stage in grouped]
    ordered += [stage for stage in grouped if stage not in STAGE_ORDER]
    for stage in ordered:
        visits = grouped[stage]
        summaries.append(
            StageSummary(
                stage=stage,
                visits=sum(1 for item in visits if item.entered_from != stage),
                first_entered_at=visits[0].entered_at,
                total=sum((item.duration for item in visits), timedelta()),
            )
        )
    return summaries


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def format_duration(delta: timedelta) -> str:
    """Render a duration in its coarsest non-zero unit, the way the pipeline view shows it.

    More than 30 whole days switches to months; exactly 30 days still renders as days.
    """
    total_seconds = int(delta.total_seconds() // 1)
    # Negative values only come from clock skew between writers.
    if total_seconds < 60:
        return UNDER_A_MINUTE
    days = total_seconds // _DAY_SECONDS
    hours = (total_seconds % _DAY_SECONDS) // _HOUR_SECONDS

    if days > _DAYS_PER_MONTH:
        return _plural(days // _DAYS_PER_MONTH, "mes", "meses")
    if days > 0:
        if hours > 0:
            return f"{days}d {hours}h"
        return _plural(days, "día", "días")
    if hours > 0:
        return _plural(hours, "hora", "horas")
    return _plural(total_seconds // 60, "min", "mins")


def build_timeline(
    stage_records: Iterable[StageTransitionRecord],
    notes: Iterable[Any],
    emails: Iterable[Any],
) -> list[TimelineEntry]:
    """Merge the three append-only sources, most recent first.

    Notes must expose `created_at` and emails `sent_at`. Equal timestamps keep the order in
    which the sources were passed in.
    """
    entries: list[TimelineEntry] = []
    entries.extend(TimelineEntry(TimelineKind.STAGE, record.changed_at, record) for record in stage_records)
    entries.extend(TimelineEntry(TimelineKind.NOTE, note.created_at, note) for note in notes)
    entries.extend(TimelineEntry(TimelineKind.EMAIL, email.sent_at, email) for email in emails)
    return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)
