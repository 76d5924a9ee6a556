from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from hiring_pipeline.core.taxonomy import Stage
from hiring_pipeline.services.timeline import TimelineKind


class TimelineEntryOut(BaseModel):
    kind: TimelineKind
    timestamp: datetime
    payload: Dict[str, Any]


class TimelineOut(BaseModel):
    application_id: int
    entries: List[TimelineEntryOut]


class StageOccurrenceOut(BaseModel):
    stage: Stage
    label: str
    entered_at: datetime
    exited_at: Optional[datetime] = None
    is_current: bool
    duration_seconds: int
    duration_label: str


class StageSummaryOut(BaseModel):
    stage: Stage
    label: str
    visits: int
    first_entered_at: datetime
    total_seconds: int
    total_label: str


class StageDurationsOut(BaseModel):
    application_id: int
    occurrences: List[StageOccurrenceOut]
    summaries: List[StageSummaryOut]
    time_since_last_transition_seconds: Optional[int] = None
    time_since_last_transition_label: Optional[str] = None
