from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from hiring_pipeline.core.taxonomy import Stage


class StageCount(BaseModel):
    stage: Stage
    label: str
    count: int


class FunnelStageOut(BaseModel):
    stage: Stage
    label: str
    reached: int
    current: int
    conversion_from_previous: Optional[float] = None
    conversion_from_total: Optional[float] = None


class FunnelOut(BaseModel):
    job_id: int
    total: int
    stages: list[FunnelStageOut]


class JobPipelineOut(BaseModel):
    job_id: int
    total: int
    current_counts: list[StageCount]


class PipelineOverviewOut(BaseModel):
    jobs: list[JobPipelineOut]
