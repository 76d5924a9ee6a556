from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.core.errors import StorageError
from hiring_pipeline.core.taxonomy import FIRST_STAGE, STAGE_ORDER, Stage
from hiring_pipeline.models.application import PipelineApplication
from hiring_pipeline.services.audit_trail import AuditTrail, StageTransitionRecord

DEFAULT_PRECISION = 2


@dataclass(frozen=True)
class FunnelStage:
    stage: Stage
    reached: int
    current: int
    conversion_from_previous: float | None
    conversion_from_total: float | None


@dataclass(frozen=True)
class Funnel:
    job_id: int | None
    total: int
    stages: list[FunnelStage]

    def stage(self, stage: Stage) -> FunnelStage:
        for item in self.stages:
            if item.stage == stage:
                return item
        raise KeyError(stage)


@dataclass(frozen=True)
class JobPipeline:
    job_id: int
    total: int
    current_counts: dict[Stage, int]


def _percentage(part: int, whole: int, precision: int) -> float | None:
    if whole <= 0:
        return None
    return round(part * 100 / whole, precision)


def compute_funnel(
    histories: Mapping[int, Sequence[StageTransitionRecord]],
    *,
    job_id: int | None = None,
    precision: int = DEFAULT_PRECISION,
) -> Funnel:
    """Pass-through counts per stage: an application counts once for every stage it ever entered."""
    reached: dict[Stage, int] = {stage: 0 for stage in STAGE_ORDER}
    current: dict[Stage, int] = {stage: 0 for stage in STAGE_ORDER}

    for history in histories.values():
        for stage in {record.to_stage for record in history}:
            if stage in reached:
                reached[stage] += 1
        if history and history[-1].to_stage in current:
            current[history[-1].to_stage] += 1

    total = reached[FIRST_STAGE]
    stages: list[FunnelStage] = []
    previous: int | None = None
    for stage in STAGE_ORDER:
        count = reached[stage]
        stages.append(
            FunnelStage(
                stage=stage,
                reached=count,
                current=current[stage],
                conversion_from_previous=_percentage(count, previous, precision) if previous is not None else None,
                conversion_from_total=_percentage(count, total, precision),
            )
        )
        previous = count
    return Funnel(job_id=job_id, total=total, stages=stages)


async def get_pipeline_funnel(
    session: AsyncSession,
    job_id: int,
    *,
    precision: int = DEFAULT_PRECISION,
) -> Funnel:
    histories = await AuditTrail(session).histories_for_job(job_id)
    return compute_funnel(histories, job_id=job_id, precision=precision)


async def pipeline_overview(session: AsyncSession) -> list[JobPipeline]:
    """Current-stage snapshot for every job that has at least one application."""
    try:
        rows = (
            await session.execute(
                select(
                    PipelineApplication.job_id,
                    PipelineApplication.current_stage,
                    func.count().label("count"),
                )
                .group_by(PipelineApplication.job_id, PipelineApplication.current_stage)
                .order_by(PipelineApplication.job_id.asc())
            )
        ).all()
    except SQLAlchemyError as exc:
        raise StorageError("Could not read pipeline overview.", details={"reason": str(exc)}) from exc

    jobs: dict[int, dict[Stage, int]] = {}
    for row in rows:
        counts = jobs.setdefault(row.job_id, {stage: 0 for stage in STAGE_ORDER})
        stage = Stage(row.current_stage)
        counts[stage] = counts.get(stage, 0) + int(row.count or 0)

    return [
        JobPipeline(job_id=job_id, total=sum(counts.values()), current_counts=counts)
        for job_id, counts in jobs.items()
    ]
