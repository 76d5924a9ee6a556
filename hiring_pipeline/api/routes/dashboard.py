from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.api import deps
from hiring_pipeline.core.config import settings
from hiring_pipeline.core.taxonomy import STAGE_LABELS, STAGE_ORDER
from hiring_pipeline.schemas.funnel import (
    FunnelOut,
    FunnelStageOut,
    JobPipelineOut,
    PipelineOverviewOut,
    StageCount,
)
from hiring_pipeline.services.funnel import get_pipeline_funnel, pipeline_overview

router = APIRouter(prefix="/pipeline", tags=["dashboard"])


@router.get("/jobs/{job_id}/funnel", response_model=FunnelOut)
async def get_job_funnel(
    job_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    funnel = await get_pipeline_funnel(session, job_id, precision=settings.funnel_precision)
    return FunnelOut(
        job_id=job_id,
        total=funnel.total,
        stages=[
            FunnelStageOut(
                stage=item.stage,
                label=STAGE_LABELS[item.stage],
                reached=item.reached,
                current=item.current,
                conversion_from_previous=item.conversion_from_previous,
                conversion_from_total=item.conversion_from_total,
            )
            for item in funnel.stages
        ],
    )


@router.get("/overview", response_model=PipelineOverviewOut)
async def get_pipeline_overview(
    session: AsyncSession = Depends(deps.get_db_session),
):
    jobs = await pipeline_overview(session)
    return PipelineOverviewOut(
        jobs=[
            JobPipelineOut(
                job_id=job.job_id,
                total=job.total,
                current_counts=[
                    StageCount(stage=stage, label=STAGE_LABELS[stage], count=job.current_counts.get(stage, 0))
                    for stage in STAGE_ORDER
                ],
            )
            for job in jobs
        ]
    )
