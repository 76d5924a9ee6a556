from datetime import datetime

from sqlalchemy import DateTime, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from hiring_pipeline.core.datetime_utils import utc_now_naive
from hiring_pipeline.core.taxonomy import FIRST_STAGE, StageStatus
from hiring_pipeline.db.base import Base


class PipelineApplication(Base):
    """
    One candidate's attempt at one job. The current_* / offer / outcome columns are a cache of the
    stage history tail and are only written by the stage transition service.
    """

    __tablename__ = "pipeline_application"

    application_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(Integer, index=True)
    job_id: Mapped[int] = mapped_column(Integer, index=True)

    current_stage: Mapped[str] = mapped_column(String(50), default=FIRST_STAGE.value, index=True)
    current_stage_status: Mapped[str] = mapped_column(String(50), default=StageStatus.PENDING.value)
    offer_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    final_outcome: Mapped[str | None] = mapped_column(String(50), nullable=True)
    final_rejection_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)
    recruiter_rating: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, onupdate=utc_now_naive)
