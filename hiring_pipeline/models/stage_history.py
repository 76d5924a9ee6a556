from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hiring_pipeline.core.datetime_utils import utc_now_naive
from hiring_pipeline.db.base import Base


class PipelineStageHistory(Base):
    """
    Append-only audit trail of accepted stage transitions. Rows are never updated or deleted.
    """

    __tablename__ = "pipeline_stage_history"

    stage_history_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("pipeline_application.application_id"), index=True, nullable=False
    )

    from_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_stage: Mapped[str] = mapped_column(String(50), index=True)
    status: Mapped[str] = mapped_column(String(50))

    offer_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    final_outcome: Mapped[str | None] = mapped_column(String(50), nullable=True)
    final_rejection_reason: Mapped[str | None] = mapped_column(String(50), nullable=True)

    changed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
