from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from hiring_pipeline.core.datetime_utils import utc_now_naive
from hiring_pipeline.db.base import Base


class PipelineRatingHistory(Base):
    """Every change to an application's recruiter rating. `rating` is null when the rating was cleared."""

    __tablename__ = "pipeline_rating_history"

    rating_history_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("pipeline_application.application_id"), index=True, nullable=False
    )
    previous_rating: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    rating: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    changed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)
