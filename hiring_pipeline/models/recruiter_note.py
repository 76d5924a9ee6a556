from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hiring_pipeline.core.datetime_utils import utc_now_naive
from hiring_pipeline.db.base import Base


class PipelineRecruiterNote(Base):
    __tablename__ = "pipeline_recruiter_note"

    note_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("pipeline_application.application_id"), index=True, nullable=False
    )
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)
