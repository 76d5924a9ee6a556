from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hiring_pipeline.core.datetime_utils import utc_now_naive
from hiring_pipeline.db.base import Base


class PipelineEmailLog(Base):
    """
    Outbound notification log. Written by the notification sender after every attempt, read by the
    timeline. `error` is null for successful sends.
    """

    __tablename__ = "pipeline_email_log"

    email_log_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("pipeline_application.application_id"), index=True, nullable=False
    )
    recipient: Mapped[str | None] = mapped_column(String(255), nullable=True)
    template_key: Mapped[str] = mapped_column(String(100), index=True)
    subject: Mapped[str | None] = mapped_column(String(500), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)
