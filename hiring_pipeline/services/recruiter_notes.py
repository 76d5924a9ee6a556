from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.core.datetime_utils import to_utc_naive, utc_now_naive
from hiring_pipeline.core.errors import ApplicationNotFound, InvalidRequest, StorageError
from hiring_pipeline.models.application import PipelineApplication
from hiring_pipeline.models.recruiter_note import PipelineRecruiterNote

logger = logging.getLogger("hp.notes")


async def add_recruiter_note(
    session: AsyncSession,
    *,
    application_id: int,
    author: str | None,
    content: str,
    now: datetime | None = None,
) -> PipelineRecruiterNote:
    # Every save is a new row so the note history stays complete.
    text = (content or "").strip()
    if not text:
        raise InvalidRequest("Note content cannot be empty.", details={"field": "content"})

    try:
        exists = (
            await session.execute(
                select(PipelineApplication.application_id).where(
                    PipelineApplication.application_id == application_id
                )
            )
        ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise StorageError("Could not read application.", details={"reason": str(exc)}) from exc
    if exists is None:
        raise ApplicationNotFound(application_id)

    note = PipelineRecruiterNote(
        application_id=application_id,
        author=author,
        content=text,
        created_at=to_utc_naive(now) if now else utc_now_naive(),
    )
    session.add(note)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError("Could not save note.", details={"reason": str(exc)}) from exc

    logger.info("recruiter_note_added", extra={"application_id": application_id, "note_id": note.note_id})
    return note


async def list_recruiter_notes(session: AsyncSession, application_id: int) -> list[PipelineRecruiterNote]:
    try:
        rows = (
            await session.execute(
                select(PipelineRecruiterNote)
                .where(PipelineRecruiterNote.application_id == application_id)
                .order_by(PipelineRecruiterNote.created_at.desc(), PipelineRecruiterNote.note_id.desc())
            )
        ).scalars().all()
    except SQLAlchemyError as exc:
        raise StorageError("Could not read notes.", details={"reason": str(exc)}) from exc
    return list(rows)
