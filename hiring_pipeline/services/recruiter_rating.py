from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.core.datetime_utils import to_utc_naive, utc_now_naive
from hiring_pipeline.core.errors import ApplicationNotFound, InvalidRequest, StorageError
from hiring_pipeline.models.application import PipelineApplication
from hiring_pipeline.models.rating_history import PipelineRatingHistory
from hiring_pipeline.services.locks import ApplicationLockRegistry

logger = logging.getLogger("hp.rating")

MIN_RATING = 1
MAX_RATING = 5


async def set_recruiter_rating(
    session: AsyncSession,
    *,
    application_id: int,
    rating: int | None,
    actor: str | None,
    locks: ApplicationLockRegistry,
    now: datetime | None = None,
) -> PipelineApplication:
    """Set (or clear, with `rating=None`) the recruiter rating and append the change to its history."""
    if rating is not None and not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidRequest(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}.",
            details={"field": "rating", "rating": rating},
        )

    async with locks.hold(application_id):
        try:
            application = (
                await session.execute(
                    select(PipelineApplication)
                    .where(PipelineApplication.application_id == application_id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                )
            ).scalars().first()
            if application is None:
                await session.rollback()
                raise ApplicationNotFound(application_id)

            changed_at = to_utc_naive(now) if now else utc_now_naive()
            previous = application.recruiter_rating
            application.recruiter_rating = rating
            application.updated_at = changed_at
            session.add(
                PipelineRatingHistory(
                    application_id=application_id,
                    previous_rating=previous,
                    rating=rating,
                    changed_by=actor,
                    changed_at=changed_at,
                )
            )
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise StorageError("Could not save rating.", details={"reason": str(exc)}) from exc

    logger.info(
        "recruiter_rating_changed",
        extra={"application_id": application_id, "previous_rating": previous, "rating": rating, "changed_by": actor},
    )
    return application


async def list_rating_history(session: AsyncSession, application_id: int) -> list[PipelineRatingHistory]:
    try:
        rows = (
            await session.execute(
                select(PipelineRatingHistory)
                .where(PipelineRatingHistory.application_id == application_id)
                .order_by(PipelineRatingHistory.changed_at.desc(), PipelineRatingHistory.rating_history_id.desc())
            )
        ).scalars().all()
    except SQLAlchemyError as exc:
        raise StorageError("Could not read rating history.", details={"reason": str(exc)}) from exc
    return list(rows)
