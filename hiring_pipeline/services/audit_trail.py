from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.core.errors import StorageError
from hiring_pipeline.core.taxonomy import FinalOutcome, OfferStatus, RejectionReason, Stage, StageStatus
from hiring_pipeline.models.application import PipelineApplication
from hiring_pipeline.models.stage_history import PipelineStageHistory

logger = logging.getLogger("hp.audit")

_HISTORY_ORDER = (PipelineStageHistory.changed_at.asc(), PipelineStageHistory.stage_history_id.asc())


@dataclass(frozen=True)
class StageTransitionRecord:
    application_id: int
    from_stage: Stage | None
    to_stage: Stage
    status: StageStatus
    changed_at: datetime
    changed_by: str | None = None
    notes: str | None = None
    offer_status: OfferStatus | None = None
    final_outcome: FinalOutcome | None = None
    rejection_reason: RejectionReason | None = None
    record_id: int | None = None

    @classmethod
    def from_row(cls, row: PipelineStageHistory) -> "StageTransitionRecord":
        return cls(
            application_id=row.application_id,
            from_stage=Stage(row.from_stage) if row.from_stage else None,
            to_stage=Stage(row.to_stage),
            status=StageStatus(row.status),
            changed_at=row.changed_at,
            changed_by=row.changed_by,
            notes=row.notes,
            offer_status=OfferStatus(row.offer_status) if row.offer_status else None,
            final_outcome=FinalOutcome(row.final_outcome) if row.final_outcome else None,
            rejection_reason=RejectionReason(row.final_rejection_reason) if row.final_rejection_reason else None,
            record_id=row.stage_history_id,
        )


def _enum_value(value) -> str | None:
    return value.value if value is not None else None


class AuditTrail:
    """Append-only store of stage transitions, bound to the caller's session.

    `append` only flushes; committing (together with the summary update) is the caller's job.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append(self, record: StageTransitionRecord) -> StageTransitionRecord:
        row = PipelineStageHistory(
            application_id=record.application_id,
            from_stage=_enum_value(record.from_stage),
            to_stage=record.to_stage.value,
            status=record.status.value,
            offer_status=_enum_value(record.offer_status),
            final_outcome=_enum_value(record.final_outcome),
            final_rejection_reason=_enum_value(record.rejection_reason),
            changed_by=record.changed_by,
            changed_at=record.changed_at,
            notes=record.notes,
        )
        self.session.add(row)
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "stage_history_append_failed",
                extra={"application_id": record.application_id, "to_stage": record.to_stage.value},
            )
            raise StorageError("Could not append stage transition.", details={"reason": str(exc)}) from exc

        logger.info(
            "stage_history_appended",
            extra={
                "application_id": record.application_id,
                "stage_history_id": row.stage_history_id,
                "from_stage": row.from_stage,
                "to_stage": row.to_stage,
                "status": row.status,
            },
        )
        return StageTransitionRecord.from_row(row)

    async def history_for(self, application_id: int) -> list[StageTransitionRecord]:
        try:
            rows = (
                await self.session.execute(
                    select(PipelineStageHistory)
                    .where(PipelineStageHistory.application_id == application_id)
                    .order_by(*_HISTORY_ORDER)
                )
            ).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError("Could not read stage history.", details={"reason": str(exc)}) from exc
        return [StageTransitionRecord.from_row(row) for row in rows]

    async def tail(self, application_id: int) -> StageTransitionRecord | None:
        try:
            row = (
                await self.session.execute(
                    select(PipelineStageHistory)
                    .where(PipelineStageHistory.application_id == application_id)
                    .order_by(
                        PipelineStageHistory.changed_at.desc(), PipelineStageHistory.stage_history_id.desc()
                    )
                    .limit(1)
                )
            ).scalars().first()
        except SQLAlchemyError as exc:
            raise StorageError("Could not read stage history.", details={"reason": str(exc)}) from exc
        return StageTransitionRecord.from_row(row) if row else None

    async def histories_for_job(self, job_id: int) -> dict[int, list[StageTransitionRecord]]:
        """Every application of the job mapped to its ordered history (empty list when it has none)."""
        try:
            application_ids = (
                await self.session.execute(
                    select(PipelineApplication.application_id)
                    .where(PipelineApplication.job_id == job_id)
                    .order_by(PipelineApplication.application_id.asc())
                )
            ).scalars().all()
            rows = (
                await self.session.execute(
                    select(PipelineStageHistory)
                    .join(
                        PipelineApplication,
                        PipelineApplication.application_id == PipelineStageHistory.application_id,
                    )
                    .where(PipelineApplication.job_id == job_id)
                    .order_by(*_HISTORY_ORDER)
                )
            ).scalars().all()
        except SQLAlchemyError as exc:
            raise StorageError("Could not read stage history.", details={"reason": str(exc)}) from exc

        histories: dict[int, list[StageTransitionRecord]] = defaultdict(list)
        for application_id in application_ids:
            histories[application_id] = []
        for row in rows:
            histories[row.application_id].append(StageTransitionRecord.from_row(row))
        return dict(histories)
