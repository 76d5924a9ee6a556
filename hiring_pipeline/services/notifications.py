from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.core.datetime_utils import utc_now_naive
from hiring_pipeline.core.errors import StorageError
from hiring_pipeline.core.taxonomy import Stage, StageStatus
from hiring_pipeline.models.email_log import PipelineEmailLog

logger = logging.getLogger("hp.notifications")

TEMPLATE_CANDIDATE_REJECTED = "candidate_rejected"
TEMPLATE_INTERVIEW_COORDINATION = "interview_coordination"


@dataclass(frozen=True)
class NotificationRequest:
    application_id: int
    template_key: str
    context: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    async def notify(self, request: NotificationRequest) -> None: ...


class LoggingNotifier:
    """Default collaborator when no mail sender is wired in: records the intent in the log only."""

    async def notify(self, request: NotificationRequest) -> None:
        logger.info(
            "notification_skipped",
            extra={
                "application_id": request.application_id,
                "template_key": request.template_key,
                "reason": "no_sender_configured",
            },
        )


def notifications_for_transition(
    application_id: int,
    *,
    stage: Stage,
    status: StageStatus,
) -> list[NotificationRequest]:
    requests: list[NotificationRequest] = []
    if status == StageStatus.DISCARDED_IN_STAGE:
        requests.append(
            NotificationRequest(
                application_id=application_id,
                template_key=TEMPLATE_CANDIDATE_REJECTED,
                context={"stage": stage.value},
            )
        )
    if stage == Stage.HR_REVIEW and status == StageStatus.COMPLETED:
        requests.append(
            NotificationRequest(application_id=application_id, template_key=TEMPLATE_INTERVIEW_COORDINATION)
        )
    return requests


async def dispatch_notifications(notifier: Notifier | None, requests: Iterable[NotificationRequest]) -> int:
    """Hand notices to the sender. Failures are logged: the transition that triggered them is final."""
    if notifier is None:
        return 0
    delivered = 0
    for request in requests:
        try:
            await notifier.notify(request)
            delivered += 1
        except Exception:  # noqa: BLE001
            logger.exception(
                "notification_dispatch_failed",
                extra={"application_id": request.application_id, "template_key": request.template_key},
            )
    return delivered


async def record_email_notification(
    session: AsyncSession,
    *,
    application_id: int,
    template_key: str,
    recipient: str | None = None,
    subject: str | None = None,
    error: str | None = None,
    meta: dict[str, Any] | None = None,
    sent_at: datetime | None = None,
) -> PipelineEmailLog:
    """Append contract for the mail sender: call once after every send attempt, success or failure."""
    entry = PipelineEmailLog(
        application_id=application_id,
        recipient=recipient,
        template_key=template_key,
        subject=subject,
        error=error[:2000] if error else None,
        meta_json=meta,
        sent_at=sent_at or utc_now_naive(),
    )
    session.add(entry)
    try:
        await session.flush()
    except SQLAlchemyError as exc:
        raise StorageError("Could not record email notification.", details={"reason": str(exc)}) from exc
    return entry


async def list_email_logs(session: AsyncSession, application_id: int) -> list[PipelineEmailLog]:
    try:
        rows = (
            await session.execute(
                select(PipelineEmailLog)
                .where(PipelineEmailLog.application_id == application_id)
                .order_by(PipelineEmailLog.sent_at.desc(), PipelineEmailLog.email_log_id.desc())
            )
        ).scalars().all()
    except SQLAlchemyError as exc:
        raise StorageError("Could not read email notifications.", details={"reason": str(exc)}) from exc
    return list(rows)
