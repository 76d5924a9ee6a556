from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.core.datetime_utils import to_utc_naive, utc_now_naive
from hiring_pipeline.core.errors import ApplicationNotFound, StorageError, TransitionError
from hiring_pipeline.core.taxonomy import (
    FIRST_STAGE,
    FinalOutcome,
    OfferStatus,
    RejectionReason,
    Stage,
    StageStatus,
)
from hiring_pipeline.models.application import PipelineApplication
from hiring_pipeline.services.audit_trail import AuditTrail, StageTransitionRecord
from hiring_pipeline.services.locks import ApplicationLockRegistry
from hiring_pipeline.services.notifications import (
    Notifier,
    dispatch_notifications,
    notifications_for_transition,
)
from hiring_pipeline.services.transition_validator import ApplicationState, ProposedChange, validate

logger = logging.getLogger("hp.transitions")

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class AcceptedTransition:
    application: PipelineApplication
    record: StageTransitionRecord
    previous: ApplicationState
    changed: bool


def _optional(enum_cls: type[E], raw: str | None) -> E | None:
    return enum_cls(raw) if raw else None


def state_of(application: PipelineApplication) -> ApplicationState:
    return ApplicationState(
        stage=Stage(application.current_stage),
        status=StageStatus(application.current_stage_status),
        offer_status=_optional(OfferStatus, application.offer_status),
        final_outcome=_optional(FinalOutcome, application.final_outcome),
        rejection_reason=_optional(RejectionReason, application.final_rejection_reason),
    )


def state_of_record(record: StageTransitionRecord) -> ApplicationState:
    return ApplicationState(
        stage=record.to_stage,
        status=record.status,
        offer_status=record.offer_status,
        final_outcome=record.final_outcome,
        rejection_reason=record.rejection_reason,
    )


def _write_summary(application: PipelineApplication, state: ApplicationState, now: datetime) -> None:
    application.current_stage = state.stage.value
    application.current_stage_status = state.status.value
    application.offer_status = state.offer_status.value if state.offer_status else None
    application.final_outcome = state.final_outcome.value if state.final_outcome else None
    application.final_rejection_reason = state.rejection_reason.value if state.rejection_reason else None
    application.updated_at = now


async def _load_for_update(session: AsyncSession, application_id: int) -> PipelineApplication | None:
    return (
        await session.execute(
            select(PipelineApplication)
            .where(PipelineApplication.application_id == application_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalars().first()


def _next_changed_at(candidate: datetime, tail: StageTransitionRecord | None) -> datetime:
    # The trail is ordered by changed_at; a writer with a slow clock must not land behind the tail.
    if tail is not None and candidate < tail.changed_at:
        return tail.changed_at
    return candidate


async def _rollback_quietly(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except SQLAlchemyError:
        logger.exception("session_rollback_failed")


async def open_application(
    session: AsyncSession,
    *,
    candidate_id: int,
    job_id: int,
    actor: str | None,
    notes: str | None = None,
    now: datetime | None = None,
) -> AcceptedTransition:
    """Create an application at first contact together with its initial trail record."""
    now = to_utc_naive(now) if now else utc_now_naive()
    state = ApplicationState(stage=FIRST_STAGE, status=StageStatus.PENDING)
    application = PipelineApplication(candidate_id=candidate_id, job_id=job_id, created_at=now)
    _write_summary(application, state, now)
    try:
        session.add(application)
        await session.flush()
        record = await AuditTrail(session).append(
            StageTransitionRecord(
                application_id=application.application_id,
                from_stage=None,
                to_stage=state.stage,
                status=state.status,
                changed_at=now,
                changed_by=actor,
                notes=notes,
            )
        )
        await session.commit()
    except StorageError:
        await _rollback_quietly(session)
        raise
    except SQLAlchemyError as exc:
        await _rollback_quietly(session)
        raise StorageError("Could not create application.", details={"reason": str(exc)}) from exc

    logger.info(
        "application_opened",
        extra={"application_id": application.application_id, "candidate_id": candidate_id, "job_id": job_id},
    )
    return AcceptedTransition(application=application, record=record, previous=state, changed=True)


async def request_stage_change(
    session: AsyncSession,
    *,
    application_id: int,
    proposed: ProposedChange,
    actor: str | None,
    locks: ApplicationLockRegistry,
    notes: str | None = None,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> AcceptedTransition:
    """Validate and apply one stage change.

    Read, validate, append and summary update run under the application's lock and inside one
    transaction, so the summary always equals the trail tail. Validation failures raise a
    TransitionError and write nothing.
    """
    async with locks.hold(application_id):
        try:
            application = await _load_for_update(session, application_id)
            if application is None:
                await _rollback_quietly(session)
                raise ApplicationNotFound(application_id)

            current = state_of(application)
            result = validate(current, proposed)
            if result.error is not None:
                await _rollback_quietly(session)
                logger.info(
                    "stage_change_rejected",
                    extra={
                        "application_id": application_id,
                        "kind": result.error.code,
                        "current_stage": current.stage.value,
                        "missing_fields": list(result.missing_fields),
                    },
                )
                raise result.error

            accepted = result.unwrap()
            trail = AuditTrail(session)
            changed_at = _next_changed_at(
                to_utc_naive(now) if now else utc_now_naive(),
                await trail.tail(application_id),
            )
            record = await trail.append(
                StageTransitionRecord(
                    application_id=application_id,
                    from_stage=current.stage,
                    to_stage=accepted.stage,
                    status=accepted.status,
                    changed_at=changed_at,
                    changed_by=actor,
                    notes=notes,
                    offer_status=accepted.offer_status,
                    final_outcome=accepted.final_outcome,
                    rejection_reason=accepted.rejection_reason,
                )
            )
            _write_summary(application, accepted, changed_at)
            await session.commit()
        except (TransitionError, ApplicationNotFound):
            raise
        except StorageError:
            await _rollback_quietly(session)
            raise
        except SQLAlchemyError as exc:
            await _rollback_quietly(session)
            raise StorageError("Could not apply stage change.", details={"reason": str(exc)}) from exc

    logger.info(
        "stage_change_applied",
        extra={
            "application_id": application_id,
            "from_stage": current.stage.value,
            "to_stage": accepted.stage.value,
            "status": accepted.status.value,
            "changed_by": actor,
        },
    )

    await dispatch_notifications(
        notifier,
        notifications_for_transition(application_id, stage=accepted.stage, status=accepted.status),
    )
    return AcceptedTransition(
        application=application,
        record=record,
        previous=current,
        changed=current != accepted,
    )


async def get_application(session: AsyncSession, application_id: int) -> PipelineApplication:
    """Load an application, repairing its summary from the trail tail when the two disagree."""
    try:
        application = await session.get(PipelineApplication, application_id)
    except SQLAlchemyError as exc:
        raise StorageError("Could not read application.", details={"reason": str(exc)}) from exc
    if application is None:
        raise ApplicationNotFound(application_id)

    tail = await AuditTrail(session).tail(application_id)
    if tail is None:
        return application

    expected = state_of_record(tail)
    if state_of(application) == expected:
        return application

    logger.warning(
        "application_summary_reconciled",
        extra={
            "application_id": application_id,
            "summary_stage": application.current_stage,
            "summary_status": application.current_stage_status,
            "trail_stage": expected.stage.value,
            "trail_status": expected.status.value,
        },
    )
    _write_summary(application, expected, utc_now_naive())
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await _rollback_quietly(session)
        raise StorageError("Could not reconcile application summary.", details={"reason": str(exc)}) from exc
    return application
