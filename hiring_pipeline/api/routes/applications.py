from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.api import deps
from hiring_pipeline.core.datetime_utils import utc_now_naive
from hiring_pipeline.core.taxonomy import STAGE_LABELS
from hiring_pipeline.schemas.application import (
    ApplicationCreate,
    ApplicationOut,
    StageChangeOut,
    StageChangeRequest,
    StageHistoryOut,
)
from hiring_pipeline.schemas.note import EmailLogOut, NoteCreate, NoteOut
from hiring_pipeline.schemas.rating import RatingHistoryOut, RatingUpdate
from hiring_pipeline.schemas.timeline import (
    StageDurationsOut,
    StageOccurrenceOut,
    StageSummaryOut,
    TimelineEntryOut,
    TimelineOut,
)
from hiring_pipeline.schemas.user import ActorContext
from hiring_pipeline.services.audit_trail import AuditTrail
from hiring_pipeline.services.locks import ApplicationLockRegistry
from hiring_pipeline.services.notifications import Notifier, list_email_logs
from hiring_pipeline.services.recruiter_notes import add_recruiter_note, list_recruiter_notes
from hiring_pipeline.services.recruiter_rating import list_rating_history, set_recruiter_rating
from hiring_pipeline.services.stage_transitions import get_application, open_application, request_stage_change
from hiring_pipeline.services.timeline import (
    TimelineKind,
    build_timeline,
    format_duration,
    stage_occurrences,
    stage_summaries,
    time_since_last_transition,
)
from hiring_pipeline.services.transition_validator import ProposedChange

router = APIRouter(prefix="/pipeline/applications", tags=["applications"])


def _timeline_payload(kind: TimelineKind, payload) -> dict:
    if kind == TimelineKind.STAGE:
        return StageHistoryOut.from_record(payload).model_dump(mode="json")
    if kind == TimelineKind.NOTE:
        return NoteOut.model_validate(payload).model_dump(mode="json")
    return EmailLogOut.model_validate(payload).model_dump(mode="json")


@router.post("", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: ApplicationCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    opened = await open_application(
        session,
        candidate_id=payload.candidate_id,
        job_id=payload.job_id,
        actor=actor.actor_id,
        notes=payload.notes,
    )
    return ApplicationOut.model_validate(opened.application)


@router.get("/{application_id}", response_model=ApplicationOut)
async def read_application(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    application = await get_application(session, application_id)
    return ApplicationOut.model_validate(application)


@router.post("/{application_id}/stage", response_model=StageChangeOut)
async def change_stage(
    application_id: int,
    payload: StageChangeRequest,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
    locks: ApplicationLockRegistry = Depends(deps.get_lock_registry),
    notifier: Notifier = Depends(deps.get_notifier),
):
    accepted = await request_stage_change(
        session,
        application_id=application_id,
        proposed=ProposedChange(
            stage=payload.to_stage,
            status=payload.status,
            offer_status=payload.offer_status,
            final_outcome=payload.final_outcome,
            rejection_reason=payload.final_rejection_reason,
        ),
        actor=actor.actor_id,
        notes=payload.notes,
        locks=locks,
        notifier=notifier,
    )
    return StageChangeOut(
        application=ApplicationOut.model_validate(accepted.application),
        record=StageHistoryOut.from_record(accepted.record),
        changed=accepted.changed,
    )


@router.get("/{application_id}/history", response_model=list[StageHistoryOut])
async def read_history(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    await get_application(session, application_id)
    history = await AuditTrail(session).history_for(application_id)
    return [StageHistoryOut.from_record(record) for record in history]


@router.get("/{application_id}/timeline", response_model=TimelineOut)
async def read_timeline(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    await get_application(session, application_id)
    history = await AuditTrail(session).history_for(application_id)
    notes = await list_recruiter_notes(session, application_id)
    emails = await list_email_logs(session, application_id)

    entries = build_timeline(history, notes, emails)
    return TimelineOut(
        application_id=application_id,
        entries=[
            TimelineEntryOut(
                kind=entry.kind,
                timestamp=entry.timestamp,
                payload=_timeline_payload(entry.kind, entry.payload),
            )
            for entry in entries
        ],
    )


@router.get("/{application_id}/stage-durations", response_model=StageDurationsOut)
async def read_stage_durations(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    await get_application(session, application_id)
    history = await AuditTrail(session).history_for(application_id)
    now = utc_now_naive()

    since_last = time_since_last_transition(history, now)
    return StageDurationsOut(
        application_id=application_id,
        occurrences=[
            StageOccurrenceOut(
                stage=item.stage,
                label=STAGE_LABELS[item.stage],
                entered_at=item.entered_at,
                exited_at=item.exited_at,
                is_current=item.is_current,
                duration_seconds=int(item.duration.total_seconds()),
                duration_label=format_duration(item.duration),
            )
            for item in stage_occurrences(history, now)
        ],
        summaries=[
            StageSummaryOut(
                stage=item.stage,
                label=STAGE_LABELS[item.stage],
                visits=item.visits,
                first_entered_at=item.first_entered_at,
                total_seconds=int(item.total.total_seconds()),
                total_label=format_duration(item.total),
            )
            for item in stage_summaries(history, now)
        ],
        time_since_last_transition_seconds=int(since_last.total_seconds()) if since_last is not None else None,
        time_since_last_transition_label=format_duration(since_last) if since_last is not None else None,
    )


@router.get("/{application_id}/notes", response_model=list[NoteOut])
async def read_notes(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    await get_application(session, application_id)
    notes = await list_recruiter_notes(session, application_id)
    return [NoteOut.model_validate(note) for note in notes]


@router.post("/{application_id}/notes", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
async def create_note(
    application_id: int,
    payload: NoteCreate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
):
    note = await add_recruiter_note(
        session,
        application_id=application_id,
        author=actor.actor_id,
        content=payload.content,
    )
    return NoteOut.model_validate(note)


@router.put("/{application_id}/rating", response_model=ApplicationOut)
async def update_rating(
    application_id: int,
    payload: RatingUpdate,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
    locks: ApplicationLockRegistry = Depends(deps.get_lock_registry),
):
    application = await set_recruiter_rating(
        session,
        application_id=application_id,
        rating=payload.rating,
        actor=actor.actor_id,
        locks=locks,
    )
    return ApplicationOut.model_validate(application)


@router.delete("/{application_id}/rating", response_model=ApplicationOut)
async def clear_rating(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
    actor: ActorContext = Depends(deps.get_actor),
    locks: ApplicationLockRegistry = Depends(deps.get_lock_registry),
):
    application = await set_recruiter_rating(
        session,
        application_id=application_id,
        rating=None,
        actor=actor.actor_id,
        locks=locks,
    )
    return ApplicationOut.model_validate(application)


@router.get("/{application_id}/rating-history", response_model=list[RatingHistoryOut])
async def read_rating_history(
    application_id: int,
    session: AsyncSession = Depends(deps.get_db_session),
):
    await get_application(session, application_id)
    history = await list_rating_history(session, application_id)
    return [RatingHistoryOut.model_validate(item) for item in history]
