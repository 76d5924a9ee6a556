import asyncio
from datetime import datetime, timedelta

import pytest

from hiring_pipeline.core.errors import (
    ApplicationNotFound,
    DiscardedApplicationImmutable,
    InvalidRequest,
    MissingOfferStatus,
    StorageError,
)
from hiring_pipeline.core.taxonomy import FinalOutcome, OfferStatus, RejectionReason, Stage, StageStatus
from hiring_pipeline.models.application import PipelineApplication
from hiring_pipeline.services.audit_trail import AuditTrail
from hiring_pipeline.services.locks import ApplicationLockRegistry
from hiring_pipeline.services.notifications import (
    TEMPLATE_CANDIDATE_REJECTED,
    TEMPLATE_INTERVIEW_COORDINATION,
    list_email_logs,
    record_email_notification,
)
from hiring_pipeline.services.recruiter_notes import add_recruiter_note, list_recruiter_notes
from hiring_pipeline.services.stage_transitions import (
    get_application,
    open_application,
    request_stage_change,
    state_of,
    state_of_record,
)
from hiring_pipeline.services.transition_validator import ProposedChange

T0 = datetime(2024, 4, 1, 10, 0, 0)


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def notify(self, request):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append(request)


async def _open(session, job_id=1):
    opened = await open_application(session, candidate_id=100, job_id=job_id, actor="hr@example.com", now=T0)
    return opened.application.application_id


async def _assert_summary_matches_tail(session, application_id):
    application = await session.get(PipelineApplication, application_id)
    await session.refresh(application)
    tail = await AuditTrail(session).tail(application_id)
    assert state_of(application) == state_of_record(tail)


async def test_open_application_writes_initial_record(db_session):
    application_id = await _open(db_session)

    history = await AuditTrail(db_session).history_for(application_id)
    assert len(history) == 1
    assert history[0].from_stage is None
    assert history[0].to_stage == Stage.CV_RECEIVED
    assert history[0].status == StageStatus.PENDING
    assert history[0].changed_by == "hr@example.com"
    await _assert_summary_matches_tail(db_session, application_id)


async def test_accepted_change_appends_one_record(db_session, locks):
    application_id = await _open(db_session)

    accepted = await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.HR_REVIEW, status=StageStatus.COMPLETED),
        actor="hr@example.com",
        locks=locks,
        now=T0 + timedelta(hours=1),
    )

    assert accepted.changed is True
    assert accepted.previous.stage == Stage.CV_RECEIVED
    assert accepted.record.from_stage == Stage.CV_RECEIVED
    assert accepted.record.to_stage == Stage.HR_REVIEW
    history = await AuditTrail(db_session).history_for(application_id)
    assert [record.to_stage for record in history] == [Stage.CV_RECEIVED, Stage.HR_REVIEW]
    assert accepted.application.current_stage == Stage.HR_REVIEW.value
    assert accepted.application.current_stage_status == StageStatus.COMPLETED.value
    await _assert_summary_matches_tail(db_session, application_id)


async def test_missing_offer_status_writes_nothing(db_session, locks):
    application_id = await _open(db_session)

    with pytest.raises(MissingOfferStatus):
        await request_stage_change(
            db_session,
            application_id=application_id,
            proposed=ProposedChange(stage=Stage.OFFER, status=StageStatus.PENDING),
            actor="hr@example.com",
            locks=locks,
        )

    history = await AuditTrail(db_session).history_for(application_id)
    assert len(history) == 1
    application = await get_application(db_session, application_id)
    assert application.current_stage == Stage.CV_RECEIVED.value


async def test_discarded_application_stays_put(db_session, locks):
    application_id = await _open(db_session)
    await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.HR_INTERVIEW, status=StageStatus.DISCARDED_IN_STAGE),
        actor="hr@example.com",
        locks=locks,
        now=T0 + timedelta(hours=1),
    )

    with pytest.raises(DiscardedApplicationImmutable):
        await request_stage_change(
            db_session,
            application_id=application_id,
            proposed=ProposedChange(stage=Stage.EO_INTERVIEW, status=StageStatus.PENDING),
            actor="hr@example.com",
            locks=locks,
        )

    history = await AuditTrail(db_session).history_for(application_id)
    assert len(history) == 2
    assert history[-1].status == StageStatus.DISCARDED_IN_STAGE


async def test_repeated_identical_request_appends_but_keeps_summary(db_session, locks):
    application_id = await _open(db_session)
    proposed = ProposedChange(stage=Stage.HR_REVIEW, status=StageStatus.IN_PROGRESS)

    first = await request_stage_change(
        db_session, application_id=application_id, proposed=proposed, actor="a", locks=locks,
        now=T0 + timedelta(hours=1),
    )
    second = await request_stage_change(
        db_session, application_id=application_id, proposed=proposed, actor="a", locks=locks,
        now=T0 + timedelta(hours=2),
    )

    assert first.changed is True
    assert second.changed is False
    assert second.record.from_stage == Stage.HR_REVIEW
    history = await AuditTrail(db_session).history_for(application_id)
    assert len(history) == 3
    await _assert_summary_matches_tail(db_session, application_id)


async def test_closing_with_outcome_and_reason(db_session, locks):
    application_id = await _open(db_session)
    accepted = await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(
            stage=Stage.CLOSED,
            status=StageStatus.COMPLETED,
            offer_status=OfferStatus.REJECTED_BY_CANDIDATE,
            final_outcome=FinalOutcome.REJECTED_BY_CANDIDATE,
            rejection_reason=RejectionReason.ACCEPTED_OTHER_OFFER,
        ),
        actor="hr@example.com",
        notes="Tomó otra oferta",
        locks=locks,
    )

    assert accepted.application.final_outcome == FinalOutcome.REJECTED_BY_CANDIDATE.value
    assert accepted.application.final_rejection_reason == RejectionReason.ACCEPTED_OTHER_OFFER.value
    assert accepted.record.notes == "Tomó otra oferta"
    await _assert_summary_matches_tail(db_session, application_id)


async def test_unknown_application(db_session, locks):
    with pytest.raises(ApplicationNotFound):
        await request_stage_change(
            db_session,
            application_id=999,
            proposed=ProposedChange(stage=Stage.HR_REVIEW, status=StageStatus.PENDING),
            actor=None,
            locks=locks,
        )
    with pytest.raises(ApplicationNotFound):
        await get_application(db_session, 999)


async def test_concurrent_changes_are_serialized(session_factory, locks):
    async with session_factory() as session:
        application_id = await _open(session)

    async def change(stage):
        async with session_factory() as session:
            return await request_stage_change(
                session,
                application_id=application_id,
                proposed=ProposedChange(stage=stage, status=StageStatus.PENDING),
                actor="worker",
                locks=locks,
            )

    results = await asyncio.gather(change(Stage.HR_REVIEW), change(Stage.HR_INTERVIEW))

    async with session_factory() as session:
        history = await AuditTrail(session).history_for(application_id)
        assert len(history) == 3
        # Each writer saw the state the previous one committed.
        assert history[2].from_stage == history[1].to_stage
        assert {result.record.to_stage for result in results} == {Stage.HR_REVIEW, Stage.HR_INTERVIEW}
        await _assert_summary_matches_tail(session, application_id)
    assert len(locks) == 0


async def test_lock_timeout_is_a_storage_error(db_session):
    application_id = await _open(db_session)
    locks = ApplicationLockRegistry(timeout_seconds=0.05)
    held = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with locks.hold(application_id):
            held.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await held.wait()
    try:
        with pytest.raises(StorageError) as excinfo:
            await request_stage_change(
                db_session,
                application_id=application_id,
                proposed=ProposedChange(stage=Stage.HR_REVIEW, status=StageStatus.PENDING),
                actor="hr@example.com",
                locks=locks,
            )
        assert excinfo.value.retryable is True
    finally:
        release.set()
        await task

    history = await AuditTrail(db_session).history_for(application_id)
    assert len(history) == 1
    assert len(locks) == 0


async def test_get_application_reconciles_summary_from_trail(db_session, locks):
    application_id = await _open(db_session)
    await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.HR_INTERVIEW, status=StageStatus.ON_HOLD),
        actor="hr@example.com",
        locks=locks,
    )

    application = await db_session.get(PipelineApplication, application_id)
    application.current_stage = Stage.CV_RECEIVED.value
    application.current_stage_status = StageStatus.PENDING.value
    await db_session.commit()

    repaired = await get_application(db_session, application_id)

    assert repaired.current_stage == Stage.HR_INTERVIEW.value
    assert repaired.current_stage_status == StageStatus.ON_HOLD.value
    await _assert_summary_matches_tail(db_session, application_id)


async def test_notifications_follow_the_transition(db_session, locks):
    application_id = await _open(db_session)
    notifier = RecordingNotifier()

    await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.HR_REVIEW, status=StageStatus.COMPLETED),
        actor="hr@example.com",
        locks=locks,
        notifier=notifier,
    )
    await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.HR_INTERVIEW, status=StageStatus.DISCARDED_IN_STAGE),
        actor="hr@example.com",
        locks=locks,
        notifier=notifier,
    )

    assert [request.template_key for request in notifier.sent] == [
        TEMPLATE_INTERVIEW_COORDINATION,
        TEMPLATE_CANDIDATE_REJECTED,
    ]
    assert notifier.sent[1].context == {"stage": Stage.HR_INTERVIEW.value}


async def test_failing_notifier_does_not_undo_the_transition(db_session, locks):
    application_id = await _open(db_session)

    accepted = await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.HR_REVIEW, status=StageStatus.DISCARDED_IN_STAGE),
        actor="hr@example.com",
        locks=locks,
        notifier=RecordingNotifier(fail=True),
    )

    assert accepted.application.current_stage_status == StageStatus.DISCARDED_IN_STAGE.value
    assert len(await AuditTrail(db_session).history_for(application_id)) == 2


async def test_recruiter_notes_are_append_only(db_session):
    application_id = await _open(db_session)

    await add_recruiter_note(db_session, application_id=application_id, author="a", content=" primera ", now=T0)
    await add_recruiter_note(
        db_session, application_id=application_id, author="a", content="segunda", now=T0 + timedelta(minutes=5)
    )

    notes = await list_recruiter_notes(db_session, application_id)
    assert [note.content for note in notes] == ["segunda", "primera"]

    with pytest.raises(InvalidRequest):
        await add_recruiter_note(db_session, application_id=application_id, author="a", content="   ")
    with pytest.raises(ApplicationNotFound):
        await add_recruiter_note(db_session, application_id=999, author="a", content="hola")


async def test_email_log_is_listed_newest_first(db_session):
    application_id = await _open(db_session)

    await record_email_notification(
        db_session,
        application_id=application_id,
        template_key=TEMPLATE_INTERVIEW_COORDINATION,
        recipient="candidate@example.com",
        sent_at=T0,
    )
    await record_email_notification(
        db_session,
        application_id=application_id,
        template_key=TEMPLATE_CANDIDATE_REJECTED,
        recipient="candidate@example.com",
        error="mailbox unavailable",
        sent_at=T0 + timedelta(days=1),
    )
    await db_session.commit()

    logs = await list_email_logs(db_session, application_id)
    assert [log.template_key for log in logs] == [TEMPLATE_CANDIDATE_REJECTED, TEMPLATE_INTERVIEW_COORDINATION]
    assert logs[0].error == "mailbox unavailable"


async def test_slow_writer_clock_does_not_land_behind_the_tail(db_session, locks):
    application_id = await _open(db_session)
    await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.HR_INTERVIEW, status=StageStatus.PENDING),
        actor="hr@example.com",
        locks=locks,
        now=T0 + timedelta(hours=5),
    )

    accepted = await request_stage_change(
        db_session,
        application_id=application_id,
        proposed=ProposedChange(stage=Stage.LEAD_INTERVIEW, status=StageStatus.PENDING),
        actor="lead@example.com",
        locks=locks,
        now=T0 + timedelta(hours=4),
    )

    assert accepted.record.changed_at == T0 + timedelta(hours=5)
    history = await AuditTrail(db_session).history_for(application_id)
    assert [record.to_stage for record in history] == [Stage.CV_RECEIVED, Stage.HR_INTERVIEW, Stage.LEAD_INTERVIEW]

    application = await get_application(db_session, application_id)
    assert application.current_stage == Stage.LEAD_INTERVIEW.value
    await _assert_summary_matches_tail(db_session, application_id)


async def test_rejection_carries_missing_fields(db_session, locks):
    application_id = await _open(db_session)

    with pytest.raises(MissingOfferStatus) as excinfo:
        await request_stage_change(
            db_session,
            application_id=application_id,
            proposed=ProposedChange(stage=Stage.CLOSED, status=StageStatus.COMPLETED),
            actor="hr@example.com",
            locks=locks,
        )

    assert excinfo.value.missing_fields == ("offer_status", "final_outcome")
    assert excinfo.value.as_dict()["missing_fields"] == ["offer_status", "final_outcome"]
