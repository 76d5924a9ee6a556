from datetime import datetime, timedelta

import pytest

from hiring_pipeline.core.errors import ApplicationNotFound, InvalidRequest
from hiring_pipeline.core.taxonomy import Stage, StageStatus
from hiring_pipeline.services.audit_trail import AuditTrail
from hiring_pipeline.services.recruiter_rating import list_rating_history, set_recruiter_rating
from hiring_pipeline.services.stage_transitions import get_application, open_application

T0 = datetime(2024, 6, 3, 9, 0, 0)


async def _open(session):
    opened = await open_application(session, candidate_id=7, job_id=3, actor="hr@example.com", now=T0)
    return opened.application.application_id


async def test_rating_is_set_replaced_and_cleared(db_session, locks):
    application_id = await _open(db_session)

    rated = await set_recruiter_rating(
        db_session, application_id=application_id, rating=4, actor="hr@example.com", locks=locks, now=T0
    )
    assert rated.recruiter_rating == 4

    await set_recruiter_rating(
        db_session,
        application_id=application_id,
        rating=2,
        actor="lead@example.com",
        locks=locks,
        now=T0 + timedelta(hours=1),
    )
    cleared = await set_recruiter_rating(
        db_session,
        application_id=application_id,
        rating=None,
        actor="hr@example.com",
        locks=locks,
        now=T0 + timedelta(hours=2),
    )
    assert cleared.recruiter_rating is None

    history = await list_rating_history(db_session, application_id)
    assert [(item.previous_rating, item.rating) for item in history] == [(2, None), (4, 2), (None, 4)]
    assert history[1].changed_by == "lead@example.com"
    assert len(locks) == 0


async def test_rating_leaves_stage_trail_untouched(db_session, locks):
    application_id = await _open(db_session)

    await set_recruiter_rating(db_session, application_id=application_id, rating=5, actor="a", locks=locks)

    history = await AuditTrail(db_session).history_for(application_id)
    assert len(history) == 1
    application = await get_application(db_session, application_id)
    assert application.current_stage == Stage.CV_RECEIVED.value
    assert application.current_stage_status == StageStatus.PENDING.value
    assert application.recruiter_rating == 5


@pytest.mark.parametrize("rating", [0, 6, -1])
async def test_rating_out_of_range_is_rejected(db_session, locks, rating):
    application_id = await _open(db_session)

    with pytest.raises(InvalidRequest):
        await set_recruiter_rating(db_session, application_id=application_id, rating=rating, actor="a", locks=locks)

    assert await list_rating_history(db_session, application_id) == []


async def test_rating_unknown_application(db_session, locks):
    with pytest.raises(ApplicationNotFound):
        await set_recruiter_rating(db_session, application_id=999, rating=3, actor="a", locks=locks)
