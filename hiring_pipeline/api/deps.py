from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from hiring_pipeline.db.session import get_session
from hiring_pipeline.schemas.user import ActorContext
from hiring_pipeline.services.locks import ApplicationLockRegistry
from hiring_pipeline.services.notifications import Notifier


async def get_db_session() -> AsyncSession:
    async for session in get_session():
        yield session


async def get_actor(request: Request) -> ActorContext:
    # Identity is resolved upstream; the headers are carried as an opaque actor reference.
    email = (request.headers.get("x-user-email") or "").strip().lower() or None
    actor_id = (request.headers.get("x-user-id") or "").strip() or email or "system"
    return ActorContext(actor_id=actor_id, email=email)


def get_lock_registry(request: Request) -> ApplicationLockRegistry:
    return request.app.state.lock_registry


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier
