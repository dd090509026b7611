from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.auth import current_active_user, optional_current_user
from core.config import settings
from core.lifecycle import AccountLifecycle
from core.verification import VerificationPoller
from db.database import get_async_session, get_session_maker
from db.users import User
from schemas.account import AccountState, ProfileRead
from schemas.users import ProfileUpdate

router = APIRouter()


@router.get("/state", response_model=AccountState)
async def account_state(
    user: Optional[User] = Depends(optional_current_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Lifecycle state of the current session. Creates the profile on first sight."""
    snap = await AccountLifecycle(db).handle_session_change(user)
    return snap.to_schema


@router.post("/onboarding/complete", response_model=AccountState)
async def complete_onboarding(
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    snap = await AccountLifecycle(db).complete_onboarding(user)
    return snap.to_schema


@router.patch("/profile", response_model=ProfileRead)
async def update_profile(
    changes: ProfileUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    profile = await AccountLifecycle(db).update_profile(user, changes.model_dump(exclude_unset=True))
    return profile.to_schema


@router.get("/verification/wait", response_model=AccountState)
async def wait_for_verification(
    timeout: Optional[float] = Query(None, gt=0, le=120),
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
    session_maker: async_sessionmaker = Depends(get_session_maker),
):
    """
    Long-poll until the email address is verified or `timeout` seconds pass.

    Returns the lifecycle state either way; clients call again while it is
    still pending_verification.
    """
    lifecycle = AccountLifecycle(db)
    if not user.is_verified:
        user_id = user.id

        async def check() -> bool:
            # own session: a check cancelled by stop() must not poison `db`
            async with session_maker() as session:
                res = await session.execute(select(User.is_verified).where(User.id == user_id))
                return bool(res.scalar())

        poller = VerificationPoller(check)
        try:
            if await poller.wait(timeout or settings.verification_wait_timeout):
                await db.refresh(user)
        finally:
            await poller.stop()

    snap = await lifecycle.handle_session_change(user)
    return snap.to_schema
