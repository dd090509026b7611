"""
Account lifecycle.

The screen-state a session may reach is derived, never stored, from three
flags: authenticated, email confirmed (``User.is_verified``) and onboarding
completed (``Profile.has_completed_onboarding``). Rules apply in fixed order:

1. not authenticated               -> UNAUTHENTICATED
2. email not confirmed             -> PENDING_VERIFICATION
3. onboarding not completed        -> ONBOARDING
4. otherwise                       -> ACTIVE
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import Conflict, Unauthenticated, ValidationError
from db.profile import Profile
from db.users import User

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {"full_name", "avatar_url"}


class LifecycleState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    PENDING_VERIFICATION = "pending_verification"
    ONBOARDING = "onboarding"
    ACTIVE = "active"


@dataclass(frozen=True)
class LifecycleFlags:
    authenticated: bool = False
    email_confirmed: bool = False
    has_completed_onboarding: bool = False

    @classmethod
    def for_user(cls, user: Optional[User], profile: Optional[Profile] = None) -> "LifecycleFlags":
        if user is None:
            return cls()
        return cls(
            authenticated=True,
            email_confirmed=bool(user.is_verified),
            has_completed_onboarding=bool(profile is not None and profile.has_completed_onboarding),
        )


def derive_lifecycle_state(flags: LifecycleFlags) -> LifecycleState:
    if not flags.authenticated:
        return LifecycleState.UNAUTHENTICATED
    if not flags.email_confirmed:
        return LifecycleState.PENDING_VERIFICATION
    if not flags.has_completed_onboarding:
        return LifecycleState.ONBOARDING
    return LifecycleState.ACTIVE


@dataclass
class LifecycleSnapshot:
    state: LifecycleState
    flags: LifecycleFlags
    profile: Optional[Profile] = None

    @property
    def to_schema(self):
        return {
            "state": self.state.value,
            "authenticated": self.flags.authenticated,
            "email_confirmed": self.flags.email_confirmed,
            "has_completed_onboarding": self.flags.has_completed_onboarding,
            "profile": self.profile.to_schema if self.profile is not None else None,
        }


class AccountLifecycle:
    """Profile bookkeeping and state transitions for auth events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user_id) -> Optional[Profile]:
        res = await self.db.execute(select(Profile).where(Profile.id == user_id))
        return res.scalar_one_or_none()

    async def ensure_profile(self, user: User) -> Profile:
        """Return the user's profile, creating it on first sight."""
        profile = await self.get_profile(user.id)
        if profile is not None:
            return profile

        now = datetime.utcnow()
        profile = Profile(
            id=user.id,
            email=user.email,
            full_name=getattr(user, "full_name", None),
            has_completed_onboarding=False,
            created_at=now,
            updated_at=now,
        )
        self.db.add(profile)
        try:
            await self.db.commit()
        except IntegrityError:
            # created concurrently by another request
            await self.db.rollback()
            profile = await self.get_profile(user.id)
            if profile is None:
                raise
            return profile
        logger.info("Created profile for user %s", user.id)
        return profile

    async def snapshot(self, user: Optional[User], profile: Optional[Profile] = None) -> LifecycleSnapshot:
        if user is not None and profile is None:
            profile = await self.get_profile(user.id)
        flags = LifecycleFlags.for_user(user, profile)
        return LifecycleSnapshot(state=derive_lifecycle_state(flags), flags=flags, profile=profile)

    async def handle_session_change(self, user: Optional[User]) -> LifecycleSnapshot:
        """React to a new session (or to sign-out when ``user`` is None)."""
        if user is None:
            return await self.snapshot(None)
        profile = await self.ensure_profile(user)
        snap = await self.snapshot(user, profile)
        logger.debug("Session change for user %s -> %s", user.id, snap.state.value)
        return snap

    async def complete_onboarding(self, user: Optional[User]) -> LifecycleSnapshot:
        if user is None:
            raise Unauthenticated("Not authenticated")
        if not user.is_verified:
            raise Conflict("Email must be verified before onboarding can be completed")

        profile = await self.ensure_profile(user)
        if not profile.has_completed_onboarding:
            profile.has_completed_onboarding = True
            profile.updated_at = datetime.utcnow()
            try:
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                raise
            logger.info("User %s completed onboarding", user.id)
        return await self.snapshot(user, profile)

    async def update_profile(self, user: Optional[User], changes: Dict[str, Any]) -> Profile:
        if user is None:
            raise Unauthenticated("Not authenticated")
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update profile fields: {', '.join(sorted(unknown))}")

        profile = await self.ensure_profile(user)
        for key, value in changes.items():
            if isinstance(value, str):
                value = value.strip() or None
            setattr(profile, key, value)
        profile.updated_at = datetime.utcnow()
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return profile
