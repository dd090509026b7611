from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ProfileRead(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    has_completed_onboarding: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AccountState(BaseModel):
    state: str
    authenticated: bool
    email_confirmed: bool
    has_completed_onboarding: bool
    profile: Optional[ProfileRead] = None
