from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_account_user
from core.inventory_store import InventoryStore
from db.database import get_async_session
from db.users import User


async def get_inventory_store(
    user: User = Depends(current_account_user),
    db: AsyncSession = Depends(get_async_session),
) -> InventoryStore:
    return InventoryStore(db, user)
