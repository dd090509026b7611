"""
Box search.

Free text is matched case-insensitively as a substring of a box's name or
description. Tag contents are not searched, so every result also shows up in
``list_boxes()`` filtered the same way.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, or_

from core.errors import ValidationError
from core.inventory_store import InventoryStore
from db.box import Box

ALL_LOCATIONS = "all"


def _location_filter(location_id) -> Optional[UUID]:
    if location_id is None or location_id == ALL_LOCATIONS or location_id == "":
        return None
    if isinstance(location_id, UUID):
        return location_id
    try:
        return UUID(str(location_id))
    except ValueError:
        raise ValidationError(f"Invalid location id: {location_id}")


async def search_boxes(store: InventoryStore, query: str = "", location_id=ALL_LOCATIONS) -> List[Box]:
    """Owned boxes matching ``query`` within ``location_id``, newest update first.

    An empty query with the ``"all"`` location returns the whole collection.
    """
    stmt = store.box_query()

    loc = _location_filter(location_id)
    if loc is not None:
        stmt = stmt.where(Box.location_id == loc)

    q = (query or "").strip().lower()
    if q:
        stmt = stmt.where(
            or_(
                func.lower(Box.name).contains(q, autoescape=True),
                func.lower(Box.description).contains(q, autoescape=True),
            )
        )

    res = await store.db.execute(stmt)
    return list(res.scalars().all())
