from fastapi import APIRouter, Depends, Query
from typing import List

from core.dependencies import get_inventory_store
from core.inventory_store import InventoryStore
from core.search import ALL_LOCATIONS, search_boxes
from schemas.boxes import BoxRead

router = APIRouter()


@router.get("/boxes", response_model=List[BoxRead])
async def search(
    q: str = "",
    location_id: str = Query(ALL_LOCATIONS),
    store: InventoryStore = Depends(get_inventory_store),
):
    """
    Search boxes by name or description (case-insensitive substring).

    - location_id restricts results to one location; "all" disables the filter.
    - Tags are not searched.
    """
    boxes = await search_boxes(store, q, location_id)
    return [box.to_schema for box in boxes]
