from fastapi import APIRouter, Depends, status
from typing import List
from uuid import UUID

from core.dependencies import get_inventory_store
from core.inventory_store import InventoryStore
from schemas.locations import LocationCreate, LocationRead, LocationUpdate

router = APIRouter()


@router.get("/", response_model=List[LocationRead])
async def list_locations(store: InventoryStore = Depends(get_inventory_store)):
    """List the caller's locations, newest first, each with its box count"""
    locations = await store.list_locations()
    counts = await store.location_box_counts()
    return [loc.to_schema(box_count=counts.get(loc.id, 0)) for loc in locations]


@router.post("/", response_model=LocationRead, status_code=status.HTTP_201_CREATED)
async def create_location(
    location: LocationCreate,
    store: InventoryStore = Depends(get_inventory_store),
):
    created = await store.create_location(location.name, location.description)
    return created.to_schema(box_count=0)


@router.get("/{location_id}", response_model=LocationRead)
async def get_location(location_id: UUID, store: InventoryStore = Depends(get_inventory_store)):
    location = await store.get_location(location_id)
    return location.to_schema(box_count=await store.count_boxes_at(location.id))


@router.patch("/{location_id}", response_model=LocationRead)
async def update_location(
    location_id: UUID,
    changes: LocationUpdate,
    store: InventoryStore = Depends(get_inventory_store),
):
    location = await store.update_location(location_id, changes.model_dump(exclude_unset=True))
    return location.to_schema(box_count=await store.count_boxes_at(location.id))


@router.delete("/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_location(location_id: UUID, store: InventoryStore = Depends(get_inventory_store)):
    """Delete a location. Answers 409 while boxes are still assigned to it."""
    await store.delete_location(location_id)
