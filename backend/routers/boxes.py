from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from typing import List
from uuid import UUID

from core import qr_codec
from core.dependencies import get_inventory_store
from core.inventory_store import InventoryStore
from schemas.boxes import (
    BoxCreate,
    BoxRead,
    BoxUpdate,
    BoxWriteResult,
    InventorySummary,
    QRCodeRead,
)

router = APIRouter()


@router.get("/", response_model=List[BoxRead])
async def list_boxes(store: InventoryStore = Depends(get_inventory_store)):
    """List the caller's boxes with location name and tags, most recently updated first"""
    boxes = await store.list_boxes()
    return [box.to_schema for box in boxes]


@router.post("/", response_model=BoxWriteResult, status_code=status.HTTP_201_CREATED)
async def create_box(box: BoxCreate, store: InventoryStore = Depends(get_inventory_store)):
    """Create a box.

    `qr_code` is normally built by the client as `BinQR:<id>` from the same `id`
    it sends; when both are omitted the server assigns them.
    """
    created, warnings = await store.create_box(
        name=box.name,
        qr_code=box.qr_code,
        description=box.description,
        location_id=box.location_id,
        tags=box.tags,
        primary_image_url=box.primary_image_url,
        box_id=box.id,
    )
    return {**created.to_schema, "warnings": warnings}


@router.get("/summary", response_model=InventorySummary)
async def inventory_summary(store: InventoryStore = Depends(get_inventory_store)):
    summary = await store.summary()
    return {**summary, "recent_boxes": [b.to_schema for b in summary["recent_boxes"]]}


@router.get("/by-qr", response_model=BoxRead)
async def find_box_by_qr_code(
    code: str = Query(..., min_length=1),
    store: InventoryStore = Depends(get_inventory_store),
):
    box = await store.find_box_by_qr_code(code)
    if box is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No box with QR code {code}"
        )
    return box.to_schema


@router.get("/{box_id}", response_model=BoxRead)
async def get_box(box_id: UUID, store: InventoryStore = Depends(get_inventory_store)):
    box = await store.get_box(box_id)
    return box.to_schema


@router.patch("/{box_id}", response_model=BoxRead)
async def update_box(
    box_id: UUID,
    changes: BoxUpdate,
    store: InventoryStore = Depends(get_inventory_store),
):
    """Partially update a box. A `tags` list replaces all existing tags."""
    box = await store.update_box(box_id, changes.model_dump(exclude_unset=True))
    return box.to_schema


@router.delete("/{box_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_box(box_id: UUID, store: InventoryStore = Depends(get_inventory_store)):
    await store.delete_box(box_id)


@router.post("/{box_id}/qr-code/reissue", response_model=QRCodeRead)
async def reissue_qr_code(box_id: UUID, store: InventoryStore = Depends(get_inventory_store)):
    """Issue a new QR payload; the previously printed code stops resolving"""
    new_code = await store.reissue_qr_code(box_id)
    return {"box_id": box_id, "qr_code": new_code}


@router.get("/{box_id}/qr.svg", response_class=Response)
async def box_qr_svg(box_id: UUID, store: InventoryStore = Depends(get_inventory_store)):
    box = await store.get_box(box_id)
    return Response(content=qr_codec.render_svg(box.qr_code), media_type="image/svg+xml")
