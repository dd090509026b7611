from fastapi import APIRouter, Depends

from core.dependencies import get_inventory_store
from core.inventory_store import InventoryStore
from core.scan import resolve_scan
from schemas.scan import ScanRequest, ScanResult

router = APIRouter()


@router.post("/", response_model=ScanResult)
async def scan(request: ScanRequest, store: InventoryStore = Depends(get_inventory_store)):
    """Resolve a decoded camera payload to a box.

    Always answers 200; `state` is one of found, not_recognized, not_found or
    lookup_error. Payloads without the BinQR prefix never reach the database.
    """
    outcome = await resolve_scan(store, request.payload)
    return {
        "state": outcome.state.value,
        "payload": outcome.payload,
        "box_id": outcome.box_id,
        "box": outcome.box.to_schema if outcome.box is not None else None,
        "message": outcome.message,
        "retryable": outcome.retryable,
    }
