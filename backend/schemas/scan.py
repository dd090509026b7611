from typing import Optional

from pydantic import BaseModel

from schemas.boxes import BoxRead


class ScanRequest(BaseModel):
    payload: str


class ScanResult(BaseModel):
    state: str
    payload: str
    box_id: Optional[str] = None
    box: Optional[BoxRead] = None
    message: Optional[str] = None
    retryable: bool = False
