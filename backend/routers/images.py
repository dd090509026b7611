import base64
import binascii
import logging
import uuid as uuid_mod
import os
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, UploadFile, File, HTTPException, status, Form
from fastapi.responses import JSONResponse, Response
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_account_user
from core.config import settings
from db.database import get_async_session
from db.image import Image
from db.users import User

logger = logging.getLogger(__name__)

router = APIRouter()

EXT_TO_CONTENT_TYPE = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "heic": "image/heic",
    "heif": "image/heif",
}


def _check_size(file_data: bytes):
    if len(file_data) < 100:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image file appears to be corrupted or too small",
        )
    if len(file_data) > settings.max_image_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Image size must be less than {settings.max_image_bytes // (1024 * 1024)}MB",
        )


async def _store_image(db: AsyncSession, user: User, file_data: bytes, content_type: str, filename: str):
    image_id = uuid_mod.uuid4()
    db.add(Image(id=image_id, user_id=user.id, data=file_data, content_type=content_type))
    try:
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.exception("Storing image for user %s failed", user.id)
        raise
    return JSONResponse(content={
        "url": f"/images/serve/{image_id}",
        "id": str(image_id),
        "name": filename,
    })


@router.post("/upload")
async def upload_image(
    file: Optional[UploadFile] = File(None),
    base64_image: Optional[str] = Form(None),
    user: User = Depends(current_account_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Upload a box photo and store it in the database.
    Accepts either a file upload or base64 encoded image.
    Returns the URL path to serve the image (/images/serve/{id}), suitable as
    a box's primary_image_url.
    """
    if file:
        file_data = await file.read()
        filename = file.filename or f"box_{uuid_mod.uuid4().hex[:8]}.jpg"

        content_type = (file.content_type or "").strip().lower()
        ext = os.path.splitext(filename)[1].lower().lstrip(".")
        if content_type and content_type != "application/octet-stream" and not content_type.startswith("image/"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
        if (not content_type or content_type == "application/octet-stream") and ext and ext not in EXT_TO_CONTENT_TYPE:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an image")
        _check_size(file_data)

        if not content_type or content_type == "application/octet-stream":
            content_type = EXT_TO_CONTENT_TYPE.get(ext, "image/jpeg")
        return await _store_image(db, user, file_data, content_type, filename)

    if base64_image:
        content_type = "image/jpeg"
        if "," in base64_image:
            prefix, b64_payload = base64_image.split(",", 1)
            base64_image = b64_payload
            if prefix.startswith("data:") and ";" in prefix:
                content_type = prefix.split(";")[0].replace("data:", "").strip() or content_type
        try:
            file_data = base64.b64decode(base64_image, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 image")
        _check_size(file_data)
        filename = f"box_{uuid_mod.uuid4().hex[:8]}.jpg"
        return await _store_image(db, user, file_data, content_type, filename)

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Either 'file' or 'base64_image' must be provided",
    )


@router.get("/serve/{image_id}", response_class=Response)
async def serve_image(
    image_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Serve image binary by id. No auth required so img src works."""
    result = await db.execute(select(Image).where(Image.id == image_id))
    row = result.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(content=bytes(row.data), media_type=row.content_type)
