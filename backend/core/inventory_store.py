"""
Inventory store: locations, boxes and box tags for one owner.

Every operation is scoped to the user the store was built with; a store built
without a user rejects every call with ``Unauthenticated``.

Tag lists are replaced wholesale on update (all rows deleted, the new list
inserted). Tag order is kept and duplicates are stored as given.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core import qr_codec
from core.errors import Conflict, LookupFailed, NotFound, NotRecognized, Unauthenticated, ValidationError
from db.box import Box, BoxTag
from db.location import Location
from db.users import User

logger = logging.getLogger(__name__)

RECENT_BOXES_LIMIT = 5

LOCATION_FIELDS = {"name", "description"}
BOX_FIELDS = {"name", "description", "location_id", "primary_image_url", "tags"}


def _clean_name(value: Optional[str]) -> str:
    name = (value or "").strip()
    if not name:
        raise ValidationError("name is required")
    return name


def _clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _as_uuid(value, what: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(f"{what} {value} not found")


class InventoryStore:
    def __init__(self, db: AsyncSession, user: Optional[User]):
        self.db = db
        self.user = user
        # read once; a rollback expires the user instance
        self._owner_id = user.id if user is not None else None

    @property
    def owner_id(self) -> UUID:
        if self._owner_id is None:
            raise Unauthenticated("Not authenticated")
        return self._owner_id

    # ----- Locations -----

    async def list_locations(self) -> List[Location]:
        res = await self.db.execute(
            select(Location)
            .where(Location.user_id == self.owner_id)
            .order_by(Location.created_at.desc(), Location.id)
        )
        return list(res.scalars().all())

    async def location_box_counts(self) -> Dict[UUID, int]:
        res = await self.db.execute(
            select(Box.location_id, func.count(Box.id))
            .where(Box.user_id == self.owner_id, Box.location_id.is_not(None))
            .group_by(Box.location_id)
        )
        return {location_id: int(n) for location_id, n in res.all()}

    async def get_location(self, location_id) -> Location:
        owner_id = self.owner_id
        location_id = _as_uuid(location_id, "Location")
        res = await self.db.execute(
            select(Location).where(Location.id == location_id, Location.user_id == owner_id)
        )
        location = res.scalar_one_or_none()
        if location is None:
            raise NotFound(f"Location {location_id} not found")
        return location

    async def create_location(self, name: str, description: Optional[str] = None) -> Location:
        owner_id = self.owner_id
        location = Location(
            user_id=owner_id,
            name=_clean_name(name),
            description=_clean_description(description),
        )
        self.db.add(location)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.info("Created location %s for user %s", location.id, owner_id)
        return location

    async def update_location(self, location_id, changes: Dict[str, Any]) -> Location:
        location = await self.get_location(location_id)
        unknown = set(changes) - LOCATION_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update location fields: {', '.join(sorted(unknown))}")

        if "name" in changes:
            location.name = _clean_name(changes["name"])
        if "description" in changes:
            location.description = _clean_description(changes["description"])
        location.updated_at = datetime.utcnow()
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return location

    async def count_boxes_at(self, location_id) -> int:
        owner_id = self.owner_id
        location_id = _as_uuid(location_id, "Location")
        res = await self.db.execute(
            select(func.count(Box.id)).where(Box.user_id == owner_id, Box.location_id == location_id)
        )
        return int(res.scalar() or 0)

    async def delete_location(self, location_id) -> None:
        """Delete a location that no box references.

        Raises Conflict, leaving the location intact, while boxes are still
        assigned to it. Callers reassign those boxes first.
        """
        location = await self.get_location(location_id)
        count = await self.count_boxes_at(location.id)
        if count > 0:
            raise Conflict(
                f"Location '{location.name}' still holds {count} box{'es' if count != 1 else ''}"
            )
        try:
            await self.db.delete(location)
            await self.db.commit()
        except IntegrityError:
            # a box was assigned between the count and the delete
            await self.db.rollback()
            raise Conflict(f"Location '{location.name}' is referenced by boxes")
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.info("Deleted location %s for user %s", location.id, self.owner_id)

    # ----- Boxes -----

    def box_query(self):
        """Owned boxes with location and tags eagerly loaded, newest update first."""
        return (
            select(Box)
            .options(selectinload(Box.tag_rows), selectinload(Box.location))
            .where(Box.user_id == self.owner_id)
            .order_by(Box.updated_at.desc(), Box.created_at.desc(), Box.id)
            .execution_options(populate_existing=True)
        )

    async def _load_box(self, box_id: UUID) -> Optional[Box]:
        res = await self.db.execute(
            self.box_query().where(Box.id == box_id)
        )
        return res.scalar_one_or_none()

    async def list_boxes(self) -> List[Box]:
        res = await self.db.execute(self.box_query())
        return list(res.scalars().all())

    async def get_box(self, box_id) -> Box:
        if self._owner_id is None:
            raise Unauthenticated("Not authenticated")
        box_id = _as_uuid(box_id, "Box")
        box = await self._load_box(box_id)
        if box is None:
            raise NotFound(f"Box {box_id} not found")
        return box

    async def _check_location(self, location_id) -> Optional[UUID]:
        if location_id is None:
            return None
        location = await self.get_location(location_id)
        return location.id

    def _resolve_identity(self, qr_code: Optional[str], box_id) -> Tuple[UUID, str]:
        if box_id is not None and not isinstance(box_id, UUID):
            try:
                box_id = UUID(str(box_id))
            except ValueError:
                raise ValidationError(f"Invalid box id: {box_id}")
        if qr_code is None:
            box_id = box_id or uuid.uuid4()
            return box_id, qr_codec.encode(box_id)

        try:
            encoded_id = qr_codec.decode(qr_code)
        except NotRecognized as e:
            raise ValidationError(str(e))
        if box_id is None:
            try:
                box_id = UUID(encoded_id)
            except ValueError:
                box_id = uuid.uuid4()
        return box_id, qr_code

    def _insert_tags(self, box_id: UUID, tags: Iterable[str]) -> None:
        for position, content in enumerate(tags):
            self.db.add(BoxTag(box_id=box_id, content=content, position=position))

    async def create_box(
        self,
        name: str,
        qr_code: Optional[str] = None,
        description: Optional[str] = None,
        location_id=None,
        tags: Iterable[str] = (),
        primary_image_url: Optional[str] = None,
        box_id=None,
    ) -> Tuple[Box, List[str]]:
        """Create a box and its tags.

        Returns ``(box, warnings)``. The box row is committed before its tags;
        if the tag insert fails the box stays committed with no tags and a
        warning is returned instead of an error.
        """
        owner_id = self.owner_id
        name = _clean_name(name)
        tags = list(tags or [])
        location_id = await self._check_location(location_id)
        box_id, qr_code = self._resolve_identity(qr_code, box_id)

        now = datetime.utcnow()
        box = Box(
            id=box_id,
            user_id=owner_id,
            name=name,
            description=_clean_description(description),
            location_id=location_id,
            qr_code=qr_code,
            primary_image_url=primary_image_url,
            created_at=now,
            updated_at=now,
        )
        self.db.add(box)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict(f"QR code {qr_code} or box id {box_id} is already in use")
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.info("Created box %s (%s) for user %s", box.id, qr_code, owner_id)

        warnings: List[str] = []
        if tags:
            try:
                self._insert_tags(box_id, tags)
                await self.db.commit()
            except SQLAlchemyError as e:
                # the rollback expires `box`, so only box_id is used from here on
                await self.db.rollback()
                logger.warning("Box %s created but saving its tags failed: %s", box_id, e)
                warnings.append("Box saved, but its tags could not be saved")

        return await self._load_box(box_id), warnings

    async def update_box(self, box_id, changes: Dict[str, Any]) -> Box:
        """Apply a partial update. A ``tags`` entry replaces the whole tag list."""
        box = await self.get_box(box_id)
        unknown = set(changes) - BOX_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update box fields: {', '.join(sorted(unknown))}")

        if "name" in changes:
            box.name = _clean_name(changes["name"])
        if "description" in changes:
            box.description = _clean_description(changes["description"])
        if "location_id" in changes:
            box.location_id = await self._check_location(changes["location_id"])
        if "primary_image_url" in changes:
            box.primary_image_url = changes["primary_image_url"] or None
        box.updated_at = datetime.utcnow()

        try:
            if "tags" in changes:
                # full replacement; the orphaned rows are deleted by the cascade
                box.tag_rows = [
                    BoxTag(content=content, position=position)
                    for position, content in enumerate(changes["tags"] or [])
                ]
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        return await self._load_box(box.id)

    async def delete_box(self, box_id) -> None:
        box = await self.get_box(box_id)
        try:
            await self.db.delete(box)
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.info("Deleted box %s for user %s", box.id, self.owner_id)

    async def find_box_by_qr_code(self, code: str) -> Optional[Box]:
        """Exact-match lookup; None when nothing owned by the caller carries ``code``."""
        stmt = self.box_query().where(Box.qr_code == code)
        try:
            res = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("QR lookup failed for %r: %s", code, e)
            raise LookupFailed("Could not look up the QR code, please try again") from e
        return res.scalars().first()

    async def reissue_qr_code(self, box_id) -> str:
        """Give the box a fresh payload; the previous printed code stops resolving."""
        box = await self.get_box(box_id)
        new_code = qr_codec.encode(box.id, qr_codec.new_nonce(box.qr_code))
        old_code = box.qr_code
        box.qr_code = new_code
        box.updated_at = datetime.utcnow()
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict(f"QR code {new_code} is already in use")
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        logger.info("Reissued QR code for box %s: %s -> %s", box.id, old_code, new_code)
        return new_code

    async def summary(self) -> Dict[str, Any]:
        owner_id = self.owner_id
        box_count = (await self.db.execute(
            select(func.count(Box.id)).where(Box.user_id == owner_id)
        )).scalar() or 0
        location_count = (await self.db.execute(
            select(func.count(Location.id)).where(Location.user_id == owner_id)
        )).scalar() or 0
        res = await self.db.execute(self.box_query().limit(RECENT_BOXES_LIMIT))
        return {
            "box_count": int(box_count),
            "location_count": int(location_count),
            "recent_boxes": list(res.scalars().all()),
        }
