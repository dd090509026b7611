import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .database import Base


class Box(Base):
    """A tracked storage container; qr_code is the printed identity."""
    __tablename__ = "boxes"
    __table_args__ = (
        UniqueConstraint("user_id", "qr_code", name="ux_boxes_user_qr_code"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    location_id = Column(UUID(as_uuid=True), ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True, index=True)
    qr_code = Column(String, nullable=False, index=True)
    primary_image_url = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False, index=True)

    user = relationship("User", back_populates="boxes")
    location = relationship("Location", back_populates="boxes")
    tag_rows = relationship(
        "BoxTag",
        back_populates="box",
        cascade="all, delete-orphan",
        order_by="BoxTag.position",
    )

    @property
    def tags(self):
        return [t.content for t in self.tag_rows]

    @property
    def to_schema(self):
        """Convert Box model to schema dictionary format"""
        location_data = None
        if self.location_id is not None and self.location is not None:
            location_data = {
                "id": self.location.id,
                "name": self.location.name,
            }

        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "location_id": self.location_id,
            "location": location_data,
            "qr_code": self.qr_code,
            "primary_image_url": self.primary_image_url,
            "tags": self.tags,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class BoxTag(Base):
    """One tag string on a box. Rows are replaced wholesale with the box's tag list."""
    __tablename__ = "box_tags"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    box_id = Column(UUID(as_uuid=True), ForeignKey("boxes.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(String, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    box = relationship("Box", back_populates="tag_rows")
