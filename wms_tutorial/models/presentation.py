"""ORM model for presentations; direct/viewer URLs are derived on read."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, func

from wms_tutorial.models.base import Base, JSONDocument


class Presentation(Base):
    """Presentation link owned by a user (user_id NULL = global)."""

    __tablename__ = "presentations"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(255), nullable=False, unique=True, index=True)
    user_id = Column(String(255), nullable=True, index=True)
    title = Column(String(1024), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    url = Column(String(4096), nullable=False, default="")
    is_local = Column(Boolean, nullable=False, default=False)
    file_type = Column(String(16), nullable=False, default="pptx")
    source_type = Column(String(16), nullable=False, default="other")
    type = Column(String(255), nullable=False, default="general")
    tags = Column(JSONDocument, nullable=False, default=list)
    thumbnail_url = Column(String(4096), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String(255), nullable=True)
