"""ORM model for tutorial processes with their embedded steps, benefits and before/after items."""

from sqlalchemy import Column, DateTime, Integer, String, Text

from wms_tutorial.models.base import Base, JSONDocument


class Process(Base):
    """
    One warehouse process.

    pk is the database-assigned identifier; id is the stable external key that
    steps and other sheets reference and is preserved exactly across imports.
    user_id NULL means the process is global (visible to everyone).
    """

    __tablename__ = "processes"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(255), nullable=False, unique=True, index=True)
    title = Column(String(1024), nullable=False, default="")
    name = Column(String(1024), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    category = Column(String(255), nullable=False, default="general")
    user_id = Column(String(255), nullable=True, index=True)
    steps = Column(JSONDocument, nullable=False, default=list)
    benefits = Column(JSONDocument, nullable=False, default=list)
    before_after = Column(JSONDocument, nullable=False, default=list)
    # Any further columns from imports/saves, kept verbatim.
    extra = Column(JSONDocument, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    updated_by = Column(String(255), nullable=True)

    def sync_title_and_name(self) -> None:
        """If only one of title/name is set, copy it to the other."""
        if self.title and not self.name:
            self.name = self.title
        elif self.name and not self.title:
            self.title = self.name
