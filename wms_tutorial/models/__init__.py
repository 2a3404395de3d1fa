"""SQLAlchemy ORM models."""

from wms_tutorial.models.base import Base
from wms_tutorial.models.presentation import Presentation
from wms_tutorial.models.process import Process
from wms_tutorial.models.token_blacklist import TokenBlacklist
from wms_tutorial.models.user import User

__all__ = ["Base", "Presentation", "Process", "TokenBlacklist", "User"]
