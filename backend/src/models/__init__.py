"""SQLAlchemy models."""
from models.activity import Event, Login
from models.base import Base, TimestampMixin
from models.progress import Progress
from models.user import User

__all__ = ["Base", "Event", "Login", "Progress", "TimestampMixin", "User"]
