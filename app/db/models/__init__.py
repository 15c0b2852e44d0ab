"""Model module imports for SQLAlchemy relationship registration."""

from app.db.models.post import Post
from app.db.models.user import Base
from app.db.models.user import User

__all__ = [
    "Base",
    "Post",
    "User",
]
