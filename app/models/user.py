from sqlalchemy import Column, String, Boolean
from .base import BaseModel

"""
User model
Owner of practice sessions, mistakes, concept stats and answer history.
Identity resolution happens upstream; this row only anchors ownership.
"""
class User(BaseModel):
    __tablename__ = "users"

    display_name = Column(String(100))
    email = Column(String(200), unique=True, index=True)
    is_active = Column(Boolean, default=True)

    def to_dict(self):
        return {
            "id": self.id,
            "display_name": self.display_name,
            "email": self.email,
            "is_active": self.is_active,
            "created_at": self._iso(self.created_at),
            "updated_at": self._iso(self.updated_at)
        }
