"""User model."""

from sqlalchemy import Column, DateTime, Integer, String

from contactsync.core.clock import utcnow
from contactsync.persistence.database import Base


class User(Base):
    """Registered platform user.

    Owned by the external identity provider; only the columns the contact
    store needs for display and search are mirrored here.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    display_name = Column(String(255), nullable=True, index=True)
    avatar_url = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
