"""Phone identity model: hashed phone number → owning user."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from contactsync.core.clock import utcnow
from contactsync.persistence.database import Base


class PhoneIdentity(Base):
    """Discoverability registration for one phone number.

    Never stores the plaintext number. At most one owner per hash.
    """

    __tablename__ = "phone_identities"

    id = Column(Integer, primary_key=True, index=True)
    phone_hash = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User")

    def __repr__(self) -> str:
        return f"<PhoneIdentity(id={self.id}, user_id={self.user_id}, hash={self.phone_hash[:8]}...)>"
