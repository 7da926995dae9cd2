"""Contact model: a private, directed owner → phone hash relationship."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from contactsync.core.clock import utcnow
from contactsync.persistence.database import Base


class Contact(Base):
    """Contact of ``owner_id``, linked to a registered user once matched."""

    __tablename__ = "contacts"
    __table_args__ = (
        UniqueConstraint("owner_id", "phone_hash", name="uq_contacts_owner_phone_hash"),
        CheckConstraint(
            "linked_user_id IS NULL OR linked_user_id <> owner_id",
            name="chk_contacts_no_self_link",
        ),
        Index("idx_contacts_owner_last_interaction", "owner_id", "last_interaction_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    phone_hash = Column(String(64), nullable=False, index=True)
    linked_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    is_favorite = Column(Boolean, default=False, nullable=False)
    last_interaction_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    owner = relationship("User", foreign_keys=[owner_id])
    linked_user = relationship("User", foreign_keys=[linked_user_id])

    def __repr__(self) -> str:
        return (
            f"<Contact(id={self.id}, owner_id={self.owner_id}, "
            f"linked_user_id={self.linked_user_id}, favorite={self.is_favorite})>"
        )
