import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from stripe_assistant.core.encryption import EncryptedString
from stripe_assistant.db.base_class import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class Organization(Base):
    __tablename__ = "organizations"  # type: ignore[assignment]

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    # Stripe test-mode secret key, encrypted at rest
    stripe_secret_key = Column(EncryptedString(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    users = relationship("User", back_populates="organization")
