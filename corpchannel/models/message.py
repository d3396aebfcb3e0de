"""
Channel database models.
"""
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text

from corpchannel.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRecord(Base):
    """Row for a single channel message."""
    
    __tablename__ = "messages"
    
    id = Column(String(36), primary_key=True, nullable=False)
    content = Column(Text, nullable=False, default="")
    
    # text, image, video or file
    message_type = Column(String(16), nullable=False, default="text")
    
    media_url = Column(Text, nullable=True)
    media_filename = Column(Text, nullable=True)
    
    view_count = Column(Integer, nullable=False, default=0)
    is_pinned = Column(Integer, nullable=False, default=0)
    reaction_count = Column(Integer, nullable=False, default=0)
    
    # emoji -> list of user identities
    reactions = Column(JSON, nullable=False, default=dict)
    
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    
    __table_args__ = (
        Index("ix_messages_created_at_id", "created_at", "id"),
    )
    
    def __repr__(self) -> str:
        return f"<MessageRecord(id={self.id}, message_type={self.message_type})>"


class UserRecord(Base):
    """Row for a user record. Not used by the channel feed itself."""
    
    __tablename__ = "users"
    
    id = Column(String(36), primary_key=True, nullable=False)
    username = Column(String(255), nullable=True, index=True)
    data = Column(JSON, nullable=False, default=dict)
    
    def to_dict(self) -> dict:
        """Flatten the stored record back into the shape it was created with."""
        return {**(self.data or {}), "id": self.id}
