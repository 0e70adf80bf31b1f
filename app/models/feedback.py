"""Feedback model."""
from sqlalchemy import Column, Integer, DateTime, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import Base, utcnow


class Feedback(Base):
    """Helpful / not helpful vote on a conversation turn."""

    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    helpful = Column(Boolean, nullable=False)
    comment = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    conversation = relationship("ConversationTurn", back_populates="feedback")
