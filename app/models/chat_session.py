"""Chat session and conversation turn models."""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import Base, utcnow


class ChatSession(Base):
    """Chat session keyed by a client-generated id."""

    __tablename__ = "chat_sessions"

    id = Column(String(128), primary_key=True)
    title = Column(String(255))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    turns = relationship("ConversationTurn", back_populates="session", order_by="ConversationTurn.id")
    quizzes = relationship("Quiz", back_populates="source_chat")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ConversationTurn(Base):
    """One question and the answer given to it. Rows are never updated."""

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(128), ForeignKey("chat_sessions.id"), nullable=False, index=True)
    user_question = Column(Text, nullable=False)
    agent_response = Column(Text, nullable=False)
    context_used = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    session = relationship("ChatSession", back_populates="turns")
    feedback = relationship("Feedback", back_populates="conversation")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_question": self.user_question,
            "agent_response": self.agent_response,
            "context_used": list(self.context_used or []),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
