"""Quiz models."""
import uuid
from sqlalchemy import Column, String, DateTime, Text, Integer, Boolean, ForeignKey, JSON
from sqlalchemy.orm import relationship
from app.db.base import Base, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class Quiz(Base):
    """True/false quiz derived from a chat session."""

    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String(255), nullable=False)
    source_chat_id = Column(String(128), ForeignKey("chat_sessions.id", ondelete="SET NULL"), index=True)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    source_chat = relationship("ChatSession", back_populates="quizzes")
    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )


class QuizQuestion(Base):
    """A single true/false statement with its answer key."""

    __tablename__ = "quiz_questions"

    id = Column(String(36), primary_key=True, default=_new_id)
    quiz_id = Column(String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    correct_answer = Column(Boolean, nullable=False)
    explanation = Column(Text, nullable=False, default="")
    # Weak references: not enforced by the database
    source_message_id = Column(Integer)
    guide_refs = Column(JSON)

    # Relationships
    quiz = relationship("Quiz", back_populates="questions")
