"""Question/answer pair model."""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from app.db.base import Base, utcnow


class QAPair(Base):
    """Cached question and its generated answer."""

    __tablename__ = "qa_pairs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    category = Column(String(100), nullable=False, default="general")
    tags = Column(JSON, nullable=False, default=list)
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "category": self.category,
            "tags": list(self.tags or []),
            "usage_count": self.usage_count,
        }
