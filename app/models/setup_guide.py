"""Setup guide model."""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from app.db.base import Base, utcnow

DIFFICULTIES = ("beginner", "intermediate", "advanced")


class SetupGuide(Base):
    """Generated step-by-step setup guide."""

    __tablename__ = "setup_guides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    content = Column(Text, nullable=False)
    prerequisites = Column(JSON, nullable=False, default=list)
    difficulty = Column(String(20), nullable=False, default="beginner")
    estimated_time = Column(String(50))
    created_at = Column(DateTime, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "prerequisites": list(self.prerequisites or []),
            "difficulty": self.difficulty,
            "estimatedTime": self.estimated_time,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
