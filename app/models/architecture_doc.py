"""Architecture explanation model."""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from app.db.base import Base, utcnow


class ArchitectureDoc(Base):
    """Cached explanation of one codebase component."""

    __tablename__ = "architecture_docs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    component_name = Column(String(200), unique=True, nullable=False)
    description = Column(Text)
    dependencies = Column(JSON, nullable=False, default=list)
    tech_stack = Column(JSON, nullable=False, default=list)
    file_paths = Column(JSON, nullable=False, default=list)
    code_examples = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "componentName": self.component_name,
            "description": self.description,
            "dependencies": list(self.dependencies or []),
            "techStack": list(self.tech_stack or []),
            "filePaths": list(self.file_paths or []),
            "codeExamples": list(self.code_examples or []),
        }
