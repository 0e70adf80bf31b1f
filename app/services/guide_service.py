"""Setup guide service."""
from typing import Any, Dict, List, Optional
import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import NotFoundError, PersistenceError, ValidationError
from app.models import SetupGuide
from app.models.setup_guide import DIFFICULTIES
from app.services.openai_service import OpenAIService

logger = logging.getLogger(__name__)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


class GuideService:
    def __init__(self, db: Session, llm_service: Optional[OpenAIService] = None):
        self.db = db
        self.llm = llm_service

    def list_guides(self) -> List[Dict[str, Any]]:
        guides = self.db.query(SetupGuide).order_by(
            SetupGuide.created_at.desc(), SetupGuide.id.desc()
        ).all()
        return [g.to_dict() for g in guides]

    def get(self, guide_id: int) -> Dict[str, Any]:
        guide = self.db.get(SetupGuide, guide_id)
        if guide is None:
            raise NotFoundError("Guide not found")
        return guide.to_dict()

    def _fallback_guide(self, topic: str, raw_text: str) -> Dict[str, Any]:
        return {
            "title": topic,
            "description": f"Setup guide for {topic}",
            "content": raw_text,
            "prerequisites": [],
            "difficulty": "beginner",
            "estimatedTime": "30 minutes",
        }

    def generate(self, topic: Optional[str]) -> Dict[str, Any]:
        """
        Generate a setup guide for a topic and store it.

        The codebase is searched for the topic first and the result is passed
        along as context. When the reply holds no JSON object, the raw text
        becomes the guide content.
        """
        if not topic:
            raise ValidationError("Topic is required")

        codebase_context = self.llm.search_codebase(topic)
        result = self.llm.generate_setup_guide(topic, codebase_context)

        if isinstance(result, dict):
            fallback = self._fallback_guide(topic, "")
            difficulty = result.get("difficulty")
            guide_data = {
                "title": str(result.get("title") or fallback["title"]),
                "description": str(result.get("description") or fallback["description"]),
                "content": str(result.get("content") or ""),
                "prerequisites": _string_list(result.get("prerequisites")),
                "difficulty": difficulty if difficulty in DIFFICULTIES else "beginner",
                "estimatedTime": str(result.get("estimatedTime") or fallback["estimatedTime"]),
            }
        else:
            logger.warning("Guide for %r was not JSON, storing raw text", topic)
            guide_data = self._fallback_guide(topic, result)

        guide = SetupGuide(
            title=guide_data["title"],
            description=guide_data["description"],
            content=guide_data["content"],
            prerequisites=guide_data["prerequisites"],
            difficulty=guide_data["difficulty"],
            estimated_time=guide_data["estimatedTime"],
        )
        try:
            self.db.add(guide)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to save setup guide for topic %r", topic)
            raise PersistenceError("Failed to save setup guide")
        self.db.refresh(guide)

        logger.info("Created setup guide %s for topic %r", guide.id, topic)
        return {"id": guide.id, **guide_data}
