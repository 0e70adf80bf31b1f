"""QA cache resolver.

Decides whether a question can be answered from a cached Q/A pair or has
to go to the generation service, and records the resulting turn.
"""
from typing import Any, Dict, List, Optional
import logging
from sqlalchemy.orm import Session
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import PersistenceError, ValidationError
from app.models import QAPair
from app.services.openai_service import OpenAIService
from app.services.session_ledger import SessionLedger

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5
CONTEXT_LIMIT = 3
RELATED_LIMIT = 3


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class QACacheResolver:
    def __init__(self, db: Session, llm_service: OpenAIService):
        self.db = db
        self.llm = llm_service
        self.ledger = SessionLedger(db)

    def search(self, query: str, limit: int = SEARCH_LIMIT) -> List[QAPair]:
        """Pairs whose question or answer contains ``query`` (case-insensitive), most used first."""
        pattern = _like_pattern(query)
        return self.db.query(QAPair).filter(
            or_(
                QAPair.question.ilike(pattern, escape="\\"),
                QAPair.answer.ilike(pattern, escape="\\"),
            )
        ).order_by(QAPair.usage_count.desc(), QAPair.id.asc()).limit(limit).all()

    def increment_usage(self, qa_id: int) -> None:
        # Single UPDATE so concurrent hits are never lost
        self.db.query(QAPair).filter(QAPair.id == qa_id).update(
            {QAPair.usage_count: QAPair.usage_count + 1},
            synchronize_session=False,
        )

    def resolve(self, question: Optional[str], session_id: Optional[str]) -> Dict[str, Any]:
        """
        Answer a question for a session.

        Returns:
            dict with 'answer', 'conversationId', 'context' and 'relatedQuestions'

        Raises:
            ValidationError: question or session id missing
            GenerationError: the generation service failed (nothing is stored)
            PersistenceError: the turn could not be saved
        """
        if not question or not session_id:
            raise ValidationError("Question and sessionId are required")

        similar = self.search(question, SEARCH_LIMIT)
        related = [qa.question for qa in similar[:RELATED_LIMIT]]

        try:
            if similar and similar[0].question.lower() == question.lower():
                hit = similar[0]
                cache_hit = True
                logger.debug("Cache hit for question (qa_pair=%s)", hit.id)
                answer = hit.answer
                self.increment_usage(hit.id)
                context_used = [{"type": "cached", "id": hit.id}]
            else:
                cache_hit = False
                context = similar[:CONTEXT_LIMIT]
                logger.debug("Cache miss, generating with %d context pairs", len(context))
                # Only long wait of the request; nothing is written before it returns
                answer = self.llm.answer_question(
                    question,
                    [{"question": qa.question, "answer": qa.answer} for qa in context],
                )
                qa_pair = QAPair(
                    question=question,
                    answer=answer,
                    category="general",
                    tags=[],
                    usage_count=0,
                )
                self.db.add(qa_pair)
                context_used = [{"type": "similar", "id": qa.id} for qa in context]

            turn = self.ledger.append_turn(session_id, question, answer, context_used)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to store answer for session %s", session_id)
            raise PersistenceError("Failed to process question")

        if not cache_hit:
            logger.info("Stored new QA pair %s (session=%s)", qa_pair.id, session_id)

        return {
            "answer": answer,
            "conversationId": turn.id,
            "context": context_used,
            "relatedQuestions": related,
        }
