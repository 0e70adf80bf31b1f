"""Session ledger service.

Keeps the append-only conversation history of each chat session. Sessions
are created implicitly by the first turn appended to them (lenient write)
but reads require the session to exist (strict lookup).
"""
from typing import Any, Dict, List, Optional
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from app.core.exceptions import NotFoundError
from app.db.base import utcnow
from app.models import ChatSession, ConversationTurn, Feedback

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 60
CHAT_DETAIL_LIMIT = 100


class SessionLedger:
    def __init__(self, db: Session):
        self.db = db

    def ensure_session(self, session_id: str) -> None:
        """Create the session if it does not exist yet; otherwise do nothing.

        Uses INSERT ... ON CONFLICT DO NOTHING so two concurrent first turns
        for the same id cannot produce duplicates.
        """
        dialect = self.db.get_bind().dialect.name
        now = utcnow()
        values = {"id": session_id, "created_at": now, "updated_at": now}

        if dialect == "sqlite":
            stmt = sqlite_insert(ChatSession).values(**values).on_conflict_do_nothing(index_elements=["id"])
        elif dialect == "postgresql":
            stmt = pg_insert(ChatSession).values(**values).on_conflict_do_nothing(index_elements=["id"])
        else:
            if self.db.get(ChatSession, session_id) is None:
                self.db.add(ChatSession(**values))
                self.db.flush()
            return

        result = self.db.execute(stmt)
        if result.rowcount:
            logger.info("Created chat session %s", session_id)

    def require_session(self, session_id: str) -> ChatSession:
        session = self.db.get(ChatSession, session_id)
        if session is None:
            raise NotFoundError("Chat session not found")
        return session

    def append_turn(
        self,
        session_id: str,
        question: str,
        answer: str,
        context: Optional[List[Dict[str, Any]]] = None,
    ) -> ConversationTurn:
        """
        Add a turn to a session, creating the session if needed.

        The caller owns the transaction: nothing is committed here, so the
        turn lands together with whatever else the request wrote.
        """
        self.ensure_session(session_id)

        turn = ConversationTurn(
            session_id=session_id,
            user_question=question,
            agent_response=answer,
            context_used=list(context or []),
            created_at=utcnow(),
        )
        self.db.add(turn)
        self.db.flush()

        session = self.db.get(ChatSession, session_id)
        session.updated_at = utcnow()

        # Title is taken from the very first turn and never touched again
        count = self.db.query(func.count(ConversationTurn.id)).filter(
            ConversationTurn.session_id == session_id
        ).scalar()
        if count == 1:
            session.title = question[:TITLE_MAX_LENGTH]

        self.db.flush()
        return turn

    def get_history(self, session_id: str, limit: Optional[int] = 10) -> List[ConversationTurn]:
        """Turns of a session, most recent first."""
        query = self.db.query(ConversationTurn).filter(
            ConversationTurn.session_id == session_id
        ).order_by(ConversationTurn.created_at.desc(), ConversationTurn.id.desc())
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def get_transcript(self, session_id: str) -> List[ConversationTurn]:
        """Every turn of a session in chronological order."""
        return self.db.query(ConversationTurn).filter(
            ConversationTurn.session_id == session_id
        ).order_by(ConversationTurn.created_at.asc(), ConversationTurn.id.asc()).all()

    def list_sessions(self) -> List[Dict[str, Any]]:
        """All sessions with first question and turn count, most recently updated first."""
        first_question = (
            select(ConversationTurn.user_question)
            .where(ConversationTurn.session_id == ChatSession.id)
            .order_by(ConversationTurn.created_at.asc(), ConversationTurn.id.asc())
            .limit(1)
            .correlate(ChatSession)
            .scalar_subquery()
        )
        message_count = (
            select(func.count(ConversationTurn.id))
            .where(ConversationTurn.session_id == ChatSession.id)
            .correlate(ChatSession)
            .scalar_subquery()
        )

        rows = self.db.query(
            ChatSession,
            first_question.label("first_question"),
            message_count.label("message_count"),
        ).order_by(ChatSession.updated_at.desc(), ChatSession.created_at.desc()).all()

        sessions = []
        for session, first, count in rows:
            data = session.to_dict()
            data["first_question"] = first
            data["message_count"] = count or 0
            sessions.append(data)
        return sessions

    def get_chat(self, session_id: str) -> Dict[str, Any]:
        """Session plus its latest turns in chronological order."""
        session = self.require_session(session_id)
        messages = self.get_history(session_id, CHAT_DETAIL_LIMIT)
        messages.reverse()
        return {
            "session": session.to_dict(),
            "messages": [m.to_dict() for m in messages],
        }

    def record_feedback(self, conversation_id: int, helpful: bool, comment: Optional[str] = None) -> Feedback:
        turn = self.db.get(ConversationTurn, conversation_id)
        if turn is None:
            raise NotFoundError("Conversation not found")

        feedback = Feedback(
            conversation_id=conversation_id,
            helpful=bool(helpful),
            comment=comment or None,
        )
        self.db.add(feedback)
        self.db.commit()
        self.db.refresh(feedback)
        return feedback
