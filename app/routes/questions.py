"""Question, feedback and chat history routes."""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel

from app.db.sessions import get_db
from app.core.exceptions import ValidationError
from app.core.security import CurrentUser, get_current_user
from app.services.openai_service import OpenAIService, get_openai_service
from app.services.qa_resolver import QACacheResolver
from app.services.session_ledger import SessionLedger


router = APIRouter(prefix="/api/questions", tags=["Questions"])

SEARCH_RESULTS_LIMIT = 10


# Request/Response schemas
class AskRequest(BaseModel):
    question: Optional[str] = None
    sessionId: Optional[str] = None


class ContextItem(BaseModel):
    type: str
    id: int


class AskResponse(BaseModel):
    answer: str
    conversationId: int
    context: List[ContextItem]
    relatedQuestions: List[str]


class QAPairResponse(BaseModel):
    id: int
    question: str
    answer: str
    category: str
    tags: List[str]
    usage_count: int


class FeedbackRequest(BaseModel):
    conversationId: Optional[int] = None
    helpful: Optional[bool] = None
    comment: Optional[str] = None


class FeedbackResponse(BaseModel):
    id: int
    success: bool = True


class ChatSummaryResponse(BaseModel):
    id: str
    title: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]
    first_question: Optional[str]
    message_count: int


class ChatDetailResponse(BaseModel):
    session: Dict[str, Any]
    messages: List[Dict[str, Any]]


@router.post("/ask", response_model=AskResponse)
def ask_question(
    request: AskRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: OpenAIService = Depends(get_openai_service)
):
    """
    Answer a question, from the Q/A cache when the exact question was seen
    before, otherwise by generating a new answer.

    Protected endpoint - requires JWT authentication.

    Raises:
        400 validation_error: question or sessionId missing
        500 generation_failed / persistence_failed: generation or storage failed
    """
    resolver = QACacheResolver(db, llm)
    return resolver.resolve(request.question, request.sessionId)


@router.get("/search", response_model=List[QAPairResponse])
def search_questions(
    q: Optional[str] = Query(default=None),
    db: Session = Depends(get_db)
):
    """Search cached Q/A pairs by substring, most used first."""
    if not q:
        raise ValidationError("Query parameter q is required")

    resolver = QACacheResolver(db, llm_service=None)
    return [qa.to_dict() for qa in resolver.search(q, SEARCH_RESULTS_LIMIT)]


@router.post("/feedback", response_model=FeedbackResponse)
def submit_feedback(
    request: FeedbackRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Record whether an answer was helpful.

    Protected endpoint - requires JWT authentication.
    """
    if request.conversationId is None or request.helpful is None:
        raise ValidationError("conversationId and helpful are required")

    ledger = SessionLedger(db)
    feedback = ledger.record_feedback(request.conversationId, request.helpful, request.comment)
    return FeedbackResponse(id=feedback.id)


@router.get("/chats", response_model=List[ChatSummaryResponse])
def list_chats(db: Session = Depends(get_db)):
    """All chat sessions, most recently active first."""
    return SessionLedger(db).list_sessions()


@router.get("/chats/{chat_id}", response_model=ChatDetailResponse)
def get_chat(chat_id: str, db: Session = Depends(get_db)):
    """A chat session with its messages in chronological order."""
    return SessionLedger(db).get_chat(chat_id)
