"""Quiz routes."""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from app.db.sessions import get_db
from app.core.security import CurrentUser, get_current_user
from app.services.openai_service import OpenAIService, get_openai_service
from app.services.quiz_engine import QuizEngine


router = APIRouter(prefix="/api/quizzes", tags=["Quizzes"])


# Request/Response schemas
class GenerateQuizRequest(BaseModel):
    chatId: Optional[str] = None
    questionCount: Optional[int] = None
    title: Optional[str] = None


class QuestionResponse(BaseModel):
    id: str
    quiz_id: str
    text: str
    correct_answer: bool
    explanation: str
    source_message_id: Optional[int]
    guide_refs: Optional[List[Dict[str, Any]]]


class QuizResponse(BaseModel):
    id: str
    title: str
    source_chat_id: Optional[str]
    created_at: Optional[str]
    questions: List[QuestionResponse]


class QuizSummaryResponse(BaseModel):
    id: str
    title: str
    source_chat_id: Optional[str]
    created_at: Optional[str]
    question_count: int
    chat_title: Optional[str]


class GradeQuizRequest(BaseModel):
    answers: Any = None


class QuestionResult(BaseModel):
    questionId: str
    selected: Any
    correct_answer: bool
    is_correct: bool
    explanation: str
    source_message_id: Optional[int]
    guide_refs: Optional[List[Dict[str, Any]]]


class GradeQuizResponse(BaseModel):
    score: int
    total: int
    results: List[QuestionResult]


class SuccessResponse(BaseModel):
    success: bool = True


@router.get("", response_model=List[QuizSummaryResponse])
def list_quizzes(db: Session = Depends(get_db)):
    """All quizzes, newest first, with question count and source chat title."""
    return QuizEngine(db).list_quizzes()


@router.get("/{quiz_id}", response_model=QuizResponse)
def get_quiz(quiz_id: str, db: Session = Depends(get_db)):
    """A quiz with its questions."""
    return QuizEngine(db).get(quiz_id)


@router.post("/generate", response_model=QuizResponse)
def generate_quiz(
    request: GenerateQuizRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: OpenAIService = Depends(get_openai_service)
):
    """
    Generate a true/false quiz from a chat session using OpenAI.

    This endpoint:
    1. Loads the full transcript of the chat
    2. Asks OpenAI for true/false statements about it
    3. Saves the quiz and its questions in one transaction
    4. Returns the stored quiz

    Protected endpoint - requires JWT authentication.

    Raises:
        400 validation_error: chatId missing or bad questionCount
        400 empty_source: chat has no messages
        404 not_found: chat not found
        500 generation_failed / persistence_failed: no questions could be generated or saved
    """
    engine = QuizEngine(db, llm)
    return engine.generate(request.chatId, request.questionCount, request.title)


@router.post("/{quiz_id}/grade", response_model=GradeQuizResponse)
def grade_quiz(
    quiz_id: str,
    request: GradeQuizRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Grade an answer set. Nothing is stored, so a quiz can be retried freely.

    Protected endpoint - requires JWT authentication.
    """
    return QuizEngine(db).grade(quiz_id, request.answers)


@router.delete("/{quiz_id}", response_model=SuccessResponse)
def delete_quiz(
    quiz_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a quiz together with its questions."""
    QuizEngine(db).delete(quiz_id)
    return SuccessResponse()
