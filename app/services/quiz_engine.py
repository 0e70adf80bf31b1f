"""Quiz engine service.

Builds true/false quizzes from a chat transcript, grades answer sets
against the stored answer key, and manages stored quizzes. A quiz is a
snapshot of its session at generation time; later turns do not change it.
"""
from typing import Any, Dict, Iterable, List, Optional, Set
import logging
from sqlalchemy.orm import Session
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import (
    EmptySourceError,
    GenerationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.db.base import utcnow
from app.models import ChatSession, ConversationTurn, Quiz, QuizQuestion, SetupGuide
from app.services.openai_service import OpenAIService
from app.services.session_ledger import SessionLedger

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_COUNT = 5
GUIDE_PROMPT_LIMIT = 20


def _coerce_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return None


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _normalize_guide_refs(value: Any) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(value, list):
        return None
    refs = []
    for ref in value:
        if not isinstance(ref, dict) or ref.get("guideId") in (None, ""):
            continue
        item = {"guideId": ref["guideId"]}
        if ref.get("section"):
            item["section"] = str(ref["section"])
        refs.append(item)
    return refs or None


class QuizEngine:
    def __init__(self, db: Session, llm_service: Optional[OpenAIService] = None):
        self.db = db
        self.llm = llm_service
        self.ledger = SessionLedger(db)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def generate(
        self,
        chat_id: Optional[str],
        question_count: Any = DEFAULT_QUESTION_COUNT,
        title: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate and store a quiz from the transcript of a chat session.

        Raises:
            ValidationError: chat id missing or question count out of range
            NotFoundError: the chat session does not exist
            EmptySourceError: the chat session has no turns
            GenerationError: no usable questions came back
            PersistenceError: the quiz could not be saved
        """
        if not chat_id:
            raise ValidationError("chatId is required")
        if question_count is None:
            question_count = DEFAULT_QUESTION_COUNT
        if (
            isinstance(question_count, bool)
            or not isinstance(question_count, int)
            or not 1 <= question_count <= settings.QUIZ_MAX_QUESTIONS
        ):
            raise ValidationError(
                f"questionCount must be an integer between 1 and {settings.QUIZ_MAX_QUESTIONS}"
            )

        chat = self.ledger.require_session(chat_id)
        transcript = self.ledger.get_transcript(chat_id)
        if not transcript:
            raise EmptySourceError("No messages in chat to generate quiz from")

        guides = self.db.query(SetupGuide.id, SetupGuide.title).order_by(
            SetupGuide.created_at.desc()
        ).limit(GUIDE_PROMPT_LIMIT).all()

        raw_questions = self.llm.generate_quiz_questions(
            transcript=[
                {"id": t.id, "user_question": t.user_question, "agent_response": t.agent_response}
                for t in transcript
            ],
            num_questions=question_count,
            guides=[{"id": g.id, "title": g.title} for g in guides],
        )

        turn_ids = {t.id for t in transcript}
        items = self._clean_questions(raw_questions, turn_ids)[:question_count]
        if not items:
            raise GenerationError("Failed to generate quiz questions")

        quiz_title = title or f"Quiz from {chat.title or 'chat'} - {utcnow().date().isoformat()}"
        quiz = Quiz(title=quiz_title, source_chat_id=chat.id, created_at=utcnow())
        for position, item in enumerate(items):
            quiz.questions.append(QuizQuestion(position=position, **item))

        # Quiz and its questions go in a single commit
        try:
            self.db.add(quiz)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to save quiz for chat %s", chat_id)
            raise PersistenceError("Failed to save quiz")

        logger.info("Created quiz %s with %d questions from chat %s", quiz.id, len(items), chat_id)
        return self.get(quiz.id)

    def _clean_questions(self, raw_questions: Iterable[Any], turn_ids: Set[int]) -> List[Dict[str, Any]]:
        """Keep only well-formed items; drop references to turns outside the session."""
        cleaned = []
        for raw in raw_questions or []:
            if not isinstance(raw, dict):
                continue
            text = raw.get("text")
            correct = _coerce_bool(raw.get("correct_answer"))
            if not isinstance(text, str) or not text.strip() or correct is None:
                continue

            source_id = _coerce_int(raw.get("source_message_id"))
            if source_id not in turn_ids:
                source_id = None

            explanation = raw.get("explanation")
            cleaned.append({
                "text": text.strip(),
                "correct_answer": correct,
                "explanation": explanation if isinstance(explanation, str) else "",
                "source_message_id": source_id,
                "guide_refs": _normalize_guide_refs(raw.get("guide_refs")),
            })
        return cleaned

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_quizzes(self) -> List[Dict[str, Any]]:
        """Quiz summaries, newest first."""
        question_count = (
            select(func.count(QuizQuestion.id))
            .where(QuizQuestion.quiz_id == Quiz.id)
            .correlate(Quiz)
            .scalar_subquery()
        )
        rows = self.db.query(
            Quiz,
            question_count.label("question_count"),
            ChatSession.title.label("chat_title"),
        ).outerjoin(ChatSession, ChatSession.id == Quiz.source_chat_id).order_by(
            Quiz.created_at.desc()
        ).all()

        return [
            {
                "id": quiz.id,
                "title": quiz.title,
                "source_chat_id": quiz.source_chat_id,
                "created_at": quiz.created_at.isoformat() if quiz.created_at else None,
                "question_count": count or 0,
                "chat_title": chat_title,
            }
            for quiz, count, chat_title in rows
        ]

    def _require_quiz(self, quiz_id: str) -> Quiz:
        quiz = self.db.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        return quiz

    def _live_references(self, questions: List[QuizQuestion]):
        """Ids of referenced turns and guides that still exist."""
        message_ids = {q.source_message_id for q in questions if q.source_message_id is not None}
        guide_ids = set()
        for q in questions:
            for ref in q.guide_refs or []:
                guide_id = _coerce_int(ref.get("guideId"))
                if guide_id is not None:
                    guide_ids.add(guide_id)

        live_messages = set()
        if message_ids:
            live_messages = {
                row[0] for row in self.db.query(ConversationTurn.id).filter(
                    ConversationTurn.id.in_(message_ids)
                )
            }
        live_guides = set()
        if guide_ids:
            live_guides = {
                row[0] for row in self.db.query(SetupGuide.id).filter(SetupGuide.id.in_(guide_ids))
            }
        return live_messages, live_guides

    @staticmethod
    def _resolve_refs(question: QuizQuestion, live_messages: Set[int], live_guides: Set[int]):
        source_id = question.source_message_id if question.source_message_id in live_messages else None
        refs = [
            ref for ref in (question.guide_refs or [])
            if _coerce_int(ref.get("guideId")) in live_guides
        ]
        return source_id, refs or None

    def get(self, quiz_id: str) -> Dict[str, Any]:
        """Quiz with its questions; dangling references are left out."""
        quiz = self._require_quiz(quiz_id)
        live_messages, live_guides = self._live_references(quiz.questions)

        questions = []
        for q in quiz.questions:
            source_id, refs = self._resolve_refs(q, live_messages, live_guides)
            questions.append({
                "id": q.id,
                "quiz_id": q.quiz_id,
                "text": q.text,
                "correct_answer": q.correct_answer,
                "explanation": q.explanation,
                "source_message_id": source_id,
                "guide_refs": refs,
            })

        return {
            "id": quiz.id,
            "title": quiz.title,
            "source_chat_id": quiz.source_chat_id,
            "created_at": quiz.created_at.isoformat() if quiz.created_at else None,
            "questions": questions,
        }

    # ------------------------------------------------------------------
    # Grading
    # ------------------------------------------------------------------

    def grade(self, quiz_id: str, answers: Any) -> Dict[str, Any]:
        """
        Score an answer set against the stored answer key. Nothing is stored.

        Every question of the quiz is scored; a question without a submitted
        answer gets ``selected=None`` and counts as wrong. Only real booleans
        can match the answer key.
        """
        if not isinstance(answers, list):
            raise ValidationError("answers array is required")

        quiz = self._require_quiz(quiz_id)

        submitted: Dict[str, Any] = {}
        for answer in answers:
            if isinstance(answer, dict) and isinstance(answer.get("questionId"), str):
                submitted.setdefault(answer["questionId"], answer.get("selected"))

        live_messages, live_guides = self._live_references(quiz.questions)
        results = []
        for q in quiz.questions:
            selected = submitted.get(q.id)
            is_correct = isinstance(selected, bool) and selected == q.correct_answer
            source_id, refs = self._resolve_refs(q, live_messages, live_guides)
            results.append({
                "questionId": q.id,
                "selected": selected,
                "correct_answer": q.correct_answer,
                "is_correct": is_correct,
                "explanation": q.explanation,
                "source_message_id": source_id,
                "guide_refs": refs,
            })

        score = sum(1 for r in results if r["is_correct"])
        return {"score": score, "total": len(results), "results": results}

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete(self, quiz_id: str) -> None:
        """Remove a quiz and its questions. Unknown ids are ignored."""
        quiz = self.db.get(Quiz, quiz_id)
        if quiz is None:
            return
        try:
            self.db.delete(quiz)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to delete quiz %s", quiz_id)
            raise PersistenceError("Failed to delete quiz")
        logger.info("Deleted quiz %s", quiz_id)
