"""Database models."""
from app.models.qa_pair import QAPair
from app.models.chat_session import ChatSession, ConversationTurn
from app.models.feedback import Feedback
from app.models.quiz import Quiz, QuizQuestion
from app.models.setup_guide import SetupGuide
from app.models.architecture_doc import ArchitectureDoc

__all__ = [
    "QAPair",
    "ChatSession",
    "ConversationTurn",
    "Feedback",
    "Quiz",
    "QuizQuestion",
    "SetupGuide",
    "ArchitectureDoc",
]
