"""Setup guide routes."""
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from app.db.sessions import get_db
from app.core.security import CurrentUser, get_current_user
from app.services.guide_service import GuideService
from app.services.openai_service import OpenAIService, get_openai_service


router = APIRouter(prefix="/api/guides", tags=["Guides"])


class GenerateGuideRequest(BaseModel):
    topic: Optional[str] = None


class GuideResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    content: str
    prerequisites: List[str]
    difficulty: str
    estimatedTime: Optional[str]
    created_at: Optional[str] = None


@router.get("", response_model=List[GuideResponse])
def list_guides(db: Session = Depends(get_db)):
    return GuideService(db).list_guides()


@router.post("/generate", response_model=GuideResponse)
def generate_guide(
    request: GenerateGuideRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: OpenAIService = Depends(get_openai_service)
):
    """
    Generate a setup guide for a topic.

    Protected endpoint - requires JWT authentication.
    """
    return GuideService(db, llm).generate(request.topic)


@router.get("/{guide_id}", response_model=GuideResponse)
def get_guide(guide_id: int, db: Session = Depends(get_db)):
    return GuideService(db).get(guide_id)
