"""Architecture explanation routes."""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from app.db.sessions import get_db
from app.services.architecture_service import ArchitectureService
from app.services.openai_service import OpenAIService, get_openai_service


router = APIRouter(prefix="/api/architecture", tags=["Architecture"])


class ExplainRequest(BaseModel):
    component: Optional[str] = None


class ArchitectureResponse(BaseModel):
    id: int
    componentName: str
    description: Optional[str]
    dependencies: List[str]
    techStack: List[str]
    filePaths: List[str]
    codeExamples: List[Dict[str, Any]]


@router.get("", response_model=List[ArchitectureResponse])
def list_components(db: Session = Depends(get_db)):
    return ArchitectureService(db).list_docs()


@router.get("/{name}", response_model=ArchitectureResponse)
def get_component(name: str, db: Session = Depends(get_db)):
    return ArchitectureService(db).get(name)


@router.post("/explain", response_model=ArchitectureResponse)
def explain_component(
    request: ExplainRequest,
    db: Session = Depends(get_db),
    llm: OpenAIService = Depends(get_openai_service)
):
    """Explain a component, reusing the stored explanation when there is one."""
    return ArchitectureService(db, llm).explain(request.component)
