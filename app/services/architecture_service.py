"""Architecture explanation service."""
from typing import Any, Dict, List, Optional
import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import NotFoundError, PersistenceError, ValidationError
from app.models import ArchitectureDoc
from app.services.openai_service import OpenAIService

logger = logging.getLogger(__name__)


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


class ArchitectureService:
    def __init__(self, db: Session, llm_service: Optional[OpenAIService] = None):
        self.db = db
        self.llm = llm_service

    def list_docs(self) -> List[Dict[str, Any]]:
        docs = self.db.query(ArchitectureDoc).order_by(ArchitectureDoc.component_name).all()
        return [d.to_dict() for d in docs]

    def _find(self, component: str) -> Optional[ArchitectureDoc]:
        return self.db.query(ArchitectureDoc).filter(
            ArchitectureDoc.component_name == component
        ).first()

    def get(self, component: str) -> Dict[str, Any]:
        doc = self._find(component)
        if doc is None:
            raise NotFoundError("Component not found")
        return doc.to_dict()

    def explain(self, component: Optional[str]) -> Dict[str, Any]:
        """Return the stored explanation of a component, generating it on first request."""
        if not component:
            raise ValidationError("Component name is required")

        existing = self._find(component)
        if existing is not None:
            return existing.to_dict()

        result = self.llm.explain_architecture(component)
        if isinstance(result, dict):
            examples = [e for e in _list(result.get("codeExamples")) if isinstance(e, dict)]
            doc = ArchitectureDoc(
                component_name=component,
                description=str(result.get("description") or ""),
                dependencies=[str(d) for d in _list(result.get("dependencies"))],
                tech_stack=[str(t) for t in _list(result.get("techStack"))],
                file_paths=[str(p) for p in _list(result.get("filePaths"))],
                code_examples=examples,
            )
        else:
            logger.warning("Explanation of %r was not JSON, storing raw text", component)
            doc = ArchitectureDoc(component_name=component, description=result)

        try:
            self.db.add(doc)
            self.db.commit()
        except IntegrityError:
            # Another request stored the same component while we were generating
            self.db.rollback()
            stored = self._find(component)
            if stored is None:
                logger.exception("Failed to save architecture doc for %r", component)
                raise PersistenceError("Failed to save architecture doc")
            logger.info("Architecture doc for %r was stored concurrently, using it", component)
            return stored.to_dict()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to save architecture doc for %r", component)
            raise PersistenceError("Failed to save architecture doc")

        self.db.refresh(doc)
        logger.info("Stored architecture doc for %r", component)
        return doc.to_dict()
