import os
import tempfile

_tmp_dir = tempfile.mkdtemp(prefix="onboarding-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["OPENAI_API_KEY"] = "sk-test"

import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token
from app.db.base import Base
from app.db.sessions import SessionLocal, engine
from app.main import app
from app.services.openai_service import OpenAIService, get_openai_service


class FakeGenerationService(OpenAIService):
    """OpenAIService with the network call replaced by scripted replies.

    Prompt building and JSON extraction still run for real.
    """

    def __init__(self):
        self.model = "fake-model"
        self.temperature = 0.0
        self.replies = []
        self.default_reply = "Generated answer"
        self.fail_with = None
        self.prompts = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def _complete(self, prompt, system_prompt=None):
        self.prompts.append(prompt)
        if self.fail_with is not None:
            raise self.fail_with
        if self.replies:
            return self.replies.pop(0)
        return self.default_reply


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def llm():
    return FakeGenerationService()


@pytest.fixture
def client(db, llm):
    app.dependency_overrides[get_openai_service] = lambda: llm
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    token = create_access_token({"sub": "user_123", "email": "dev@example.com", "first_name": "Dana"})
    return {"Authorization": f"Bearer {token}"}
