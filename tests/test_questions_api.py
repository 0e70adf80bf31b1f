from app.core.exceptions import GenerationError
from app.models import ConversationTurn, QAPair


def test_ask_requires_authentication(client):
    response = client.post("/api/questions/ask", json={"question": "Hi?", "sessionId": "s1"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_ask_rejects_invalid_token(client):
    response = client.post(
        "/api/questions/ask",
        json={"question": "Hi?", "sessionId": "s1"},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401
    assert response.json() == {"detail": "Could not validate credentials", "error": "unauthorized"}


def test_ask_requires_question_and_session(client, auth_headers):
    response = client.post("/api/questions/ask", json={"question": "Hi?"}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_ask_miss_then_hit(client, auth_headers, db, llm):
    llm.default_reply = "A1"

    first = client.post("/api/questions/ask", json={"question": "What is X?", "sessionId": "s1"}, headers=auth_headers)
    second = client.post("/api/questions/ask", json={"question": "what is x?", "sessionId": "s1"}, headers=auth_headers)

    assert first.status_code == 200
    body = first.json()
    assert body["answer"] == "A1"
    assert body["context"] == []
    assert body["relatedQuestions"] == []

    assert second.status_code == 200
    body = second.json()
    pair = db.query(QAPair).one()
    assert body["answer"] == "A1"
    assert body["context"] == [{"type": "cached", "id": pair.id}]
    assert body["relatedQuestions"] == ["What is X?"]
    assert body["conversationId"] != first.json()["conversationId"]
    assert pair.usage_count == 1
    assert len(llm.prompts) == 1


def test_ask_generation_failure_is_500_and_stores_nothing(client, auth_headers, db, llm):
    llm.fail_with = GenerationError("Generation timed out")

    response = client.post("/api/questions/ask", json={"question": "Q?", "sessionId": "s1"}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["error"] == "generation_failed"
    assert db.query(ConversationTurn).count() == 0
    assert db.query(QAPair).count() == 0


def test_search(client, db):
    db.add_all([
        QAPair(question="How to lint?", answer="Run ruff.", category="general", tags=["tooling"], usage_count=2),
        QAPair(question="How to test?", answer="Run pytest.", category="general", tags=[], usage_count=0),
    ])
    db.commit()

    missing = client.get("/api/questions/search")
    response = client.get("/api/questions/search", params={"q": "run"})

    assert missing.status_code == 400
    assert response.status_code == 200
    rows = response.json()
    assert [r["question"] for r in rows] == ["How to lint?", "How to test?"]
    assert rows[0] == {
        "id": rows[0]["id"],
        "question": "How to lint?",
        "answer": "Run ruff.",
        "category": "general",
        "tags": ["tooling"],
        "usage_count": 2,
    }


def test_feedback(client, auth_headers):
    asked = client.post("/api/questions/ask", json={"question": "Q?", "sessionId": "s1"}, headers=auth_headers)
    conversation_id = asked.json()["conversationId"]

    ok = client.post(
        "/api/questions/feedback",
        json={"conversationId": conversation_id, "helpful": False, "comment": "too vague"},
        headers=auth_headers,
    )
    missing = client.post("/api/questions/feedback", json={"conversationId": conversation_id}, headers=auth_headers)
    unknown = client.post("/api/questions/feedback", json={"conversationId": 9999, "helpful": True}, headers=auth_headers)

    assert ok.status_code == 200
    assert ok.json()["success"] is True
    assert isinstance(ok.json()["id"], int)
    assert missing.status_code == 400
    assert unknown.status_code == 404


def test_chats_list_and_detail(client, auth_headers):
    for question in ["First question", "Second question", "Third question"]:
        client.post("/api/questions/ask", json={"question": question, "sessionId": "s1"}, headers=auth_headers)
    client.post("/api/questions/ask", json={"question": "Other chat", "sessionId": "s2"}, headers=auth_headers)

    chats = client.get("/api/questions/chats").json()
    detail = client.get("/api/questions/chats/s1")

    assert [c["id"] for c in chats] == ["s2", "s1"]
    assert chats[1]["title"] == "First question"
    assert chats[1]["first_question"] == "First question"
    assert chats[1]["message_count"] == 3

    assert detail.status_code == 200
    body = detail.json()
    assert body["session"]["id"] == "s1"
    assert [m["user_question"] for m in body["messages"]] == ["First question", "Second question", "Third question"]


def test_unknown_chat_is_404(client):
    response = client.get("/api/questions/chats/nope")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
