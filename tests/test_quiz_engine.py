import json

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import (
    EmptySourceError,
    GenerationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from app.models import ConversationTurn, Quiz, QuizQuestion, SetupGuide
from app.services.quiz_engine import QuizEngine
from app.services.session_ledger import SessionLedger


@pytest.fixture
def engine(db, llm):
    return QuizEngine(db, llm)


@pytest.fixture
def chat(db):
    ledger = SessionLedger(db)
    first = ledger.append_turn("s1", "What is X?", "X is the build tool.")
    second = ledger.append_turn("s1", "How do I run X?", "Use `x run`.")
    db.commit()
    return {"id": "s1", "turn_ids": [first.id, second.id]}


def _questions(*items):
    return json.dumps(list(items))


def _q(text, correct, source=None, **extra):
    return {"text": text, "correct_answer": correct, "explanation": f"because {text}", "source_message_id": source, **extra}


def test_generate_persists_quiz_with_questions(db, llm, engine, chat):
    first_turn = chat["turn_ids"][0]
    llm.queue("Here is your quiz:\n" + _questions(
        _q("X is the build tool", True, first_turn),
        _q("X is a database", False, first_turn),
    ))

    quiz = engine.generate("s1", 5)

    assert quiz["source_chat_id"] == "s1"
    assert quiz["title"].startswith("Quiz from What is X? - ")
    assert [q["text"] for q in quiz["questions"]] == ["X is the build tool", "X is a database"]
    assert [q["correct_answer"] for q in quiz["questions"]] == [True, False]
    assert quiz["questions"][0]["source_message_id"] == first_turn
    assert db.query(QuizQuestion).count() == 2

    prompt = llm.prompts[0]
    assert f"[Message {first_turn}]" in prompt
    assert prompt.index("What is X?") < prompt.index("How do I run X?")
    assert "Generate exactly 5 statements" in prompt


def test_generate_truncates_to_requested_count(engine, llm, chat):
    llm.queue(_questions(*[_q(f"statement {i}", i % 2 == 0) for i in range(5)]))

    quiz = engine.generate("s1", 3, title="Build tools")

    assert quiz["title"] == "Build tools"
    assert len(quiz["questions"]) == 3


def test_unparseable_reply_persists_nothing(db, llm, engine, chat):
    llm.queue("Sorry, I cannot write a quiz about this conversation.")

    with pytest.raises(GenerationError):
        engine.generate("s1", 3)

    assert db.query(Quiz).count() == 0
    assert engine.list_quizzes() == []


def test_failed_commit_persists_no_quiz_or_questions(db, llm, engine, chat, monkeypatch):
    llm.queue(_questions(_q("X is the build tool", True), _q("X is a database", False)))

    def failing_commit():
        raise OperationalError("INSERT INTO quizzes", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        engine.generate("s1", 2)

    assert db.query(Quiz).count() == 0
    assert db.query(QuizQuestion).count() == 0


def test_id_list_before_question_array_is_skipped(llm, engine, chat):
    first_turn = chat["turn_ids"][0]
    llm.queue(f"Based on messages [{first_turn}]:\n" + _questions(_q("X is the build tool", True, first_turn)))

    quiz = engine.generate("s1", 1)

    assert [q["text"] for q in quiz["questions"]] == ["X is the build tool"]
    assert quiz["questions"][0]["source_message_id"] == first_turn


def test_malformed_items_are_discarded(db, llm, engine, chat):
    llm.queue(_questions(
        {"text": "no answer key"},
        {"correct_answer": True},
        _q("   ", True),
        _q("string answers are accepted", "false"),
        "not an object",
    ))

    quiz = engine.generate("s1", 5)

    assert [q["text"] for q in quiz["questions"]] == ["string answers are accepted"]
    assert quiz["questions"][0]["correct_answer"] is False


def test_wrapper_object_is_accepted(llm, engine, chat):
    llm.queue(json.dumps({"questions": [_q("wrapped", True)]}))

    quiz = engine.generate("s1", 2)

    assert [q["text"] for q in quiz["questions"]] == ["wrapped"]


def test_source_reference_outside_session_is_dropped(db, llm, engine, chat):
    other = SessionLedger(db).append_turn("s2", "Other chat", "Other answer")
    db.commit()
    llm.queue(_questions(_q("points elsewhere", True, other.id), _q("points to s1", True, str(chat["turn_ids"][1]))))

    quiz = engine.generate("s1", 2)

    assert quiz["questions"][0]["source_message_id"] is None
    assert quiz["questions"][1]["source_message_id"] == chat["turn_ids"][1]


def test_generate_preconditions(db, engine):
    with pytest.raises(ValidationError):
        engine.generate(None)
    with pytest.raises(NotFoundError):
        engine.generate("missing")

    SessionLedger(db).ensure_session("empty")
    db.commit()
    with pytest.raises(EmptySourceError):
        engine.generate("empty")


@pytest.mark.parametrize("count", [0, -1, 21, True, "3"])
def test_question_count_must_be_in_range(engine, chat, count):
    with pytest.raises(ValidationError):
        engine.generate("s1", count)


def test_prompt_lists_guides_and_refs_are_kept(db, llm, engine, chat):
    guide = SetupGuide(title="Local setup", content="...", prerequisites=[], difficulty="beginner")
    db.add(guide)
    db.commit()
    llm.queue(_questions(_q("guide backed", True, guide_refs=[{"guideId": guide.id, "section": "Install"}])))

    quiz = engine.generate("s1", 1)

    assert f"guideId {guide.id}: Local setup" in llm.prompts[0]
    assert quiz["questions"][0]["guide_refs"] == [{"guideId": guide.id, "section": "Install"}]


def _stored_quiz(db, answers, source_message_id=None, guide_refs=None):
    SessionLedger(db).ensure_session("s1")
    quiz = Quiz(title="Stored", source_chat_id="s1")
    for position, correct in enumerate(answers):
        quiz.questions.append(QuizQuestion(
            position=position,
            text=f"statement {position}",
            correct_answer=correct,
            explanation="why",
            source_message_id=source_message_id,
            guide_refs=guide_refs,
        ))
    db.add(quiz)
    db.commit()
    return quiz


def test_grade_scores_against_answer_key(db, engine):
    quiz = _stored_quiz(db, [True, False])
    q1, q2 = quiz.questions

    result = engine.grade(quiz.id, [
        {"questionId": q1.id, "selected": True},
        {"questionId": q2.id, "selected": True},
    ])

    assert result["score"] == 1
    assert result["total"] == 2
    assert result["results"][0]["is_correct"] is True
    assert result["results"][1]["is_correct"] is False
    assert result["results"][1]["correct_answer"] is False
    assert result["results"][1]["explanation"] == "why"


def test_grade_missing_answer_is_null_and_wrong(db, engine):
    quiz = _stored_quiz(db, [True, False])
    q1, q2 = quiz.questions

    result = engine.grade(quiz.id, [{"questionId": q1.id, "selected": True}])

    assert result["score"] == 1
    assert result["results"][1]["questionId"] == q2.id
    assert result["results"][1]["selected"] is None
    assert result["results"][1]["is_correct"] is False


def test_grade_only_accepts_real_booleans(db, engine):
    quiz = _stored_quiz(db, [True, False])
    q1, q2 = quiz.questions

    result = engine.grade(quiz.id, [
        {"questionId": q1.id, "selected": "true"},
        {"questionId": q2.id, "selected": 0},
        {"questionId": "unknown", "selected": True},
    ])

    assert result["score"] == 0
    assert result["total"] == 2


def test_grade_first_duplicate_wins_and_is_repeatable(db, engine):
    quiz = _stored_quiz(db, [False])
    question = quiz.questions[0]
    answers = [
        {"questionId": question.id, "selected": False},
        {"questionId": question.id, "selected": True},
    ]

    assert engine.grade(quiz.id, answers)["score"] == 1
    assert engine.grade(quiz.id, answers)["score"] == 1
    assert engine.grade(quiz.id, [])["score"] == 0


def test_grade_errors(db, engine):
    quiz = _stored_quiz(db, [True])
    with pytest.raises(ValidationError):
        engine.grade(quiz.id, None)
    with pytest.raises(NotFoundError):
        engine.grade("missing", [])


def test_dangling_references_are_omitted_on_read(db, engine):
    quiz = _stored_quiz(db, [True], source_message_id=4242, guide_refs=[{"guideId": 99}])

    detail = engine.get(quiz.id)
    graded = engine.grade(quiz.id, [])

    assert detail["questions"][0]["source_message_id"] is None
    assert detail["questions"][0]["guide_refs"] is None
    assert graded["results"][0]["source_message_id"] is None
    assert graded["results"][0]["guide_refs"] is None


def test_delete_removes_quiz_and_questions(db, engine):
    quiz = _stored_quiz(db, [True, False])
    quiz_id = quiz.id

    engine.delete(quiz_id)

    assert db.query(Quiz).count() == 0
    assert db.query(QuizQuestion).count() == 0
    with pytest.raises(NotFoundError):
        engine.get(quiz_id)
    # Deleting again is a no-op
    engine.delete(quiz_id)


def test_list_quizzes_includes_counts_and_chat_title(db, engine, llm, chat):
    llm.queue(_questions(_q("a", True), _q("b", False)))
    quiz = engine.generate("s1", 2)

    summaries = engine.list_quizzes()

    assert summaries == [{
        "id": quiz["id"],
        "title": quiz["title"],
        "source_chat_id": "s1",
        "created_at": quiz["created_at"],
        "question_count": 2,
        "chat_title": "What is X?",
    }]


def test_quiz_is_a_snapshot(db, engine, llm, chat):
    llm.queue(_questions(_q("a", True)))
    quiz = engine.generate("s1", 1)

    SessionLedger(db).append_turn("s1", "Later question", "Later answer")
    db.commit()

    assert len(engine.get(quiz["id"])["questions"]) == 1
    assert db.query(ConversationTurn).filter(ConversationTurn.session_id == "s1").count() == 3
