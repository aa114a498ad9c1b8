import asyncio
import json

import pytest

from linguaforge.content import generate_content, list_history, load_owned_content, rate_content
from linguaforge.errors import GenerationError, NotFound, Unauthorized, ValidationError
from linguaforge.models import AuthUser, Content, ProgressRecord
from linguaforge.prompts import SYSTEM_PROMPT
from linguaforge.schemas import GenerationRequest, User
from linguaforge.settings_store import update_safety_settings


EXERCISE_PAYLOAD = {
    "title": "Volcano Quiz",
    "content": "Volcanoes erupt lava.",
    "exercises": [
        {
            "question": f"Question {i}?",
            "options": [f"right{i}", f"wrong{i}"],
            "correctAnswer": f"right{i}",
            "explanation": "Because.",
            "focusWord": f"word{i}",
        }
        for i in range(3)
    ],
}


def _generate(db, llm, username="alice", **fields):
    data = {"topic": "Volcanoes", "level": "b1", "type": "Exercise", "language": "English"}
    data.update(fields)
    return asyncio.run(generate_content(db, llm, username, GenerationRequest(**data)))


def test_generate_persists_content_and_awards_points(db, make_user, make_llm):
    make_user()
    llm = make_llm(json.dumps(EXERCISE_PAYLOAD))
    content = _generate(db, llm)

    assert content.id is not None
    assert content.title == "Volcano Quiz"
    assert content.level == "B1"
    assert len(content.exercises) == 3
    assert content.exercises[0]["correct_answer"] == "right0"

    call = llm.calls[0]
    assert call["system"] == SYSTEM_PROMPT
    assert call["json_mode"] is True
    assert "Generate exactly 3 exercises" in call["user"]

    user = db.get(AuthUser, "alice")
    assert user.points == 10
    assert user.generated_count == 1
    record = db.query(ProgressRecord).one()
    assert record.activity_type == "content_generated"
    assert record.meta == {"content_id": content.id}


def test_article_drops_exercises(db, make_user, make_llm):
    make_user()
    content = _generate(db, make_llm(json.dumps(EXERCISE_PAYLOAD)), type="Article")
    assert content.exercises == []


def test_restricted_topic_never_reaches_model(db, make_user, make_llm):
    make_user()
    update_safety_settings(db, ["volcano"], "standard")
    llm = make_llm("{}")
    with pytest.raises(ValidationError):
        _generate(db, llm)
    assert llm.calls == []
    assert db.query(Content).count() == 0


def test_model_failure_persists_nothing(db, make_user, failing_llm):
    make_user()
    with pytest.raises(GenerationError):
        _generate(db, failing_llm)
    assert db.query(Content).count() == 0
    assert db.query(ProgressRecord).count() == 0
    assert db.get(AuthUser, "alice").points == 0


@pytest.mark.parametrize("fields", [{"topic": "  "}, {"level": "Z9"}, {"language": ""}])
def test_invalid_requests_rejected(db, make_user, make_llm, fields):
    make_user()
    llm = make_llm("{}")
    with pytest.raises(ValidationError):
        _generate(db, llm, **fields)
    assert llm.calls == []


def test_unknown_user_rejected(db, fake_llm):
    with pytest.raises(NotFound):
        _generate(db, fake_llm, username="ghost")


def test_history_and_ownership(db, make_user, make_llm):
    make_user("alice")
    make_user("bob")
    make_user("root", role="admin")
    first = _generate(db, make_llm(json.dumps(EXERCISE_PAYLOAD)))
    second = _generate(db, make_llm("plain text answer"), type="Story")

    assert [c.id for c in list_history(db, "alice")] == [second.id, first.id]
    assert second.title == "Volcanoes - Generated Content"
    assert list_history(db, "bob") == []

    assert load_owned_content(db, User(username="root", role="admin"), first.id).id == first.id
    with pytest.raises(Unauthorized):
        load_owned_content(db, User(username="bob"), first.id)
    with pytest.raises(NotFound):
        load_owned_content(db, User(username="alice"), 9999)


def test_rate_content(db, make_user, make_llm):
    make_user()
    content = _generate(db, make_llm(json.dumps(EXERCISE_PAYLOAD)))
    alice = User(username="alice")
    assert rate_content(db, alice, content.id, 4).rating == 4
    with pytest.raises(ValidationError):
        rate_content(db, alice, content.id, 6)
    with pytest.raises(ValidationError):
        rate_content(db, alice, content.id, "5")
    with pytest.raises(Unauthorized):
        rate_content(db, User(username="root", role="admin"), content.id, 3)


def test_long_recovered_title_is_stored_whole(db, make_user, make_llm):
    make_user()
    long_title = "Volcano " * 100
    truncated = '{"title": "%s", "content": "Lava flows downhill.", "exercises": [' % long_title
    content = _generate(db, make_llm(truncated), type="Article")

    db.expire_all()
    assert db.get(Content, content.id).title == long_title
    assert len(content.title) > 512
