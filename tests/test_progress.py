from datetime import datetime, timedelta

import pytest

from linguaforge import progress
from linguaforge.errors import InternalError, NotFound, ValidationError
from linguaforge.models import AuthUser, ProgressRecord, ReviewItem
from linguaforge.progress import progress_history, progress_summary, record_activity, set_weekly_goal
from linguaforge.settings_store import update_badge_rules

NOW = datetime(2026, 10, 14, 12, 0)


def test_record_activity_persists_state_and_audit_record(db, make_user):
    make_user()
    user, record = record_activity(db, "alice", "content_generated", metadata={"content_id": 7}, now=NOW)
    assert user.points == 10
    assert user.streak == 1
    assert user.generated_count == 1
    assert user.badges == ["First Content"]
    assert record.points_awarded == 10
    assert record.meta == {"content_id": 7}

    db.expire_all()
    stored = db.get(AuthUser, "alice")
    assert stored.points == 10
    assert stored.last_activity_date == NOW
    assert db.query(ProgressRecord).count() == 1


def test_record_activity_uses_configured_points(db, make_user):
    make_user()
    update_badge_rules(db, points={"exercise_completed": 2})
    user, record = record_activity(db, "alice", "exercise_completed", count=3, now=NOW)
    assert record.points_awarded == 6
    assert user.completed_exercises == 3


def test_streak_across_days(db, make_user):
    make_user()
    record_activity(db, "alice", "login", now=NOW - timedelta(days=1))
    user, _ = record_activity(db, "alice", "login", now=NOW)
    assert user.streak == 2
    user, _ = record_activity(db, "alice", "login", now=NOW + timedelta(hours=2))
    assert user.streak == 2


def test_unknown_user_and_activity(db, make_user):
    make_user()
    with pytest.raises(NotFound):
        record_activity(db, "ghost", "login")
    with pytest.raises(ValidationError):
        record_activity(db, "alice", "dancing")
    with pytest.raises(ValidationError):
        record_activity(db, "alice", "login", count=0)


def test_history_newest_first_and_limited(db, make_user):
    make_user()
    for i in range(25):
        record_activity(db, "alice", "login", now=NOW + timedelta(minutes=i))
    history = progress_history(db, "alice")
    assert len(history) == 20
    assert history[0].created_at == NOW + timedelta(minutes=24)
    assert history[-1].created_at == NOW + timedelta(minutes=5)


def test_summary_shape(db, make_user):
    make_user()
    record_activity(db, "alice", "profile_update", now=NOW)
    summary = progress_summary(db, "alice")
    assert summary["gamification"]["points"] == 1
    assert summary["weekly_goal"]["target"] == 0
    assert summary["stats"]["total_activities"] == 1
    with pytest.raises(NotFound):
        progress_summary(db, "ghost")


def test_set_weekly_goal_resets_progress(db, make_user):
    make_user(weekly_goal_target=5, weekly_goal_progress=4, weekly_goal_start=datetime(2026, 10, 12))
    goal = set_weekly_goal(db, "alice", 3, now=NOW)
    assert goal.target == 3
    assert goal.progress == 0
    assert goal.start_date == datetime(2026, 10, 12)

    _, _ = record_activity(db, "alice", "exercise_completed", count=3, now=NOW)
    user = db.get(AuthUser, "alice")
    assert user.weekly_goal_progress == 3
    assert "Weekly Goal Achiever" in user.badges


@pytest.mark.parametrize("target", [-1, "abc", None, 2.5, True])
def test_set_weekly_goal_rejects_invalid_targets(db, make_user, target):
    make_user()
    with pytest.raises(ValidationError):
        set_weekly_goal(db, "alice", target)


def test_interleaved_activity_is_not_lost(file_session_factory, monkeypatch):
    """A write landing between another request's read and write is retried, not dropped."""
    other, session = file_session_factory(), file_session_factory()
    real_apply = progress.apply_activity
    interleaved = []

    def apply_with_concurrent_writer(state, event, rules):
        if not interleaved:
            interleaved.append(True)
            record_activity(other, "alice", "exercise_completed", now=NOW)
        return real_apply(state, event, rules)

    monkeypatch.setattr(progress, "apply_activity", apply_with_concurrent_writer)
    try:
        user, record = record_activity(session, "alice", "content_generated", now=NOW)

        assert interleaved
        assert user.points == 15
        assert user.generated_count == 1
        assert user.completed_exercises == 1
        assert user.total_activities == 2
        assert record.points_awarded == 10
        assert session.query(ProgressRecord).count() == 2
    finally:
        other.close()
        session.close()


def test_interleaved_weekly_goal_keeps_concurrent_points(file_session_factory, monkeypatch):
    other, session = file_session_factory(), file_session_factory()
    real_swap = progress._compare_and_swap
    interleaved = []

    def swap_after_concurrent_writer(db, user, state):
        if db is session and not interleaved:
            interleaved.append(True)
            record_activity(other, "alice", "login", now=NOW)
        return real_swap(db, user, state)

    monkeypatch.setattr(progress, "_compare_and_swap", swap_after_concurrent_writer)
    try:
        goal = set_weekly_goal(session, "alice", 6, now=NOW)
        assert goal.target == 6
        session.expire_all()
        user = session.get(AuthUser, "alice")
        assert user.weekly_goal_target == 6
        assert user.weekly_goal_progress == 0
        assert user.points == 1
    finally:
        other.close()
        session.close()


def test_staged_rows_survive_a_lost_swap(db, make_user, monkeypatch):
    make_user()
    real_swap = progress._compare_and_swap
    attempts = []

    def lose_first_swap(session, user, state):
        attempts.append(user.version)
        if len(attempts) == 1:
            return False
        return real_swap(session, user, state)

    monkeypatch.setattr(progress, "_compare_and_swap", lose_first_swap)
    db.add(ReviewItem(username="alice", word="staged", context="", times_missed=1))
    user, _ = record_activity(db, "alice", "login", now=NOW)

    assert len(attempts) == 2
    assert user.points == 1
    assert db.query(ReviewItem).filter(ReviewItem.word == "staged").count() == 1


def test_persistent_conflict_gives_up_without_writing(db, make_user, monkeypatch):
    make_user()
    monkeypatch.setattr(progress, "_compare_and_swap", lambda session, user, state: False)
    db.add(ReviewItem(username="alice", word="staged", context="", times_missed=1))
    with pytest.raises(InternalError):
        record_activity(db, "alice", "login", now=NOW)
    assert db.query(ProgressRecord).count() == 0
    assert db.query(ReviewItem).count() == 0
    assert db.get(AuthUser, "alice").points == 0
