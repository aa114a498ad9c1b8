import pytest

from linguaforge.errors import ValidationError
from linguaforge.schemas import DEFAULT_BADGE_THRESHOLDS, DEFAULT_POINTS
from linguaforge.settings_store import (
    load_badge_rules,
    load_safety_settings,
    update_badge_rules,
    update_safety_settings,
)


def test_defaults_without_rows(db):
    safety = load_safety_settings(db)
    assert safety.restricted_topics == []
    assert safety.mode == "standard"
    rules = load_badge_rules(db)
    assert rules.points == DEFAULT_POINTS
    assert rules.badges == DEFAULT_BADGE_THRESHOLDS


def test_update_safety_settings_normalizes_topics(db):
    saved = update_safety_settings(db, " war, gambling ,, ", "strict", updated_by="admin")
    assert saved.restricted_topics == ["war", "gambling"]
    assert saved.mode == "strict"
    assert load_safety_settings(db) == saved


def test_update_safety_settings_rejects_unknown_mode(db):
    with pytest.raises(ValidationError):
        update_safety_settings(db, [], "paranoid")


def test_partial_badge_rules_merge_with_defaults(db):
    rules = update_badge_rules(db, points={"login": 3}, badges={"streak_3": 2})
    assert rules.points_for("login") == 3
    assert rules.points_for("content_generated") == DEFAULT_POINTS["content_generated"]
    assert rules.threshold("streak_3") == 2
    assert rules.threshold("points_100") == 100

    # A second partial update keeps earlier overrides
    rules = update_badge_rules(db, points={"profile_update": 0})
    assert rules.points_for("login") == 3
    assert rules.points_for("profile_update") == 0


@pytest.mark.parametrize(
    "points,badges",
    [
        ({"dancing": 1}, None),
        ({"login": -1}, None),
        ({"login": "lots"}, None),
        (None, {"streak_30": 30}),
    ],
)
def test_invalid_badge_rules_rejected(db, points, badges):
    with pytest.raises(ValidationError):
        update_badge_rules(db, points=points, badges=badges)
    assert load_badge_rules(db).points == DEFAULT_POINTS
