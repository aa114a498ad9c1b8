from __future__ import annotations
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .errors import ValidationError
from .models import AiSettings, GamificationSettings
from .schemas import (
	ACTIVITY_TYPES,
	DEFAULT_BADGE_THRESHOLDS,
	DEFAULT_POINTS,
	BadgeRuleSet,
	SafetySettings,
	normalize_terms,
)

SINGLETON_ID = 1


def load_safety_settings(db: Session) -> SafetySettings:
	row = db.get(AiSettings, SINGLETON_ID)
	if row is None:
		return SafetySettings()
	mode = row.safety_mode if row.safety_mode in ("standard", "strict") else "standard"
	return SafetySettings(restricted_topics=normalize_terms(row.restricted_topics), mode=mode)


def load_badge_rules(db: Session) -> BadgeRuleSet:
	row = db.get(GamificationSettings, SINGLETON_ID)
	if row is None:
		return BadgeRuleSet()
	points = dict(DEFAULT_POINTS)
	points.update({k: int(v) for k, v in (row.points or {}).items() if v is not None})
	badges = dict(DEFAULT_BADGE_THRESHOLDS)
	badges.update({k: int(v) for k, v in (row.badges or {}).items() if v is not None})
	return BadgeRuleSet(points=points, badges=badges)


def _non_negative_map(values: Optional[Dict[str, Any]], allowed: Any, label: str) -> Dict[str, int]:
	out: Dict[str, int] = {}
	for key, value in (values or {}).items():
		if key not in allowed:
			raise ValidationError(f"Unknown {label} key: {key}")
		try:
			number = int(value)
		except (TypeError, ValueError):
			raise ValidationError(f"{label} {key} must be an integer")
		if number < 0:
			raise ValidationError(f"{label} {key} must be >= 0")
		out[key] = number
	return out


def update_safety_settings(db: Session, restricted_topics: Any, mode: str, *, updated_by: Optional[str] = None) -> SafetySettings:
	if mode not in ("standard", "strict"):
		raise ValidationError("safety mode must be standard or strict")
	row = db.get(AiSettings, SINGLETON_ID)
	if row is None:
		row = AiSettings(id=SINGLETON_ID)
		db.add(row)
	row.restricted_topics = normalize_terms(restricted_topics)
	row.safety_mode = mode
	row.updated_by = updated_by
	db.commit()
	return load_safety_settings(db)


def update_badge_rules(
	db: Session,
	points: Optional[Dict[str, Any]] = None,
	badges: Optional[Dict[str, Any]] = None,
	*,
	updated_by: Optional[str] = None,
) -> BadgeRuleSet:
	new_points = _non_negative_map(points, ACTIVITY_TYPES, "points")
	new_badges = _non_negative_map(badges, DEFAULT_BADGE_THRESHOLDS, "badge threshold")
	row = db.get(GamificationSettings, SINGLETON_ID)
	if row is None:
		row = GamificationSettings(id=SINGLETON_ID, points={}, badges={})
		db.add(row)
	row.points = {**(row.points or {}), **new_points}
	row.badges = {**(row.badges or {}), **new_badges}
	row.updated_by = updated_by
	db.commit()
	return load_badge_rules(db)
