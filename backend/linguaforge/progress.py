from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import utcnow
from .errors import InternalError, NotFound, ValidationError
from .gamification import ActivityOutcome, apply_activity, week_start
from .models import AuthUser, ProgressRecord
from .schemas import (
	ACTIVITY_TYPES,
	ActivityEvent,
	ActivityStats,
	GamificationState,
	UserProgressState,
	WeeklyGoal,
)
from .settings_store import load_badge_rules

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
MAX_UPDATE_ATTEMPTS = 5

T = TypeVar("T")


def state_from_user(user: AuthUser) -> UserProgressState:
	return UserProgressState(
		gamification=GamificationState(
			points=user.points or 0,
			streak=user.streak or 0,
			last_activity_date=user.last_activity_date,
			badges=list(user.badges or []),
		),
		weekly_goal=WeeklyGoal(
			target=user.weekly_goal_target or 0,
			progress=user.weekly_goal_progress or 0,
			start_date=user.weekly_goal_start,
		),
		stats=ActivityStats(
			generated_count=user.generated_count or 0,
			completed_exercises=user.completed_exercises or 0,
			total_activities=user.total_activities or 0,
			last_generated_at=user.last_generated_at,
			last_exercise_at=user.last_exercise_at,
		),
	)


def _state_columns(state: UserProgressState) -> Dict[str, Any]:
	return {
		"points": state.gamification.points,
		"streak": state.gamification.streak,
		"last_activity_date": state.gamification.last_activity_date,
		"badges": list(state.gamification.badges),
		"weekly_goal_target": state.weekly_goal.target,
		"weekly_goal_progress": state.weekly_goal.progress,
		"weekly_goal_start": state.weekly_goal.start_date,
		"generated_count": state.stats.generated_count,
		"completed_exercises": state.stats.completed_exercises,
		"total_activities": state.stats.total_activities,
		"last_generated_at": state.stats.last_generated_at,
		"last_exercise_at": state.stats.last_exercise_at,
	}


def _read_user(db: Session, username: str) -> AuthUser:
	user = (
		db.query(AuthUser)
		.filter(AuthUser.username == username)
		.with_for_update()
		.populate_existing()
		.first()
	)
	if user is None:
		raise NotFound("User not found")
	return user


def _compare_and_swap(db: Session, user: AuthUser, state: UserProgressState) -> bool:
	result = db.execute(
		update(AuthUser)
		.where(AuthUser.username == user.username, AuthUser.version == user.version)
		.values(version=AuthUser.version + 1, **_state_columns(state))
		.execution_options(synchronize_session=False)
	)
	return result.rowcount == 1


def _update_state(
	db: Session,
	username: str,
	transform: Callable[[UserProgressState], Tuple[UserProgressState, T]],
) -> Tuple[AuthUser, T]:
	"""Apply ``transform`` to the user's progress with a versioned compare-and-swap.

	When another writer bumps ``version`` between our read and our write the
	update matches no row; the transition is then recomputed from the fresh
	row. A lost swap writes nothing, so rows already staged in ``db`` (content,
	review items, sessions) are kept across attempts.
	"""
	# Pending edits must reach the database before the row is re-read
	db.flush()
	for attempt in range(1, MAX_UPDATE_ATTEMPTS + 1):
		user = _read_user(db, username)
		state, result = transform(state_from_user(user))
		if _compare_and_swap(db, user, state):
			db.expire(user)
			return user, result
		logger.info("Progress of %s changed concurrently, retrying (%d/%d)", username, attempt, MAX_UPDATE_ATTEMPTS)
	raise InternalError("Progress was updated concurrently; please retry")


def record_activity(
	db: Session,
	username: str,
	activity_type: str,
	*,
	count: int = 1,
	metadata: Optional[Dict[str, Any]] = None,
	now: Optional[datetime] = None,
) -> Tuple[AuthUser, ProgressRecord]:
	"""Apply one activity to the user's progress and append its audit record.

	Commits everything pending in ``db`` together with the progress update, so
	callers that stage other rows (generated content, review items) get a
	single transaction.
	"""
	if activity_type not in ACTIVITY_TYPES:
		raise ValidationError(f"Unknown activity type: {activity_type}")
	if count < 1:
		raise ValidationError("count must be >= 1")
	now = now or utcnow()
	event = ActivityEvent(type=activity_type, count=count, occurred_at=now, metadata=metadata or {})

	def _apply(state: UserProgressState) -> Tuple[UserProgressState, ActivityOutcome]:
		outcome = apply_activity(state, event, rules)
		return outcome.state, outcome

	try:
		rules = load_badge_rules(db)
		user, outcome = _update_state(db, username, _apply)
		record = ProgressRecord(
			username=username,
			activity_type=activity_type,
			points_awarded=outcome.points_awarded,
			meta=dict(event.metadata),
			created_at=now,
		)
		db.add(record)
		db.commit()
	except (NotFound, InternalError):
		db.rollback()
		raise
	except SQLAlchemyError as err:
		db.rollback()
		logger.error("Failed to persist activity %s for %s: %s", activity_type, username, err)
		raise InternalError("Failed to record activity") from err
	logger.info(
		"Recorded %s x%d for %s: +%d points%s",
		activity_type,
		count,
		username,
		outcome.points_awarded,
		f", new badges: {', '.join(outcome.new_badges)}" if outcome.new_badges else "",
	)
	return user, record


def progress_summary(db: Session, username: str) -> Dict[str, Any]:
	user = db.get(AuthUser, username)
	if user is None:
		raise NotFound("User not found")
	state = state_from_user(user)
	return {
		"gamification": state.gamification.model_dump(),
		"weekly_goal": state.weekly_goal.model_dump(),
		"stats": state.stats.model_dump(),
	}


def progress_history(db: Session, username: str, limit: int = HISTORY_LIMIT) -> List[ProgressRecord]:
	return (
		db.query(ProgressRecord)
		.filter(ProgressRecord.username == username)
		.order_by(ProgressRecord.created_at.desc(), ProgressRecord.id.desc())
		.limit(limit)
		.all()
	)


def set_weekly_goal(db: Session, username: str, target: Any, *, now: Optional[datetime] = None) -> WeeklyGoal:
	try:
		value = int(target)
	except (TypeError, ValueError):
		raise ValidationError("Target must be a number >= 0")
	if isinstance(target, bool) or value < 0 or (isinstance(target, float) and not target.is_integer()):
		raise ValidationError("Target must be a number >= 0")
	start = week_start(now or utcnow())

	def _reset(state: UserProgressState) -> Tuple[UserProgressState, WeeklyGoal]:
		new_state = state.model_copy(deep=True)
		new_state.weekly_goal = WeeklyGoal(target=value, progress=0, start_date=start)
		return new_state, new_state.weekly_goal

	try:
		_, goal = _update_state(db, username, _reset)
		db.commit()
	except (NotFound, InternalError):
		db.rollback()
		raise
	except SQLAlchemyError as err:
		db.rollback()
		raise InternalError("Failed to update weekly goal") from err
	return goal
