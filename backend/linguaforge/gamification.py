"""
Deterministic scoring over the activity event stream.

``apply_activity`` is a pure transition: it takes the user's current progress
state, one activity event and the live rule set, and returns the new state
plus what was awarded. Persistence and locking live in ``progress``.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from .schemas import ActivityEvent, BadgeRuleSet, UserProgressState


@dataclass
class ActivityOutcome:
	state: UserProgressState
	points_awarded: int
	new_badges: List[str] = field(default_factory=list)


def week_start(now: datetime) -> datetime:
	# Monday 00:00; weekday() is 0 for Monday so Sunday rolls back six days
	start = now - timedelta(days=now.weekday())
	return start.replace(hour=0, minute=0, second=0, microsecond=0)


def _day(value: datetime | date) -> date:
	return value.date() if isinstance(value, datetime) else value


def update_streak(last_activity: Optional[datetime], current_streak: int, now: datetime) -> int:
	if last_activity is None:
		return 1
	last_day = _day(last_activity)
	today = _day(now)
	if last_day == today:
		return current_streak
	if last_day == today - timedelta(days=1):
		return current_streak + 1
	return 1


def update_weekly_goal(state: UserProgressState, increment: int, now: datetime) -> None:
	goal = state.weekly_goal
	start = week_start(now)
	if goal.start_date is None or goal.start_date < start:
		goal.start_date = start
		goal.progress = 0
	if goal.target > 0:
		goal.progress += increment


BadgeRule = Tuple[str, str, Callable[[UserProgressState, BadgeRuleSet], bool]]

BADGE_RULES: List[BadgeRule] = [
	("first-content", "First Content", lambda s, r: s.stats.generated_count >= 1),
	("content-10", "Content Explorer", lambda s, r: s.stats.generated_count >= r.threshold("content_count")),
	("exercise-5", "Exercise Starter", lambda s, r: s.stats.completed_exercises >= r.threshold("exercise_count")),
	("streak-3", "3-Day Streak", lambda s, r: s.gamification.streak >= r.threshold("streak_3")),
	("streak-7", "7-Day Streak", lambda s, r: s.gamification.streak >= r.threshold("streak_7")),
	("points-100", "100 Points", lambda s, r: s.gamification.points >= r.threshold("points_100")),
	(
		"weekly-goal",
		"Weekly Goal Achiever",
		lambda s, r: s.weekly_goal.target > 0 and s.weekly_goal.progress >= s.weekly_goal.target,
	),
]


def apply_badges(state: UserProgressState, rules: BadgeRuleSet) -> List[str]:
	"""Add every satisfied badge label; returns the labels that were not held before."""
	held = list(state.gamification.badges)
	earned: List[str] = []
	for _badge_id, label, condition in BADGE_RULES:
		if condition(state, rules) and label not in held:
			held.append(label)
			earned.append(label)
	state.gamification.badges = held
	return earned


def apply_activity(state: UserProgressState, event: ActivityEvent, rules: BadgeRuleSet) -> ActivityOutcome:
	new_state = state.model_copy(deep=True)
	now = event.occurred_at
	count = event.count

	points = rules.points_for(event.type) * count
	new_state.gamification.points += points

	new_state.gamification.streak = update_streak(
		new_state.gamification.last_activity_date, new_state.gamification.streak, now
	)
	new_state.gamification.last_activity_date = now

	update_weekly_goal(new_state, count, now)

	stats = new_state.stats
	stats.total_activities += count
	if event.type == "content_generated":
		stats.generated_count += count
		stats.last_generated_at = now
	elif event.type == "exercise_completed":
		stats.completed_exercises += count
		stats.last_exercise_at = now

	earned = apply_badges(new_state, rules)
	return ActivityOutcome(state=new_state, points_awarded=points, new_badges=earned)
