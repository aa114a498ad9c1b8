from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


CEFR_LEVELS: List[str] = ["A1", "A2", "B1", "B2", "C1", "C2"]
CONTENT_TYPES: List[str] = ["Article", "Story", "Dialogue", "Exercise"]
ACTIVITY_TYPES: List[str] = ["content_generated", "exercise_completed", "login", "profile_update"]

DEFAULT_POINTS: Dict[str, int] = {
	"content_generated": 10,
	"exercise_completed": 5,
	"login": 1,
	"profile_update": 1,
}

DEFAULT_BADGE_THRESHOLDS: Dict[str, int] = {
	"content_count": 10,
	"exercise_count": 5,
	"streak_3": 3,
	"streak_7": 7,
	"points_100": 100,
}


def normalize_terms(value: Any) -> List[str]:
	"""Turn a comma-separated string or a sequence into trimmed, non-empty strings.

	Anything else degrades to an empty list.
	"""
	if not value:
		return []
	if isinstance(value, str):
		items = value.split(",")
	elif isinstance(value, (list, tuple, set)):
		items = list(value)
	else:
		return []
	out: List[str] = []
	for item in items:
		if item is None:
			continue
		text = str(item).strip()
		if text:
			out.append(text)
	return out


class User(BaseModel):
	username: str
	role: str = "student"

	@property
	def is_admin(self) -> bool:
		return self.role == "admin"


class GenerationRequest(BaseModel):
	topic: str
	level: str = "A1"
	type: str = "Article"
	language: str = "English"
	difficulty: Optional[str] = None
	keywords: List[str] = Field(default_factory=list)
	interests: List[str] = Field(default_factory=list)

	@field_validator("keywords", "interests", mode="before")
	@classmethod
	def _split_terms(cls, value: Any) -> List[str]:
		return normalize_terms(value)

	@field_validator("topic", "type", "language", mode="before")
	@classmethod
	def _strip(cls, value: Any) -> str:
		return str(value if value is not None else "").strip()

	@property
	def expects_exercises(self) -> bool:
		return self.type == "Exercise"


class SafetySettings(BaseModel):
	restricted_topics: List[str] = Field(default_factory=list)
	mode: Literal["standard", "strict"] = "standard"


class Exercise(BaseModel):
	question: str
	options: List[str]
	correct_answer: str
	explanation: str = ""
	focus_word: str = ""


class GeneratedContent(BaseModel):
	title: str
	body: str
	exercises: List[Exercise] = Field(default_factory=list)


class SubmissionAnswer(BaseModel):
	index: int = Field(ge=0)
	answer: str = ""


class GradingResult(BaseModel):
	index: int
	question: str
	user_answer: str
	correct: bool
	correct_answer: str
	explanation: str = ""
	focus_word: str = ""


class GradingSummary(BaseModel):
	total: int
	correct: int
	score: int
	review_added: int = 0


class BadgeRuleSet(BaseModel):
	points: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_POINTS))
	badges: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_BADGE_THRESHOLDS))

	def points_for(self, activity_type: str) -> int:
		return int(self.points.get(activity_type, 0) or 0)

	def threshold(self, key: str) -> int:
		value = self.badges.get(key)
		if value is None:
			return DEFAULT_BADGE_THRESHOLDS[key]
		return int(value)


class GamificationState(BaseModel):
	points: int = Field(default=0, ge=0)
	streak: int = Field(default=0, ge=0)
	last_activity_date: Optional[datetime] = None
	badges: List[str] = Field(default_factory=list)


class WeeklyGoal(BaseModel):
	target: int = Field(default=0, ge=0)
	progress: int = Field(default=0, ge=0)
	start_date: Optional[datetime] = None


class ActivityStats(BaseModel):
	generated_count: int = 0
	completed_exercises: int = 0
	total_activities: int = 0
	last_generated_at: Optional[datetime] = None
	last_exercise_at: Optional[datetime] = None


class UserProgressState(BaseModel):
	gamification: GamificationState = Field(default_factory=GamificationState)
	weekly_goal: WeeklyGoal = Field(default_factory=WeeklyGoal)
	stats: ActivityStats = Field(default_factory=ActivityStats)


class ActivityEvent(BaseModel):
	type: Literal["content_generated", "exercise_completed", "login", "profile_update"]
	count: int = Field(default=1, ge=1)
	occurred_at: datetime
	metadata: Dict[str, Any] = Field(default_factory=dict)
