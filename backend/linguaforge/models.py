from __future__ import annotations
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, ForeignKey, UniqueConstraint
from .db import Base, utcnow


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	role = Column(String(16), default="student", nullable=False)
	interests = Column(JSON, default=list, nullable=False)
	language_level = Column(String(16), default="Not Selected", nullable=False)

	# Gamification state
	points = Column(Integer, default=0, nullable=False)
	streak = Column(Integer, default=0, nullable=False)
	last_activity_date = Column(DateTime, nullable=True)
	badges = Column(JSON, default=list, nullable=False)

	# Weekly goal
	weekly_goal_target = Column(Integer, default=0, nullable=False)
	weekly_goal_progress = Column(Integer, default=0, nullable=False)
	weekly_goal_start = Column(DateTime, nullable=True)

	# Activity stats
	generated_count = Column(Integer, default=0, nullable=False)
	completed_exercises = Column(Integer, default=0, nullable=False)
	total_activities = Column(Integer, default=0, nullable=False)
	last_generated_at = Column(DateTime, nullable=True)
	last_exercise_at = Column(DateTime, nullable=True)

	# Compare-and-swap guard for concurrent gamification updates
	version = Column(Integer, default=1, nullable=False)

	created_at = Column(DateTime, default=utcnow, nullable=False)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

	__mapper_args__ = {"version_id_col": version}


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), ForeignKey("auth_users.username"), nullable=False, index=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=utcnow, nullable=False)


class Content(Base):
	__tablename__ = "contents"
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), ForeignKey("auth_users.username"), nullable=False, index=True)
	topic = Column(String(256), nullable=False)
	level = Column(String(8), nullable=False)
	type = Column(String(32), nullable=False)
	language = Column(String(64), nullable=False)
	difficulty = Column(String(64), nullable=True)
	title = Column(Text, nullable=False)
	body = Column(Text, nullable=False)
	exercises = Column(JSON, default=list, nullable=False)  # list of exercise dicts
	rating = Column(Integer, nullable=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)


class ReviewItem(Base):
	__tablename__ = "review_items"
	__table_args__ = (UniqueConstraint("username", "word", name="uq_review_user_word"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), ForeignKey("auth_users.username"), nullable=False, index=True)
	word = Column(String(256), nullable=False)
	context = Column(Text, default="", nullable=False)
	source_content_id = Column(Integer, ForeignKey("contents.id"), nullable=True)
	times_missed = Column(Integer, default=1, nullable=False)
	last_missed_at = Column(DateTime, default=utcnow, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)


class ProgressRecord(Base):
	__tablename__ = "progress_records"
	# Append-only audit log; rows are never updated
	id = Column(Integer, primary_key=True, autoincrement=True)
	username = Column(String(128), ForeignKey("auth_users.username"), nullable=False, index=True)
	activity_type = Column(String(32), nullable=False)
	points_awarded = Column(Integer, default=0, nullable=False)
	meta = Column("metadata", JSON, default=dict, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class AiSettings(Base):
	__tablename__ = "ai_settings"
	# Singleton row, id is always 1
	id = Column(Integer, primary_key=True)
	restricted_topics = Column(JSON, default=list, nullable=False)
	safety_mode = Column(String(16), default="standard", nullable=False)
	updated_by = Column(String(128), nullable=True)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class GamificationSettings(Base):
	__tablename__ = "gamification_settings"
	# Singleton row, id is always 1
	id = Column(Integer, primary_key=True)
	points = Column(JSON, default=dict, nullable=False)
	badges = Column(JSON, default=dict, nullable=False)
	updated_by = Column(String(128), nullable=True)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
