from __future__ import annotations
import logging
from typing import Any, List

from sqlalchemy.orm import Session

from .errors import NotFound, Unauthorized, ValidationError
from .models import AuthUser, Content
from .progress import record_activity
from .prompts import SYSTEM_PROMPT, compose
from .recovery import recover
from .safety import is_restricted
from .schemas import CEFR_LEVELS, Exercise, GenerationRequest, User
from .settings_store import load_safety_settings

logger = logging.getLogger(__name__)


def _validate_request(request: GenerationRequest) -> None:
	if not request.topic:
		raise ValidationError("topic is required")
	if request.level.upper() not in CEFR_LEVELS:
		raise ValidationError(f"level must be one of {CEFR_LEVELS}")
	request.level = request.level.upper()
	if not request.language:
		raise ValidationError("language is required")


async def generate_content(db: Session, client, username: str, request: GenerationRequest) -> Content:
	"""Filter, prompt, call the model, recover and persist one piece of content.

	Nothing is written unless the model call succeeded; the content row and the
	``content_generated`` activity are committed together.
	"""
	_validate_request(request)
	if db.get(AuthUser, username) is None:
		raise NotFound("User not found")
	safety = load_safety_settings(db)
	if is_restricted(request, safety.restricted_topics):
		logger.info("Rejected restricted generation request from %s: %r", username, request.topic)
		raise ValidationError("The requested topic is restricted")

	prompt = compose(request, safety)
	raw = await client.complete(SYSTEM_PROMPT, prompt, temperature=0.7, max_tokens=900, json_mode=True)
	generated = recover(raw, request.expects_exercises, topic=request.topic)

	content = Content(
		username=username,
		topic=request.topic,
		level=request.level,
		type=request.type,
		language=request.language,
		difficulty=request.difficulty,
		title=generated.title,
		body=generated.body,
		exercises=[e.model_dump() for e in generated.exercises],
	)
	db.add(content)
	db.flush()
	record_activity(db, username, "content_generated", metadata={"content_id": content.id})
	db.refresh(content)
	return content


def content_exercises(content: Content) -> List[Exercise]:
	out: List[Exercise] = []
	for item in content.exercises or []:
		if isinstance(item, dict):
			out.append(Exercise(**item))
	return out


def _load_content(db: Session, content_id: Any) -> Content:
	try:
		key = int(content_id)
	except (TypeError, ValueError):
		raise NotFound("Content not found")
	content = db.get(Content, key)
	if content is None:
		raise NotFound("Content not found")
	return content


def load_owned_content(db: Session, user: User, content_id: Any) -> Content:
	content = _load_content(db, content_id)
	if content.username != user.username and not user.is_admin:
		raise Unauthorized("Not authorized")
	return content


def list_history(db: Session, username: str) -> List[Content]:
	return (
		db.query(Content)
		.filter(Content.username == username)
		.order_by(Content.created_at.desc(), Content.id.desc())
		.all()
	)


def rate_content(db: Session, user: User, content_id: Any, rating: Any) -> Content:
	if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
		raise ValidationError("rating must be an integer from 1 to 5")
	content = _load_content(db, content_id)
	# Only the owner may rate, admins included
	if content.username != user.username:
		raise Unauthorized("Not authorized")
	content.rating = rating
	db.commit()
	db.refresh(content)
	return content


def content_to_dict(content: Content) -> dict:
	return {
		"id": content.id,
		"topic": content.topic,
		"level": content.level,
		"type": content.type,
		"language": content.language,
		"difficulty": content.difficulty,
		"title": content.title,
		"body": content.body,
		"exercises": list(content.exercises or []),
		"rating": content.rating,
		"created_at": content.created_at.isoformat() if content.created_at else None,
	}
