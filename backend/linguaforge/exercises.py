from __future__ import annotations
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .content import content_exercises, load_owned_content
from .db import utcnow
from .errors import InternalError, ValidationError
from .grading import grade, normalize_answers
from .progress import record_activity
from .review_queue import record_miss
from .schemas import User

logger = logging.getLogger(__name__)


def submit_answers(db: Session, user: User, content_id: Optional[int], answers: Any) -> Dict[str, Any]:
	if content_id is None or content_id == "":
		raise ValidationError("content_id is required")
	normalized = normalize_answers(answers)
	if not normalized:
		raise ValidationError("answers are required")

	content = load_owned_content(db, user, content_id)
	exercises = content_exercises(content)
	results, summary = grade(exercises, normalized)

	now = utcnow()
	review_added = 0
	try:
		for result in results:
			if result.correct or not result.focus_word:
				continue
			if record_miss(db, user.username, result.focus_word, result.question, content.id, now=now):
				review_added += 1
	except SQLAlchemyError as err:
		db.rollback()
		logger.error("Review queue update failed for %s: %s", user.username, err)
		raise InternalError("Failed to update review queue") from err

	if exercises:
		record_activity(
			db,
			user.username,
			"exercise_completed",
			count=len(exercises),
			metadata={"content_id": content.id},
			now=now,
		)

	summary.review_added = review_added
	return {
		"results": [r.model_dump() for r in results],
		"summary": summary.model_dump(),
	}
