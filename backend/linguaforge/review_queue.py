from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db import utcnow
from .models import ReviewItem

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}


def record_miss(
	db: Session,
	username: str,
	word: str,
	context: str,
	source_content_id: Optional[int],
	*,
	now: Optional[datetime] = None,
) -> bool:
	"""Count one miss of ``word`` for ``username``.

	The first miss creates the review item; later misses bump ``times_missed``
	in the database and refresh context, source and ``last_missed_at``.
	Returns False when there is no word to track. Does not commit.
	"""
	word = (word or "").strip()
	if not word:
		return False
	now = now or utcnow()
	context = context or ""
	dialect = db.get_bind().dialect.name
	insert_fn = _UPSERT_DIALECTS.get(dialect)
	if insert_fn is not None:
		stmt = insert_fn(ReviewItem).values(
			username=username,
			word=word,
			context=context,
			source_content_id=source_content_id,
			times_missed=1,
			last_missed_at=now,
			created_at=now,
		)
		stmt = stmt.on_conflict_do_update(
			index_elements=[ReviewItem.username, ReviewItem.word],
			set_={
				"times_missed": ReviewItem.times_missed + 1,
				"context": stmt.excluded.context,
				"source_content_id": stmt.excluded.source_content_id,
				"last_missed_at": stmt.excluded.last_missed_at,
			},
		)
		db.execute(stmt)
	else:
		_increment_or_insert(db, username, word, context, source_content_id, now)
	logger.debug("Review miss recorded for %s: %r", username, word)
	return True


def _increment(db: Session, username: str, word: str, context: str, source_content_id: Optional[int], now: datetime) -> int:
	result = db.execute(
		update(ReviewItem)
		.where(ReviewItem.username == username, ReviewItem.word == word)
		.values(
			times_missed=ReviewItem.times_missed + 1,
			context=context,
			source_content_id=source_content_id,
			last_missed_at=now,
		)
		.execution_options(synchronize_session=False)
	)
	return result.rowcount or 0


def _increment_or_insert(db: Session, username: str, word: str, context: str, source_content_id: Optional[int], now: datetime) -> None:
	if _increment(db, username, word, context, source_content_id, now):
		return
	try:
		with db.begin_nested():
			db.add(
				ReviewItem(
					username=username,
					word=word,
					context=context,
					source_content_id=source_content_id,
					times_missed=1,
					last_missed_at=now,
					created_at=now,
				)
			)
	except IntegrityError:
		# Another request inserted the row between our update and insert
		_increment(db, username, word, context, source_content_id, now)


def list_review_items(db: Session, username: str) -> List[ReviewItem]:
	return (
		db.query(ReviewItem)
		.filter(ReviewItem.username == username)
		.order_by(ReviewItem.last_missed_at.desc(), ReviewItem.id.desc())
		.all()
	)
