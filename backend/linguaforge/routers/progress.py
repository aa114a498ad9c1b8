from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Any
from sqlalchemy.orm import Session

from ..db import get_db
from ..progress import progress_history, progress_summary, record_activity, set_weekly_goal, state_from_user
from ..schemas import User
from .auth import get_current_user

router = APIRouter(prefix="/progress", tags=["progress"])


class WeeklyGoalRequest(BaseModel):
	target: Any = None


class ExerciseRequest(BaseModel):
	count: Any = None


@router.get("/summary")
async def summary(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return progress_summary(db, user.username)


@router.get("/history")
async def history(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return [
		{
			"id": r.id,
			"activity_type": r.activity_type,
			"points_awarded": r.points_awarded,
			"metadata": r.meta or {},
			"created_at": r.created_at.isoformat(),
		}
		for r in progress_history(db, user.username)
	]


@router.put("/weekly-goal")
async def weekly_goal(req: WeeklyGoalRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return set_weekly_goal(db, user.username, req.target).model_dump()


@router.post("/exercise")
async def record_exercise(req: ExerciseRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	# Manual completion; anything that is not a positive number counts as one
	try:
		increment = int(req.count) if req.count is not None else 1
	except (TypeError, ValueError):
		increment = 1
	if increment < 1:
		increment = 1
	row, _ = record_activity(db, user.username, "exercise_completed", count=increment)
	state = state_from_user(row)
	return {
		"gamification": state.gamification.model_dump(),
		"weekly_goal": state.weekly_goal.model_dump(),
		"stats": state.stats.model_dump(),
	}
