from __future__ import annotations
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db import get_db
from ..exercises import submit_answers
from ..review_queue import list_review_items
from ..schemas import User
from .auth import get_current_user


router = APIRouter(prefix="/exercises", tags=["exercises"])


class SubmitRequest(BaseModel):
    content_id: Optional[int] = None
    # Either ["answer", ...] or [{"index": 0, "answer": "..."}, ...]
    answers: Optional[List[Any]] = None


@router.post("/submit")
async def submit(req: SubmitRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return submit_answers(db, user, req.content_id, req.answers)


@router.get("/review")
async def review_queue(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [
        {
            "word": item.word,
            "context": item.context,
            "source_content_id": item.source_content_id,
            "times_missed": item.times_missed,
            "last_missed_at": item.last_missed_at.isoformat() if item.last_missed_at else None,
            "created_at": item.created_at.isoformat() if item.created_at else None,
        }
        for item in list_review_items(db, user.username)
    ]
