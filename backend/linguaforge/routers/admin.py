from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import User
from ..settings_store import load_badge_rules, load_safety_settings, update_badge_rules, update_safety_settings
from .auth import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])


class AiSettingsRequest(BaseModel):
	# Either a list or a comma-separated string
	restricted_topics: Any = None
	safety_mode: str = "standard"


class GamificationSettingsRequest(BaseModel):
	points: Optional[Dict[str, Any]] = None
	badges: Optional[Dict[str, Any]] = None


@router.get("/ai-settings")
async def get_ai_settings(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	return load_safety_settings(db).model_dump()


@router.put("/ai-settings")
async def put_ai_settings(req: AiSettingsRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	return update_safety_settings(db, req.restricted_topics, req.safety_mode, updated_by=admin.username).model_dump()


@router.get("/gamification-settings")
async def get_gamification_settings(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
	return load_badge_rules(db).model_dump()


@router.put("/gamification-settings")
async def put_gamification_settings(
	req: GamificationSettingsRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
	return update_badge_rules(db, req.points, req.badges, updated_by=admin.username).model_dump()
