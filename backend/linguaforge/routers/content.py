from __future__ import annotations
from typing import Any, AsyncIterator, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..content import content_to_dict, generate_content, list_history, load_owned_content, rate_content
from ..db import get_db
from ..gemini_client import GeminiClient
from ..schemas import GenerationRequest, User
from ..settings import settings
from ..translation import translate
from .auth import get_current_user


router = APIRouter(prefix="/content", tags=["content"])


async def get_llm_client() -> AsyncIterator[GeminiClient]:
    client = GeminiClient()
    try:
        yield client
    finally:
        await client.aclose()


async def get_translation_client() -> AsyncIterator[GeminiClient]:
    client = GeminiClient(model=settings.gemini_model_translate)
    try:
        yield client
    finally:
        await client.aclose()


class GenerateRequest(BaseModel):
    topic: str
    level: str = Field(default="A1", description="CEFR level A1–C2")
    type: str = Field(default="Article", description="Article, Story, Dialogue or Exercise")
    language: str = "English"
    difficulty: Optional[str] = None
    # Either a list or a comma-separated string
    keywords: Any = None
    interests: Any = None


class RateRequest(BaseModel):
    rating: Any = None


class TranslateRequest(BaseModel):
    text: str = ""
    target_language: str = "Turkish"


@router.post("/generate")
async def generate(
    req: GenerateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    client: GeminiClient = Depends(get_llm_client),
):
    request = GenerationRequest(**req.model_dump())
    content = await generate_content(db, client, user.username, request)
    return content_to_dict(content)


@router.get("/history")
async def history(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> List[dict]:
    return [content_to_dict(c) for c in list_history(db, user.username)]


@router.post("/translate")
async def translate_text(
    req: TranslateRequest,
    user: User = Depends(get_current_user),
    client: GeminiClient = Depends(get_translation_client),
):
    translated = await translate(client, req.text, req.target_language)
    return {"translated_text": translated, "target_language": req.target_language}


@router.get("/{content_id}")
async def read_content(content_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return content_to_dict(load_owned_content(db, user, content_id))


@router.put("/{content_id}/rate")
async def rate(content_id: int, req: RateRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return content_to_dict(rate_content(db, user, content_id, req.rating))
