from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("GEMINI_API_KEY", "test-key")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from linguaforge import models  # noqa: E402,F401
from linguaforge.db import Base  # noqa: E402
from linguaforge.errors import GenerationError  # noqa: E402
from linguaforge.models import AuthUser  # noqa: E402


class FakeLLM:
    """Stand-in for GeminiClient returning canned text."""

    def __init__(self, text: str = "", error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def complete(self, system_prompt: str, user_prompt: str, **kwargs: Any) -> str:
        self.calls.append({"system": system_prompt, "user": user_prompt, **kwargs})
        if self.error is not None:
            raise self.error
        return self.text

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make(username: str = "alice", role: str = "student", **fields: Any) -> AuthUser:
        row = AuthUser(username=username, password_hash="not-a-hash", role=role, **fields)
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def failing_llm() -> FakeLLM:
    return FakeLLM(error=GenerationError("quota exceeded"))


@pytest.fixture
def make_llm():
    return FakeLLM


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions over a file database, so two sessions hold separate connections."""
    eng = create_engine(f"sqlite:///{tmp_path / 'linguaforge.db'}", future=True)
    Base.metadata.create_all(bind=eng)
    factory = sessionmaker(bind=eng, autocommit=False, autoflush=False, future=True)
    setup = factory()
    setup.add(AuthUser(username="alice", password_hash="not-a-hash"))
    setup.commit()
    setup.close()
    try:
        yield factory
    finally:
        eng.dispose()
