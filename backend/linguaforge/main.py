import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import Base, engine, SessionLocal, ensure_schema
from .errors import LinguaError
from .settings import settings
from .routers import auth
from .routers import content
from .routers import exercises
from .routers import progress
from .routers import admin

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="LinguaForge API")
app.include_router(auth.router)
app.include_router(content.router)
app.include_router(exercises.router)
app.include_router(progress.router)
app.include_router(admin.router)


@app.exception_handler(LinguaError)
async def lingua_error_handler(request: Request, exc: LinguaError):
	if exc.status_code >= 500:
		logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
	return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/info")
def root():
	return {"status": "ok", "llm_provider": settings.gemini_provider, "llm_configured": bool(settings.gemini_api_key or settings.openrouter_api_key)}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.warning("Schema check failed", exc_info=True)
	db = SessionLocal()
	try:
		auth.ensure_seed_user(db)
	finally:
		db.close()
