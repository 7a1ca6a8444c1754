import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import Base, engine, ensure_schema
from .rate_limit import SlidingWindowRateLimiter
from .settings import settings
from .routers import health
from .routers import auth
from .routers import projects
from .routers import quiz
from .routers import profile

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Project Spark API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(quiz.router)
app.include_router(profile.router)

app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origins,
	allow_credentials=True, allow_methods=["*"], allow_headers=["*"],
)

# One limiter for the whole process: the AI quota is shared across users
app.state.ai_rate_limiter = SlidingWindowRateLimiter(
	settings.ai_rate_limit_requests, settings.ai_rate_limit_window_seconds
)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.exception("schema migration failed")
