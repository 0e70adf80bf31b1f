import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.routes import architecture, auth, guides, questions, quizzes
from app.db.sessions import init_db
from app.core.config import settings
from app.core.exceptions import register_exception_handlers

logging.basicConfig(level=settings.LOG_LEVEL, force=True)
logger = logging.getLogger(__name__)

# Create tables
init_db()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Developer onboarding assistant: cached Q&A, setup guides and chat-derived quizzes",
    debug=settings.DEBUG,
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Register routers
app.include_router(auth.router)
app.include_router(questions.router)
app.include_router(guides.router)
app.include_router(quizzes.router)
app.include_router(architecture.router)


@app.on_event("startup")
async def startup_event():
    logger.info("%s v%s starting...", settings.APP_NAME, settings.APP_VERSION)
    logger.info("Database ready, generation model: %s", settings.OPENAI_MODEL)


@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
