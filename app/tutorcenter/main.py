# app/tutorcenter/main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from fastapi.middleware.cors import CORSMiddleware

from .config.config import settings
from .logging.logging_config import setup_logging
from .api import auth, tutor, admin, portal
from .db.memory_store import MemoryStore
from .db.seed import seed_demo_data
from .tasks.cron import mark_overdue_fees_task
from .api.utilities.limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Builds the store and background jobs on startup and stops them on shutdown.
    """
    setup_logging()
    app.state.limiter = limiter

    logger.info("Application starting...")

    store = MemoryStore()
    if settings.SEED_DEMO_DATA:
        await seed_demo_data(store)
    app.state.store = store

    scheduler = Scheduler()
    scheduler.add_job(
        mark_overdue_fees_task, "interval",
        minutes=settings.FEE_SWEEP_INTERVAL_MINUTES, args=[store], id="mark_overdue_fees"
    )
    scheduler.start()
    app.state.scheduler = scheduler
    logger.info("Scheduled jobs started.")

    yield

    logger.info("Application shutting down...")
    if getattr(app.state, "scheduler", None):
        app.state.scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped.")


app = FastAPI(
    title="TutorCenter API",
    description="Students, classes, attendance, fees and homework for a tutoring centre.",
    version="1.0.0",
    lifespan=lifespan
)

origins = [
   "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(tutor.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(portal.router, prefix="/api/v1")

@app.get("/health", tags=["System"])
def health_check():
    """Liveness probe."""
    return {"status": "ok", "message": "TutorCenter API is running."}
