"""Main FastAPI application."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from learnhub import __version__
from learnhub.database import init_db
from learnhub.logging_setup import setup_console_logging
from learnhub.routes import attempts, auth, courses
from learnhub.services.scheduler_service import schedule_expiry_sweep

setup_console_logging()

app = FastAPI(title="Learnhub API", version=__version__)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Startup events
@app.on_event("startup")
def startup_events() -> None:
    """Initialize database and start the expired-attempt sweep."""
    init_db()
    schedule_expiry_sweep()


@app.get("/")
def index() -> dict[str, str]:
    """Service banner."""
    return {"name": "learnhub", "version": __version__}


# Include routers
app.include_router(auth.router)
app.include_router(courses.router)
app.include_router(attempts.router)
