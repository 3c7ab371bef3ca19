"""
FastAPI application entry point.

Run with: uvicorn api.main:app --reload
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from backend/.env (optional) before other imports that read env
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(env_path)

from api.routes import sessions
from settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# Create app
app = FastAPI(
    title="Nearby Eats API",
    description="Find restaurants, cafes and fast food around a postal code or the device position",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure properly for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions.router, prefix="/sessions", tags=["sessions"])


@app.on_event("startup")
def startup_event():
    logger.info(
        "Place search via %s, country=%s, initial region=%s",
        settings.OVERPASS_URL,
        settings.GEOSEARCH_COUNTRY_CODE,
        settings.GEOSEARCH_INITIAL_REGION,
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Nearby Eats API"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
