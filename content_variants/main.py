"""Main FastAPI application.

This is where the app gets created and routers get plugged in.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from content_variants.config import settings
from content_variants.database import init_db
from content_variants.routers import contents, variants, users
from content_variants.utils.cache import CacheService

logger = logging.getLogger(__name__)

# Create FastAPI app (this is the main thing)
app = FastAPI(
    title="Content Variant API",
    description="API for contents whose variants are assigned to users once and kept",
    version="1.0.0"
)

# One cache per process, handed to requests through dependencies.get_cache
app.state.cache = CacheService()

# CORS middleware - useful for development
# TODO: lock down origins for production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify actual origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers (aka endpoints)
app.include_router(contents.router)
app.include_router(variants.router)
app.include_router(users.router)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


@app.on_event("startup")
async def startup_event():
    """Configure logging and initialize database on startup (create tables etc)."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    init_db()
    logger.info("Database initialized")


@app.get("/")
def root():
    """Just a basic root endpoint."""
    return {"status": "ok", "message": "Content Variant API is running"}


@app.get("/health")
def health():
    """Health check endpoint"""
    return {"status": "healthy"}
