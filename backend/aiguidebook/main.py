"""
AI Guidebook - FastAPI Application

Main entry point for the AI Guidebook declaration backend.

Architecture:
- InteractionLog -> Resolution Gate -> Draft Declaration
- Declaration mutations -> EventChannel -> IntegrityMonitor (advisory warnings)
- Lifecycle points -> VersionHistoryService (append-only snapshots)
"""
import logging
from datetime import datetime
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import init_db
from .dependencies import get_guidance
from .guidance import GuidanceConfig
from .routers import (
    assignments_router, declarations_router, interactions_router, manual_entries_router,
    validate_router, version_history_router,
)
from .services.integrity import IntegrityRegistry

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and the application-owned integrity/guidance objects."""
    init_db()
    app.state.integrity_registry = IntegrityRegistry()
    app.state.guidance = GuidanceConfig()
    logger.info("AI Guidebook backend started")
    yield
    app.state.integrity_registry.close_all()

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="AI Guidebook",
    description="""
    AI Guidebook - AI Usage Declaration System

    Students assemble, edit and submit a declaration of AI-tool usage for an
    assignment, pre-populated from logged interactions.

    ## Flow
    1. **Resolution Gate**: ambiguous interactions must be assigned by the student
    2. **Draft Generation**: one entry per interaction logged in the assignment period
    3. **Editing**: provenance is tracked per entry (auto-generated / modified / manual)
    4. **Integrity Monitor**: coverage, tool mentions, scope reduction, deletions
    5. **Review & Submit**: reflection gate, acknowledgment of active warnings

    ## Key Principles
    - Integrity warnings are advisory and never block a change
    - Version snapshots are append-only
    - Draft text is templated from log fields (no LLMs)
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(assignments_router, prefix="/api")
app.include_router(interactions_router, prefix="/api")
app.include_router(declarations_router, prefix="/api")
app.include_router(manual_entries_router, prefix="/api")
app.include_router(version_history_router, prefix="/api")
app.include_router(validate_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "AI Guidebook",
        "version": "1.0.0",
        "description": "AI Usage Declaration System",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "timestamp": datetime.utcnow().isoformat()}


@app.get("/api/guidance")
async def guidance(config: GuidanceConfig = Depends(get_guidance)):
    """Institution guidance content (tooltips, hints, help sections)."""
    return config.content()


@app.get("/api/guidance/tooltips/{key}")
async def guidance_tooltip(key: str, config: GuidanceConfig = Depends(get_guidance)):
    """Single tooltip; empty text when the institution has not configured it."""
    return {"key": key, "text": config.tooltip(key)}


@app.get("/api/guidance/hints/{key}")
async def guidance_hint(key: str, config: GuidanceConfig = Depends(get_guidance)):
    return {"key": key, "text": config.hint(key)}


# For running with: python -m aiguidebook.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
