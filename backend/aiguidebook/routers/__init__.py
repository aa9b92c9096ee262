"""AI Guidebook - API Routers"""
from .assignments import router as assignments_router
from .interactions import router as interactions_router
from .declarations import router as declarations_router
from .manual_entries import router as manual_entries_router
from .version_history import router as version_history_router
from .validate import router as validate_router

__all__ = [
    "assignments_router",
    "interactions_router",
    "declarations_router",
    "manual_entries_router",
    "version_history_router",
    "validate_router",
]
