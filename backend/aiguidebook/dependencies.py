"""
AI Guidebook - Request Dependencies

Application-owned objects handed to routes through FastAPI's Depends.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .database import get_db
from .guidance import GuidanceConfig
from .services.declarations import DeclarationService
from .services.integrity import IntegrityRegistry


def get_registry(request: Request) -> IntegrityRegistry:
    return request.app.state.integrity_registry


def get_guidance(request: Request) -> GuidanceConfig:
    return request.app.state.guidance


def get_declaration_service(
    db: Session = Depends(get_db),
    registry: IntegrityRegistry = Depends(get_registry),
) -> DeclarationService:
    return DeclarationService(db, registry)
