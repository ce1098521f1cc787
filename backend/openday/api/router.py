"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from openday.api.routes import reservations, availability, reconciliation

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(reservations.router)
api_router.include_router(availability.router)
api_router.include_router(reconciliation.router)
