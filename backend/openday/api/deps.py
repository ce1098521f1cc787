"""
Request-scoped access to the engine built in the application lifespan.
"""

from fastapi import HTTPException, Request, status

from openday.services.engine import ReservationEngine


def get_engine(request: Request) -> ReservationEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reservation engine not initialised",
        )
    return engine
