"""
Operator endpoint to run counter reconciliation on demand.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from openday.api.deps import get_engine
from openday.schemas.availability import ReconciliationResponse
from openday.services.engine import ReservationEngine

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])


@router.post("/", response_model=ReconciliationResponse)
async def run_reconciliation(engine: ReservationEngine = Depends(get_engine)):
    """Recompute every participant counter from the ledger."""
    report = await engine.reconciliation.run()
    return ReconciliationResponse(
        started_at=report.started_at,
        activities_checked=report.activities_checked,
        corrections=[asdict(c) for c in report.corrections],
        alarms=[asdict(a) for a in report.alarms],
        consistent=report.consistent,
    )
