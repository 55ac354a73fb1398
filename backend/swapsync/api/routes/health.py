"""Health & Readiness Probes — liveness, readiness and invariant audit endpoints.

Invariants:
    - GET /health/ always returns 200 if process is up (liveness)
    - GET /health/ready returns 503 if database is unreachable (readiness)
    - GET /health/invariants is read-only: audit, never repair

Design Decisions:
    - Separate liveness/readiness: liveness restarts, readiness removes from
      load balancer
    - Invariant audit returns 200 with consistent=false rather than 5xx: a
      violation is data to act on, not an outage
"""

import logging
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from swapsync.api.dependencies import get_reconciler
from swapsync.services.reconciliation import Reconciler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    """Basic liveness probe. Returns 200 if the process is up."""
    return {
        "status": "healthy",
        "service": "swapsync-api",
        "version": "1.0.0",
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe, including database connectivity."""
    db_manager = getattr(request.app.state, "db_manager", None)
    db_ok = await db_manager.health_check() if db_manager else False
    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "reason": "database_unavailable",
            },
        )
    return {"status": "ready", "checks": {"database": "healthy"}}


@router.get("/invariants")
async def invariant_audit(reconciler: Reconciler = Depends(get_reconciler)):
    """Report events stuck in SWAP_PENDING and orphaned pending requests."""
    report = await reconciler.audit()
    return report.to_dict()
