"""Health check endpoints for load balancers and monitoring."""

import os
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight liveness check (touches nothing on disk)."""
    return {
        "status": "ok",
        "service": "chiptrack",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": os.getenv("ENVIRONMENT", "development"),
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Ready only if the ledger workbook can be written."""
    ledger = request.app.state.ledger
    if ledger.path.exists():
        writable = os.access(ledger.path, os.W_OK)
    else:
        # Missing directories are created on first save.
        existing = next(p for p in [ledger.path.parent, *ledger.path.parent.parents] if p.exists())
        writable = os.access(existing, os.W_OK)
    checks = {
        "service": "ok",
        "ledger": "ok" if writable else f"error: {ledger.path} is not writable",
    }

    return JSONResponse(
        status_code=200 if writable else 503,
        content={
            "status": "healthy" if writable else "unhealthy",
            "service": "chiptrack",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
