"""FastAPI routes for operator visibility"""

import logging
from typing import Optional, TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from .. import __version__

if TYPE_CHECKING:
    from ..reporter import ErrorReporter

logger = logging.getLogger(__name__)

router = APIRouter()

# Global reporter reference (set by the host application)
reporter: Optional["ErrorReporter"] = None


def set_reporter(rep: Optional["ErrorReporter"]) -> None:
    """Set global reporter reference"""
    global reporter
    reporter = rep


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    if not reporter:
        return JSONResponse(
            status_code=503,
            content={"status": "initializing", "version": __version__}
        )

    status = reporter.get_status()

    return {
        "status": "ok" if status["running"] else "stopped",
        "version": __version__,
        **status
    }


@router.get("/failures")
async def get_recent_failures(limit: int = Query(10, ge=1, le=100)):
    """
    Get reports that could not be delivered

    Args:
        limit: Maximum number of failures to return (max 100)

    Returns:
        List of recent delivery failures
    """
    if not reporter:
        raise HTTPException(status_code=503, detail="Reporter not ready")

    failures = reporter.failure_recorder.get_recent_failures(limit=limit)

    return {
        "count": len(failures),
        "failures": failures
    }


@router.delete("/failures")
async def clear_failures():
    """Clear the delivery failure history once the failures have been handled"""
    if not reporter:
        raise HTTPException(status_code=503, detail="Reporter not ready")

    cleared = len(reporter.failure_recorder)
    reporter.failure_recorder.clear_history()

    return {"cleared": cleared}
