"""
app/api/dependencies.py

Shared FastAPI dependencies resolving process-wide handles.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.services.analysis_service import AnalysisService


def get_analysis_service(request: Request) -> AnalysisService:
    """
    Return the analysis service built by the application lifespan.
    """

    service = getattr(request.app.state, "analysis_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Analysis service is not initialised.",
        )
    return service
