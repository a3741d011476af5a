"""
app/services package marker.
"""

from app.services.analysis_service import (
    AnalysisOutcome,
    AnalysisRun,
    AnalysisService,
    build_analysis_service,
)

__all__ = [
    "AnalysisOutcome",
    "AnalysisRun",
    "AnalysisService",
    "build_analysis_service",
]
