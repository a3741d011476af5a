"""
app/schemas package marker.
"""

from app.schemas.analysis import AnalyzeRequestBody, HealthResponse

__all__ = [
    "AnalyzeRequestBody",
    "HealthResponse",
]
