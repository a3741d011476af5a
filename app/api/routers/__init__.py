"""
app/api/routers package marker.
"""

from app.api.routers.analysis import router as analysis_router
from app.api.routers.health import router as health_router

__all__ = [
    "analysis_router",
    "health_router",
]
