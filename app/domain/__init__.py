"""
app/domain package marker.
"""

from app.domain.pages import PageFeatureSet, SearchResult

__all__ = [
    "PageFeatureSet",
    "SearchResult",
]
