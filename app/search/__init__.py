"""
app/search package marker.
"""

from app.search.serpapi import SerpApiSearchProvider

__all__ = ["SerpApiSearchProvider"]
