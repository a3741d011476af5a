"""
app/reporting package marker.
"""

from app.reporting.markdown import render_markdown_report

__all__ = ["render_markdown_report"]
