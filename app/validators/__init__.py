"""
app/validators package marker.
"""

from app.validators.schema_health import (
    SchemaComparison,
    SchemaHealthCheck,
    build_schema_audit,
    check_schema_health,
    compare_schema_implementations,
)
from app.validators.structured_data import (
    SchemaIssue,
    SchemaValidationResult,
    SchemaValidationSummary,
    validate_html_structured_data,
    validate_schema,
    validate_structured_data,
)

__all__ = [
    "SchemaComparison",
    "SchemaHealthCheck",
    "SchemaIssue",
    "SchemaValidationResult",
    "SchemaValidationSummary",
    "build_schema_audit",
    "check_schema_health",
    "compare_schema_implementations",
    "validate_html_structured_data",
    "validate_schema",
    "validate_structured_data",
]
