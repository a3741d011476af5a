"""
app/validators/schema_health.py

Health scoring and cross-page comparison of structured data.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from app.domain.pages import PageFeatureSet
from app.validators.structured_data import SchemaValidationSummary, validate_structured_data

HEALTHY_THRESHOLD = 80
WARNING_THRESHOLD = 50


@dataclass(frozen=True)
class SchemaHealthCheck:
    """
    Bucketed 0-100 health score with issues and recommendations.
    """

    status: str
    score: int
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "score": self.score,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class SchemaComparison:
    """
    Structured data implementation compared across several pages.
    """

    average_schema_count: float = 0.0
    average_valid_schemas: float = 0.0
    average_error_count: float = 0.0
    common_schema_types: list[str] = field(default_factory=list)
    best_implementation: str = ""
    worst_implementation: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "averageSchemaCount": self.average_schema_count,
            "averageValidSchemas": self.average_valid_schemas,
            "averageErrorCount": self.average_error_count,
            "commonSchemaTypes": list(self.common_schema_types),
            "bestImplementation": self.best_implementation,
            "worstImplementation": self.worst_implementation,
        }


def check_schema_health(validation: SchemaValidationSummary) -> SchemaHealthCheck:
    """
    Score a page's structured data.

    Penalties: 50 when none is present, 30 x the invalid ratio, 20 when any
    error exists, and 2 per warning capped at 10.
    """

    issues: list[str] = []
    recommendations: list[str] = []
    score = 100.0

    if validation.total_schemas == 0:
        issues.append("No structured data found on page")
        recommendations.append("Add JSON-LD schema markup to improve SEO")
        score -= 50

    if validation.invalid_schemas > 0:
        issues.append(f"{validation.invalid_schemas} schema(s) failed validation")
        recommendations.append("Fix schema validation errors to ensure proper indexing")
        score -= 30 * (validation.invalid_schemas / validation.total_schemas)

    if validation.total_errors > 0:
        issues.append(f"{validation.total_errors} critical error(s) found in schema markup")
        recommendations.append(
            "Address all schema errors - they prevent proper interpretation by search engines"
        )
        score -= 20

    if validation.total_warnings > 0:
        issues.append(f"{validation.total_warnings} warning(s) in schema implementation")
        recommendations.append("Review warnings to improve schema quality")
        score -= min(10, validation.total_warnings * 2)

    types = set(validation.schema_types)
    if not types & {"Article", "BlogPosting", "NewsArticle"} and validation.total_schemas > 0:
        recommendations.append("Consider adding Article schema for better content representation")
    if "Organization" not in types:
        recommendations.append("Add Organization schema to establish site identity")
    if "BreadcrumbList" not in types:
        recommendations.append("Add BreadcrumbList schema to improve navigation in search results")

    if score >= HEALTHY_THRESHOLD:
        status = "healthy"
    elif score >= WARNING_THRESHOLD:
        status = "warning"
    else:
        status = "critical"

    return SchemaHealthCheck(
        status=status,
        score=max(0, int(round(score))),
        issues=issues,
        recommendations=recommendations,
    )


def compare_schema_implementations(
    pages: Sequence[tuple[str, SchemaValidationSummary]],
) -> SchemaComparison:
    """
    Compare structured data across `(url, summary)` pairs.

    Common types are those present on at least half of the pages.
    """

    if not pages:
        return SchemaComparison()

    count = len(pages)
    type_counts: Counter[str] = Counter()
    for _, summary in pages:
        type_counts.update(set(summary.schema_types))

    scored = sorted(
        ((url, check_schema_health(summary).score) for url, summary in pages),
        key=lambda item: item[1],
        reverse=True,
    )

    return SchemaComparison(
        average_schema_count=sum(summary.total_schemas for _, summary in pages) / count,
        average_valid_schemas=sum(summary.valid_schemas for _, summary in pages) / count,
        average_error_count=sum(summary.total_errors for _, summary in pages) / count,
        common_schema_types=[name for name, seen in type_counts.items() if seen >= count * 0.5],
        best_implementation=scored[0][0],
        worst_implementation=scored[-1][0],
    )


def summarize_page(page: PageFeatureSet) -> SchemaValidationSummary:
    return validate_structured_data(page.structured_data, page.structured_data_errors)


def build_schema_audit(
    target: PageFeatureSet,
    competitors: Sequence[PageFeatureSet],
) -> dict[str, Any]:
    """
    Validate target and competitor structured data for the report.

    A placeholder target is reported as unavailable rather than scored.
    """

    competitor_summaries = [(page.url, summarize_page(page)) for page in competitors]
    audit: dict[str, Any] = {
        "target": None,
        "competitors": [
            {
                "url": url,
                "summary": summary.to_dict(),
                "health": check_schema_health(summary).to_dict(),
            }
            for url, summary in competitor_summaries
        ],
        "comparison": compare_schema_implementations(competitor_summaries).to_dict(),
    }
    if not target.is_placeholder:
        target_summary = summarize_page(target)
        audit["target"] = {
            "url": target.url,
            "summary": target_summary.to_dict(),
            "health": check_schema_health(target_summary).to_dict(),
        }
    return audit


def format_health_report(health: SchemaHealthCheck) -> str:
    lines = [f"Schema Health: {health.status.upper()} (Score: {health.score}/100)", ""]
    if health.issues:
        lines.append("Issues:")
        lines.extend(f"  - {issue}" for issue in health.issues)
        lines.append("")
    if health.recommendations:
        lines.append("Recommendations:")
        lines.extend(f"  - {recommendation}" for recommendation in health.recommendations)
    return "\n".join(lines)
