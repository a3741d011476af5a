"""
app/reporting/markdown.py

Markdown rendering of a finished analysis report.
"""

from __future__ import annotations

from datetime import datetime

from analyzer.types import AnalysisReport
from app.validators.schema_health import SchemaHealthCheck, check_schema_health, summarize_page

EXPECTED_COMPETITORS = 5
_PRIORITY_ORDER = ("HIGH", "MEDIUM", "LOW")


def _format_date(value: str) -> str:
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return value
    return moment.strftime("%B %d, %Y %H:%M UTC")


def _bullets(items: list[str], empty: str = "- None") -> list[str]:
    if not items:
        return [empty]
    return [f"- {item}" for item in items]


def _overview(report: AnalysisReport) -> list[str]:
    analysed = len(report.competitor_analyses)
    lines = [
        f"# SEO Intent Analysis: {report.keyword}",
        "",
        "## Analysis Overview",
        "",
        f"- **Keyword:** {report.keyword}",
        f"- **Target URL:** {report.target_url}",
        f"- **Analysis Date:** {_format_date(report.analyzed_at)}",
        f"- **Model:** {report.model}",
        f"- **Competitors Analyzed:** {analysed}/{EXPECTED_COMPETITORS}",
    ]

    notes: list[str] = []
    if report.incomplete_target_data:
        notes.append(
            "> - Target page could not be scraped. Recommendations are based on competitor patterns."
        )
    if analysed < EXPECTED_COMPETITORS:
        notes.append(
            f"> - Only {analysed} of {EXPECTED_COMPETITORS} competitor pages could be analyzed. "
            "Some sites block automated access."
        )
    if notes:
        lines.extend(["", "> **Scraping Notes:**", *notes])
    return lines


def _intent(report: AnalysisReport) -> list[str]:
    intent = report.intent
    return [
        "## Search Intent Analysis",
        "",
        f"- **Primary Intent:** {intent.intent.capitalize()} ({intent.confidence:g}% confidence)",
        f"- **User Goal:** {intent.user_goal}",
        f"- **Buyer Journey Stage:** {intent.buyer_stage.capitalize()}",
        "",
        f"**Reasoning:** {intent.reasoning}",
    ]


def _top_pages(report: AnalysisReport) -> list[str]:
    lines = ["## Top Ranking Pages"]
    for item in report.competitor_analyses:
        analysis = item.analysis
        lines.extend(
            [
                "",
                f"### #{item.position}: {item.result.title or item.page.title}",
                "",
                f"- **URL:** {item.result.url}",
                f"- **Content Type:** {analysis.content_type}",
                f"- **Content Depth:** {analysis.content_depth}",
                f"- **Word Count:** {item.page.word_count}",
                f"- **Target Audience:** {analysis.target_audience or 'Not specified'}",
                "",
                "**Strengths:**",
                *_bullets([strength.description for strength in analysis.strengths]),
                "",
                "**Key Elements:**",
                *_bullets(list(analysis.key_elements)),
            ]
        )
        if analysis.notes:
            lines.extend(["", f"**Notes:** {analysis.notes}"])
    return lines


def _patterns(report: AnalysisReport) -> list[str]:
    patterns = report.patterns
    lines = [
        "## Common Patterns Across Top Rankers",
        "",
        "### Content Length",
        "",
        f"- **Average:** {patterns.content_length.average} words",
        f"- **Range:** {patterns.content_length.range or 'unknown'}",
        f"- **Recommendation:** {patterns.content_length.recommendation or 'n/a'}",
        "",
        "### Patterns Found",
    ]
    for pattern in patterns.common_patterns:
        lines.extend(
            [
                "",
                f"#### [{pattern.importance.upper()}] {pattern.pattern}",
                "",
                f"- **Frequency:** {pattern.frequency or 'n/a'}",
            ]
        )
        if pattern.examples:
            lines.append("- **Examples:**")
            lines.extend(f"  - {example}" for example in pattern.examples)

    lines.extend(["", "### Must-Have Elements", "", *_bullets(list(patterns.must_have_elements))])
    if patterns.content_structure:
        lines.extend(["", "### Content Structure", "", patterns.content_structure])
    lines.extend(["", "### Common Elements", "", *_bullets(list(patterns.common_elements))])
    return lines


def _content_origin(report: AnalysisReport) -> list[str]:
    origin = report.content_origin
    if origin is None:
        return []
    lines = [
        "## Content Origin",
        "",
        f"- **Assessment:** {origin.assessment.replace('_', ' ')}",
        f"- **AI Likelihood:** {origin.ai_likelihood}%",
        f"- **Confidence:** {origin.confidence:g}%",
    ]
    if origin.signals:
        lines.extend(["", "**Signals:**", *_bullets(list(origin.signals))])
    if origin.reasoning:
        lines.extend(["", f"**Reasoning:** {origin.reasoning}"])
    return lines


def _your_page(report: AnalysisReport) -> list[str]:
    page = report.target_page
    lines = ["## Your Page Analysis", ""]
    if report.incomplete_target_data:
        lines.extend(
            [
                "> **Warning:** Your target page could not be scraped. The analysis below is "
                "based only on competitor patterns.",
                "",
            ]
        )
    lines.extend(
        [
            "### Current State",
            "",
            f"- **Title:** {page.title}",
            f"- **Meta Description:** {page.meta_description or 'Missing'}",
            f"- **Word Count:** {page.word_count}",
            f"- **H1 Tags:** {', '.join(page.h1_tags) or 'None'}",
            f"- **Images:** {page.image_count}",
            f"- **Has Video:** {'Yes' if page.has_video else 'No'}",
            f"- **Has FAQ:** {'Yes' if page.has_faq else 'No'}",
            f"- **Has Tables:** {'Yes' if page.has_tables else 'No'}",
            f"- **Schema Types:** {', '.join(page.schema_types) or 'None'}",
        ]
    )

    if not page.is_placeholder:
        summary = summarize_page(page)
        if summary.total_schemas:
            lines.extend(
                [
                    "",
                    "#### Schema Validation",
                    "",
                    f"- **Total Schemas:** {summary.total_schemas}",
                    f"- **Valid:** {summary.valid_schemas}",
                    f"- **Invalid:** {summary.invalid_schemas}",
                    f"- **Errors:** {summary.total_errors}",
                    f"- **Warnings:** {summary.total_warnings}",
                ]
            )
            for index, result in enumerate(summary.results, start=1):
                if not result.errors and not result.warnings:
                    continue
                lines.extend(["", f"**Schema {index}: {result.schema_type}**"])
                lines.extend(f"- Error: {issue.message}" for issue in result.errors)
                lines.extend(f"- Warning: {issue.message}" for issue in result.warnings)
        lines.extend(["", *_health_lines(check_schema_health(summary))])

    lines.extend(["", "### Critical Gaps", "", *_bullets(list(report.recommendations.critical_gaps))])
    return lines


def _health_lines(health: SchemaHealthCheck) -> list[str]:
    lines = [f"**Schema Health:** {health.status.upper()} ({health.score}/100)"]
    lines.extend(f"- {issue}" for issue in health.issues)
    return lines


def _recommendations(report: AnalysisReport) -> list[str]:
    recs = report.recommendations
    ordered = sorted(
        recs.recommendations,
        key=lambda item: _PRIORITY_ORDER.index(item.priority),
    )
    lines = ["## Recommendations (Priority Order)"]
    for counter, rec in enumerate(ordered, start=1):
        lines.extend(
            [
                "",
                f"### {counter}. [{rec.priority}] {rec.title}",
                "",
                f"**Category:** {rec.category} | **Effort:** {rec.effort}",
                "",
                rec.description,
            ]
        )
        if rec.reasoning:
            lines.extend(["", f"**Why this matters:** {rec.reasoning}"])

    lines.extend(
        [
            "",
            "## Quick Wins",
            "",
            *_bullets(list(recs.quick_wins)),
            "",
            "## Content Strategy",
            "",
            recs.content_strategy or "n/a",
            "",
            "## Technical SEO",
            "",
            *_bullets(list(recs.technical_seo)),
        ]
    )
    return lines


def _diagnostics(report: AnalysisReport) -> list[str]:
    if not report.diagnostics:
        return []
    lines = [
        "## Analysis Diagnostics",
        "",
        "The following parts of the analysis are lower-confidence:",
        "",
    ]
    lines.extend(
        f"- **{item.stage}** ({item.status}): {item.reason}" for item in report.diagnostics
    )
    return lines


def render_markdown_report(report: AnalysisReport) -> str:
    """
    Render every report section, separated by blank lines.
    """

    sections = [
        _overview(report),
        _intent(report),
        _top_pages(report),
        _patterns(report),
        _content_origin(report),
        _your_page(report),
        _recommendations(report),
        _diagnostics(report),
    ]
    return "\n\n".join("\n".join(section) for section in sections if section) + "\n"
