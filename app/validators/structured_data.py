"""
app/validators/structured_data.py

Validation of schema.org JSON-LD objects against static property tables.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

UNKNOWN_TYPE = "Unknown"
PARSE_ERROR_TYPE = "ParseError"
SCHEMA_ORG_HOST = "schema.org"
ARTICLE_TYPES = frozenset({"Article", "BlogPosting", "NewsArticle"})
DATE_PREFIX_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}")

REQUIRED_PROPERTIES: dict[str, tuple[str, ...]] = {
    "Article": ("headline", "author", "datePublished"),
    "BlogPosting": ("headline", "author", "datePublished"),
    "NewsArticle": ("headline", "author", "datePublished"),
    "FAQPage": ("mainEntity",),
    "Question": ("name", "acceptedAnswer"),
    "Answer": ("text",),
    "Organization": ("name",),
    "Person": ("name",),
    "Product": ("name",),
    "Review": ("reviewRating", "author"),
    "Recipe": ("name", "recipeIngredient", "recipeInstructions"),
    "HowTo": ("name", "step"),
    "Event": ("name", "startDate", "location"),
    "LocalBusiness": ("name", "address"),
    "VideoObject": ("name", "description", "thumbnailUrl", "uploadDate"),
    "ImageObject": ("contentUrl",),
    "BreadcrumbList": ("itemListElement",),
    "WebPage": ("name",),
    "WebSite": ("name", "url"),
}

RECOMMENDED_PROPERTIES: dict[str, tuple[str, ...]] = {
    "Article": ("image", "dateModified", "description"),
    "BlogPosting": ("image", "dateModified", "description"),
    "FAQPage": (),
    "Question": (),
    "Product": ("description", "image", "offers"),
    "Organization": ("logo", "url", "sameAs"),
    "Person": ("image", "jobTitle", "url"),
    "Recipe": ("image", "totalTime", "recipeYield"),
    "LocalBusiness": ("telephone", "priceRange", "openingHoursSpecification"),
    "Event": ("description", "image", "organizer"),
}


@dataclass(frozen=True)
class SchemaIssue:
    """
    One validation error or warning.
    """

    severity: str
    message: str
    path: str | None = None
    schema_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.severity,
            "message": self.message,
            "path": self.path,
            "schemaType": self.schema_type,
        }


@dataclass(frozen=True)
class SchemaValidationResult:
    """
    Validation outcome for one JSON-LD object.
    """

    is_valid: bool
    schema_type: str
    errors: list[SchemaIssue] = field(default_factory=list)
    warnings: list[SchemaIssue] = field(default_factory=list)
    properties: list[str] = field(default_factory=list)
    context: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "schemaType": self.schema_type,
            "errors": [issue.to_dict() for issue in self.errors],
            "warnings": [issue.to_dict() for issue in self.warnings],
            "properties": list(self.properties),
            "context": self.context,
        }


@dataclass(frozen=True)
class SchemaValidationSummary:
    """
    Page-level aggregate of per-object validation results.
    """

    total_schemas: int
    valid_schemas: int
    invalid_schemas: int
    total_errors: int
    total_warnings: int
    schema_types: list[str]
    results: list[SchemaValidationResult]

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSchemas": self.total_schemas,
            "validSchemas": self.valid_schemas,
            "invalidSchemas": self.invalid_schemas,
            "totalErrors": self.total_errors,
            "totalWarnings": self.total_warnings,
            "schemaTypes": list(self.schema_types),
            "results": [result.to_dict() for result in self.results],
        }


# ---------------------------------------------------------------------------
# JSON-LD discovery
# ---------------------------------------------------------------------------


def parse_json_ld_scripts(soup: BeautifulSoup) -> tuple[list[dict[str, Any]], list[str]]:
    """
    Parse every `application/ld+json` script in document order.

    Returns the parsed objects (top-level arrays expanded) and one message
    per block that is not valid JSON.
    """

    objects: list[dict[str, Any]] = []
    errors: list[str] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = (script.string or script.get_text() or "").strip()
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            errors.append(f"Failed to parse JSON-LD: {exc.msg} (line {exc.lineno} column {exc.colno})")
            continue

        items = payload if isinstance(payload, list) else [payload]
        for item in items:
            if isinstance(item, dict):
                objects.append(item)
            else:
                errors.append("Failed to parse JSON-LD: expected an object")
    return objects, errors


def flatten_json_ld(objects: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Expand `@graph` containers into their member objects.

    Members without their own `@context` inherit the container's.
    """

    flattened: list[dict[str, Any]] = []
    for obj in objects:
        graph = obj.get("@graph")
        if isinstance(graph, list):
            context = obj.get("@context")
            for member in graph:
                if not isinstance(member, dict):
                    continue
                if context is not None and "@context" not in member:
                    member = {"@context": context, **member}
                flattened.append(member)
        else:
            flattened.append(obj)
    return flattened


def schema_type_names(obj: dict[str, Any]) -> list[str]:
    raw_type = obj.get("@type")
    if isinstance(raw_type, str):
        return [raw_type] if raw_type else []
    if isinstance(raw_type, list):
        return [item for item in raw_type if isinstance(item, str) and item]
    return []


def _primary_type(obj: dict[str, Any]) -> str | None:
    names = schema_type_names(obj)
    return names[0] if names else None


def _references_schema_org(context: Any) -> bool:
    if isinstance(context, str):
        return SCHEMA_ORG_HOST in context
    if isinstance(context, list):
        return any(_references_schema_org(item) for item in context)
    if isinstance(context, dict):
        return _references_schema_org(context.get("@vocab"))
    return False


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _validate_faq_entries(
    schema_data: dict[str, Any],
    *,
    index: int,
    schema_type: str,
    errors: list[SchemaIssue],
) -> None:
    main_entity = schema_data.get("mainEntity")
    if not main_entity:
        return
    questions = main_entity if isinstance(main_entity, list) else [main_entity]

    for q_index, question in enumerate(questions):
        entry_path = f"schema[{index}].mainEntity[{q_index}]"
        question = question if isinstance(question, dict) else {}
        if _primary_type(question) != "Question":
            errors.append(
                SchemaIssue(
                    severity="error",
                    message=f"FAQPage mainEntity[{q_index}] must be of type Question",
                    path=entry_path,
                    schema_type=schema_type,
                )
            )

        answer = question.get("acceptedAnswer")
        if not answer:
            errors.append(
                SchemaIssue(
                    severity="error",
                    message=f"Question[{q_index}] missing acceptedAnswer",
                    path=f"{entry_path}.acceptedAnswer",
                    schema_type=schema_type,
                )
            )
        elif not isinstance(answer, dict) or _primary_type(answer) != "Answer":
            errors.append(
                SchemaIssue(
                    severity="error",
                    message=f"Question[{q_index}] acceptedAnswer must be of type Answer",
                    path=f"{entry_path}.acceptedAnswer",
                    schema_type=schema_type,
                )
            )


def _check_article_content(
    schema_data: dict[str, Any],
    *,
    index: int,
    schema_type: str,
    warnings: list[SchemaIssue],
) -> None:
    author = schema_data.get("author")
    if author and isinstance(author, str):
        warnings.append(
            SchemaIssue(
                severity="warning",
                message="Author should be a Person or Organization object, not a string",
                path=f"schema[{index}].author",
                schema_type=schema_type,
            )
        )

    published = schema_data.get("datePublished")
    if published and not DATE_PREFIX_REGEX.match(str(published)):
        warnings.append(
            SchemaIssue(
                severity="warning",
                message="datePublished should be in ISO 8601 format (YYYY-MM-DD)",
                path=f"schema[{index}].datePublished",
                schema_type=schema_type,
            )
        )


def validate_schema(schema_data: dict[str, Any], index: int = 0) -> SchemaValidationResult:
    """
    Validate a single JSON-LD object.

    A missing `@type` is reported as an error and ends validation for the
    object. Empty values count as missing properties.
    """

    errors: list[SchemaIssue] = []
    warnings: list[SchemaIssue] = []
    properties = [key for key in schema_data if not str(key).startswith("@")]
    context = schema_data.get("@context")

    schema_type = _primary_type(schema_data)
    if schema_type is None:
        errors.append(
            SchemaIssue(
                severity="error",
                message="Missing required @type property",
                path=f"schema[{index}]",
            )
        )
        return SchemaValidationResult(
            is_valid=False,
            schema_type=UNKNOWN_TYPE,
            errors=errors,
            warnings=warnings,
            properties=properties,
            context=context,
        )

    if not context:
        warnings.append(
            SchemaIssue(
                severity="warning",
                message="Missing @context property (recommended: https://schema.org)",
                schema_type=schema_type,
            )
        )
    elif not _references_schema_org(context):
        warnings.append(
            SchemaIssue(
                severity="warning",
                message="Unexpected @context value, should reference schema.org",
                schema_type=schema_type,
            )
        )

    for prop in REQUIRED_PROPERTIES.get(schema_type, ()):
        if not schema_data.get(prop):
            errors.append(
                SchemaIssue(
                    severity="error",
                    message=f"Missing required property: {prop}",
                    path=f"schema[{index}].{prop}",
                    schema_type=schema_type,
                )
            )

    for prop in RECOMMENDED_PROPERTIES.get(schema_type, ()):
        if not schema_data.get(prop):
            warnings.append(
                SchemaIssue(
                    severity="warning",
                    message=f"Missing recommended property: {prop}",
                    path=f"schema[{index}].{prop}",
                    schema_type=schema_type,
                )
            )

    if schema_type == "FAQPage":
        _validate_faq_entries(schema_data, index=index, schema_type=schema_type, errors=errors)

    if schema_type in ARTICLE_TYPES:
        _check_article_content(schema_data, index=index, schema_type=schema_type, warnings=warnings)

    return SchemaValidationResult(
        is_valid=not errors,
        schema_type=schema_type,
        errors=errors,
        warnings=warnings,
        properties=properties,
        context=context,
    )


def _parse_error_result(message: str, index: int) -> SchemaValidationResult:
    return SchemaValidationResult(
        is_valid=False,
        schema_type=PARSE_ERROR_TYPE,
        errors=[SchemaIssue(severity="error", message=message, path=f"schema[{index}]")],
    )


def validate_structured_data(
    objects: Sequence[dict[str, Any]],
    parse_errors: Sequence[str] = (),
) -> SchemaValidationSummary:
    """
    Validate every object (after `@graph` expansion) and aggregate a summary.
    """

    results: list[SchemaValidationResult] = []
    for index, obj in enumerate(flatten_json_ld(objects)):
        results.append(validate_schema(obj, index))
    for message in parse_errors:
        results.append(_parse_error_result(message, len(results)))

    schema_types: list[str] = []
    for result in results:
        if result.schema_type not in schema_types:
            schema_types.append(result.schema_type)

    valid = sum(1 for result in results if result.is_valid)
    return SchemaValidationSummary(
        total_schemas=len(results),
        valid_schemas=valid,
        invalid_schemas=len(results) - valid,
        total_errors=sum(len(result.errors) for result in results),
        total_warnings=sum(len(result.warnings) for result in results),
        schema_types=schema_types,
        results=results,
    )


def validate_html_structured_data(html: str) -> SchemaValidationSummary:
    """
    Validate all JSON-LD blocks found in raw HTML.
    """

    objects, parse_errors = parse_json_ld_scripts(BeautifulSoup(html or "", "html.parser"))
    return validate_structured_data(objects, parse_errors)


def format_validation_summary(summary: SchemaValidationSummary) -> str:
    if summary.total_schemas == 0:
        return "No structured data found."

    lines = [
        f"Found {summary.total_schemas} schema(s):",
        f"- Valid: {summary.valid_schemas}",
        f"- Invalid: {summary.invalid_schemas}",
        f"- Total Errors: {summary.total_errors}",
        f"- Total Warnings: {summary.total_warnings}",
        f"- Types: {', '.join(summary.schema_types)}",
    ]
    return "\n".join(lines)
