"""Structured data (schema.org) validation."""

import logging
from typing import Any

from pydantic import Field

from analyzers.base import (
    AnalysisContext,
    AnalysisReport,
    BaseAnalyzer,
    CamelModel,
    ToolDetails,
    issue,
)

logger = logging.getLogger(__name__)

# Properties Google requires for rich results, keyed by lowercased @type
REQUIRED_FIELDS: dict[str, list[str]] = {
    "organization": ["name", "url"],
    "localbusiness": ["name", "address"],
    "softwareapplication": ["name", "applicationCategory"],
    "webapplication": ["name", "applicationCategory"],
    "article": ["headline", "author", "datePublished"],
    "blogposting": ["headline", "author", "datePublished"],
    "newsarticle": ["headline", "datePublished"],
    "product": ["name", "offers"],
    "offer": ["price", "priceCurrency"],
    "service": ["name"],
    "faqpage": ["mainEntity"],
    "question": ["name", "acceptedAnswer"],
    "breadcrumblist": ["itemListElement"],
    "listitem": ["position"],
    "website": ["name", "url"],
    "webpage": ["name"],
    "person": ["name"],
    "event": ["name", "startDate", "location"],
    "recipe": ["name", "image"],
    "review": ["itemReviewed", "author"],
    "aggregaterating": ["ratingValue"],
    "videoobject": ["name", "thumbnailUrl", "uploadDate"],
}

DEPRECATED_TYPES = {
    "howto",
    "specialannouncement",
    "courseinfo",
    "estimatedsalary",
    "learningvideo",
    "claimreview",
    "vehiclelisting",
    "practiceproblem",
}

SCHEMA_ORG_CONTEXTS = {"https://schema.org", "http://schema.org"}

INVALID_BLOCK_PENALTY = 25
MISSING_FIELD_PENALTY = 10
BAD_CONTEXT_PENALTY = 5
DEPRECATED_PENALTY = 5
NO_DATA_SCORE = 30
MICRODATA_ONLY_SCORE = 60
# Nodes nested deeper than this are not inspected
MAX_NODE_DEPTH = 32


class StructuredDataSummary(CamelModel):
    found: bool = False
    types: list[str] = []
    errors: list[str] = []
    warnings: list[str] = []


class SchemaTypeResult(CamelModel):
    type: str
    count: int = 1
    status: str = "valid"  # valid, warning or invalid
    issues: list[str] = []


class SchemaValidationDetails(ToolDetails):
    structured_data: StructuredDataSummary = Field(default_factory=StructuredDataSummary)
    schema_types: list[SchemaTypeResult] = []
    json_ld_blocks: int = 0
    microdata_types: list[str] = []


def normalize_type(value: Any) -> str:
    """Bare type name from "Article", "schema:Article" or "https://schema.org/Article"."""
    cleaned = str(value or "").strip().rstrip("/")
    for separator in ("#", "/", ":"):
        if separator in cleaned:
            cleaned = cleaned.rsplit(separator, 1)[-1]
    return cleaned


def type_list(raw_type: Any) -> list[str]:
    values = raw_type if isinstance(raw_type, list) else [raw_type]
    return [name for name in (normalize_type(value) for value in values) if name]


def context_valid(context: Any, depth: int = 0) -> bool:
    if depth > MAX_NODE_DEPTH:
        return False
    if isinstance(context, list):
        return any(context_valid(item, depth + 1) for item in context)
    if isinstance(context, dict):
        return context_valid(context.get("@vocab"), depth + 1)
    if isinstance(context, str):
        return context.strip().rstrip("/").lower() in SCHEMA_ORG_CONTEXTS
    return False


def iter_schema_nodes(value: Any, inherited_context: Any = None, depth: int = 0):
    """Yield (node, effective @context) for every typed node, including @graph members."""
    if depth > MAX_NODE_DEPTH:
        return
    if isinstance(value, dict):
        context = value.get("@context", inherited_context)
        if "@type" in value:
            yield value, context
        for key, child in value.items():
            if key != "@context":
                yield from iter_schema_nodes(child, context, depth + 1)
    elif isinstance(value, list):
        for child in value:
            yield from iter_schema_nodes(child, inherited_context, depth + 1)


def get_field(node: dict, key: str) -> Any:
    if key in node:
        return node[key]
    for name, value in node.items():
        if name.lower() == key.lower():
            return value
    return None


def validate_node(node: dict, context: Any) -> list[tuple[str, str, list[str]]]:
    """
    Validate one typed node.

    Returns one (type, status, issues) tuple per declared @type.
    """
    results = []
    for schema_type in type_list(node.get("@type")):
        key = schema_type.lower()
        node_issues = []
        status = "valid"

        if not context_valid(context):
            node_issues.append("@context should be https://schema.org")
            status = "warning"
        if key in DEPRECATED_TYPES:
            node_issues.append(f"{schema_type} no longer produces rich results")
            status = "warning"

        for field_name in REQUIRED_FIELDS.get(key, []):
            if get_field(node, field_name) in (None, "", [], {}):
                node_issues.append(f"Missing required property: {field_name}")
                status = "invalid"

        results.append((schema_type, status, node_issues))
    return results


_STATUS_RANK = {"valid": 0, "warning": 1, "invalid": 2}


class SchemaAnalyzer(BaseAnalyzer):
    """
    Validates JSON-LD structured data against per-type required properties.

    Microdata is detected and listed but not validated.
    """

    tool_id = "schema-validator"
    details_model = SchemaValidationDetails

    @property
    def name(self) -> str:
        return "Schema Validator"

    async def analyze(self, ctx: AnalysisContext) -> AnalysisReport:
        document = ctx.document
        issues = []
        recommendations = []
        summary = StructuredDataSummary()
        by_type: dict[str, SchemaTypeResult] = {}
        score = 100

        for index, block in enumerate(document.json_ld, start=1):
            if block.error is not None:
                message = f"JSON-LD block {index} is not valid JSON: {block.error}"
                summary.errors.append(message)
                issues.append(issue("error", "invalid_json_ld", message))
                score -= INVALID_BLOCK_PENALTY
                continue

            nodes = list(iter_schema_nodes(block.data))
            if not nodes:
                message = f"JSON-LD block {index} has no @type"
                summary.warnings.append(message)
                issues.append(issue("warning", "json_ld_untyped", message, "low"))
                continue

            for node, context in nodes:
                for schema_type, status, node_issues in validate_node(node, context):
                    score -= self._record(by_type, schema_type, status, node_issues, summary, issues)

        schema_types = list(by_type.values())
        summary.types = [result.type for result in schema_types]
        summary.found = bool(schema_types or document.microdata_types)

        if document.microdata_types:
            issues.append(
                issue(
                    "info",
                    "microdata_unvalidated",
                    f"Microdata found ({', '.join(document.microdata_types)}) but not validated",
                )
            )
            recommendations.append("Consider migrating microdata to JSON-LD, Google's preferred format")

        if not schema_types:
            if document.microdata_types:
                score = min(score, MICRODATA_ONLY_SCORE)
            else:
                score = min(score, NO_DATA_SCORE)
                summary.warnings.append("No structured data found")
                issues.append(issue("warning", "structured_data_missing", "No structured data found"))
                recommendations.append("Add structured data to improve search result appearance")
                recommendations.append("Consider adding Organization, WebSite and BreadcrumbList schemas")

        if any(result.status == "invalid" for result in schema_types):
            recommendations.append("Add the missing required properties so the markup qualifies for rich results")
        if summary.errors:
            recommendations.append("Fix JSON syntax errors in ld+json script blocks")
        if schema_types or summary.errors:
            recommendations.append("Validate your structured data with Google's Rich Results Test")

        logger.debug(f"Schema validation for {ctx.final_url}: {summary.types} score {score}")

        return self.build_report(
            ctx,
            score=score,
            issues=issues,
            recommendations=recommendations,
            structured_data=summary,
            schema_types=schema_types,
            json_ld_blocks=len(document.json_ld),
            microdata_types=document.microdata_types,
        )

    def _record(
        self,
        by_type: dict[str, SchemaTypeResult],
        schema_type: str,
        status: str,
        node_issues: list[str],
        summary: StructuredDataSummary,
        issues: list,
    ) -> int:
        """Merge one node result into the per-type table. Returns the score deduction."""
        result = by_type.get(schema_type)
        if result is None:
            result = by_type[schema_type] = SchemaTypeResult(type=schema_type, count=0)
        result.count += 1
        if _STATUS_RANK[status] > _STATUS_RANK[result.status]:
            result.status = status

        deduction = 0
        for text in node_issues:
            if text not in result.issues:
                result.issues.append(text)
            message = f"{schema_type}: {text}"
            if text.startswith("Missing required property"):
                summary.errors.append(message)
                issues.append(issue("error", "schema_missing_required", message, "medium"))
                deduction += MISSING_FIELD_PENALTY
            elif text.startswith("@context"):
                summary.warnings.append(message)
                issues.append(issue("warning", "schema_invalid_context", message, "low"))
                deduction += BAD_CONTEXT_PENALTY
            else:
                summary.warnings.append(message)
                issues.append(issue("warning", "schema_deprecated_type", message, "low"))
                deduction += DEPRECATED_PENALTY
        return deduction
