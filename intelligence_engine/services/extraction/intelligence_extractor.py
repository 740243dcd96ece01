"""Intelligence extractor.

Turns the loosely-structured output of document analysis (key amount and
key date strings, entity lists, executive summary, key terms) into a
deduplicated list of canonical ExtractedField objects ready for
reconciliation into the knowledge store.
"""

import re
from typing import Any, Dict, List, Optional, Tuple, Union

from intelligence_engine.core.config import settings
from intelligence_engine.schemas.document_analysis import DocumentAnalysis, DocumentEntities
from intelligence_engine.services.extraction.contracts import (
    TAG_ENTITY,
    TAG_INSIGHT,
    TAG_KEY_AMOUNT,
    TAG_KEY_DATE,
    ExtractedField,
)
from intelligence_engine.services.extraction.label_canonicalization_service import (
    SCOPE_CLIENT,
    SCOPE_PROJECT,
    LabelCanonicalizationService,
)
from intelligence_engine.services.extraction.value_parsers import (
    as_number,
    parse_currency_value,
    parse_date_value,
    parse_leading_float,
    parse_percentage_value,
)
from intelligence_engine.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Labels that imply a ratio even when the value has no % sign
PERCENTAGE_LABEL_HINTS = ("ltv", "ltc", "profit", "margin", "yield", "return")

_CURRENCY_SYMBOL = re.compile(r"[£$€]")
_MAGNITUDE_SUFFIX = re.compile(r"\d.*(?:[mk]|bn)", re.IGNORECASE)

ENTITY_COMPANY_CONFIDENCE = 0.7
ENTITY_PERSON_CONFIDENCE = 0.6
ENTITY_LOCATION_CONFIDENCE = 0.6
EXECUTIVE_SUMMARY_CONFIDENCE = 0.9
KEY_TERMS_CONFIDENCE = 0.8


def split_labelled_value(raw: str) -> Optional[Tuple[str, str]]:
    """Split "<label>: <value>" at the first colon.

    Returns None when there is no colon or the colon is the first character.
    A label of only whitespace is kept and trims to "".
    """
    if not isinstance(raw, str):
        return None
    colon_index = raw.find(":")
    if colon_index <= 0:
        return None

    return raw[:colon_index].strip(), raw[colon_index + 1:].strip()


def classify_amount(label: str, raw_value: str) -> Tuple[Any, str]:
    """Pick a value type for a key amount and parse it.

    The raw string is kept with type "string" when the chosen parser fails.
    """
    lowered_label = label.lower()

    if "%" in raw_value or any(hint in lowered_label for hint in PERCENTAGE_LABEL_HINTS):
        parsed = parse_percentage_value(raw_value)
        if parsed is not None:
            return parsed, "percentage"
        return raw_value, "string"

    if _CURRENCY_SYMBOL.search(raw_value) or _MAGNITUDE_SUFFIX.search(raw_value):
        parsed = parse_currency_value(raw_value)
        if parsed is not None:
            return parsed, "currency"
        return raw_value, "string"

    number = parse_leading_float(raw_value.replace(",", ""))
    if number is not None:
        return as_number(number), "number"

    return raw_value, "string"


class IntelligenceExtractor:
    """Extracts canonical fields from a document analysis payload.

    Attributes:
        canonicalizer: LabelCanonicalizationService used for label mapping
        summary_min_length: Summaries must be longer than this to be kept
    """

    def __init__(
        self,
        canonicalizer: LabelCanonicalizationService = None,
        summary_min_length: Optional[int] = None,
    ):
        self.canonicalizer = canonicalizer or LabelCanonicalizationService()
        if summary_min_length is None:
            summary_min_length = settings.intelligence.executive_summary_min_length
        self.summary_min_length = summary_min_length

    def extract(
        self,
        document_analysis: Union[DocumentAnalysis, Dict[str, Any]],
        has_project_context: bool,
        document_category: Optional[str] = None,
    ) -> List[ExtractedField]:
        """Extract all fields from a document analysis.

        Args:
            document_analysis: DocumentAnalysis model or its camelCase dict form
            has_project_context: Whether the document belongs to a project
            document_category: Filing category of the document, if known

        Returns:
            Fields deduplicated by field path
        """
        if not isinstance(document_analysis, DocumentAnalysis):
            document_analysis = DocumentAnalysis.model_validate(document_analysis or {})

        fields: List[ExtractedField] = []

        for raw in document_analysis.key_amounts or []:
            extracted = self.parse_key_amount(raw, has_project_context, document_category)
            if extracted is not None:
                fields.append(extracted)

        for raw in document_analysis.key_dates or []:
            extracted = self.parse_key_date(raw, has_project_context, document_category)
            if extracted is not None:
                fields.append(extracted)

        if document_analysis.entities is not None:
            fields.extend(self.parse_entities(document_analysis.entities, has_project_context))

        fields.extend(
            self.parse_key_findings(
                document_analysis.executive_summary,
                document_analysis.key_terms,
                has_project_context,
            )
        )

        deduplicated = self.deduplicate_fields(fields)

        LOGGER.info(
            f"Extracted {len(deduplicated)} fields from document analysis",
            extra={
                "candidate_count": len(fields),
                "field_count": len(deduplicated),
                "has_project_context": has_project_context,
                "document_category": document_category,
            }
        )
        return deduplicated

    def parse_key_amount(
        self,
        amount_string: str,
        has_project_context: bool,
        document_category: Optional[str] = None,
    ) -> Optional[ExtractedField]:
        """Parse one "<label>: <value>" amount string, or None if malformed."""
        parts = split_labelled_value(amount_string)
        if parts is None:
            LOGGER.debug(f"Skipping malformed key amount: {amount_string!r}")
            return None

        label, raw_value = parts
        match = self.canonicalizer.canonicalize(label)
        scope = self.canonicalizer.determine_scope(match.scope, has_project_context, document_category)
        value, value_type = classify_amount(label, raw_value)

        return ExtractedField(
            field_path=match.path,
            label=label,
            value=value,
            value_type=value_type,
            is_canonical=match.is_canonical,
            confidence=match.confidence,
            scope=scope,
            category=match.category,
            source_text=amount_string,
            tags=[TAG_KEY_AMOUNT],
        )

    def parse_key_date(
        self,
        date_string: str,
        has_project_context: bool,
        document_category: Optional[str] = None,
    ) -> Optional[ExtractedField]:
        """Parse one "<label>: <value>" date string, or None if malformed."""
        parts = split_labelled_value(date_string)
        if parts is None:
            LOGGER.debug(f"Skipping malformed key date: {date_string!r}")
            return None

        label, raw_value = parts
        match = self.canonicalizer.canonicalize(label)
        scope = self.canonicalizer.determine_scope(match.scope, has_project_context, document_category)

        parsed = parse_date_value(raw_value)

        return ExtractedField(
            field_path=match.path,
            label=label,
            value=parsed or raw_value,
            value_type="date" if parsed else "string",
            is_canonical=match.is_canonical,
            confidence=match.confidence,
            scope=scope,
            category=match.category,
            source_text=date_string,
            tags=[TAG_KEY_DATE],
        )

    def parse_entities(
        self,
        entities: DocumentEntities,
        has_project_context: bool,
    ) -> List[ExtractedField]:
        """Turn the first company, person and location into fields.

        Only the first entry of each list becomes a value; the full list is
        kept in source_text. Locations are only used for project documents.
        """
        fields = []

        if entities.companies:
            fields.append(ExtractedField(
                field_path="company.name",
                label="Company Name",
                value=entities.companies[0],
                value_type="string",
                is_canonical=True,
                confidence=ENTITY_COMPANY_CONFIDENCE,
                scope=SCOPE_CLIENT,
                category="company",
                source_text=f"Entities: {', '.join(entities.companies)}",
                tags=[TAG_ENTITY],
            ))

        if entities.people:
            fields.append(ExtractedField(
                field_path="contact.primaryName",
                label="Primary Contact",
                value=entities.people[0],
                value_type="string",
                is_canonical=True,
                confidence=ENTITY_PERSON_CONFIDENCE,
                scope=SCOPE_CLIENT,
                category="contact",
                source_text=f"Entities: {', '.join(entities.people)}",
                tags=[TAG_ENTITY],
            ))

        if entities.locations and has_project_context:
            fields.append(ExtractedField(
                field_path="location.siteAddress",
                label="Site Address",
                value=entities.locations[0],
                value_type="string",
                is_canonical=True,
                confidence=ENTITY_LOCATION_CONFIDENCE,
                scope=SCOPE_PROJECT,
                category="location",
                source_text=f"Entities: {', '.join(entities.locations)}",
                tags=[TAG_ENTITY],
            ))

        return fields

    def parse_key_findings(
        self,
        executive_summary: Optional[str],
        key_terms: Optional[List[str]],
        has_project_context: bool,
    ) -> List[ExtractedField]:
        """Turn the executive summary and key terms into insight fields."""
        fields = []
        scope = SCOPE_PROJECT if has_project_context else SCOPE_CLIENT

        if executive_summary and len(executive_summary) > self.summary_min_length:
            fields.append(ExtractedField(
                field_path="insights.executive_summary",
                label="Executive Summary",
                value=executive_summary,
                value_type="text",
                is_canonical=False,
                confidence=EXECUTIVE_SUMMARY_CONFIDENCE,
                scope=scope,
                category="insights",
                tags=[TAG_INSIGHT],
            ))

        if key_terms:
            fields.append(ExtractedField(
                field_path="insights.key_terms",
                label="Key Terms",
                value=list(key_terms),
                value_type="array",
                is_canonical=False,
                confidence=KEY_TERMS_CONFIDENCE,
                scope=scope,
                category="insights",
                tags=[TAG_INSIGHT],
            ))

        return fields

    @staticmethod
    def deduplicate_fields(fields: List[ExtractedField]) -> List[ExtractedField]:
        """Keep one field per path: the highest confidence, first seen on ties.

        Output order follows the first appearance of each path.
        """
        best: Dict[str, ExtractedField] = {}
        for candidate in fields:
            current = best.get(candidate.field_path)
            if current is None or candidate.confidence > current.confidence:
                best[candidate.field_path] = candidate
        return list(best.values())
