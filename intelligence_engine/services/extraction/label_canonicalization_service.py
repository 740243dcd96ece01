"""Label canonicalization service for mapping free-text labels to knowledge fields.

Maps labels such as "LTV" or "Gross Development Value" to canonical field
paths (financials.ltv, financials.gdv) using rules-based matching, and
resolves whether the resulting fact belongs to the client or the project.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from intelligence_engine.core.config import settings
from intelligence_engine.utils.logging import get_logger

LOGGER = get_logger(__name__)

SCOPE_CLIENT = "client"
SCOPE_PROJECT = "project"
SCOPE_CONTEXT = "context"

# (label, canonical path, natural scope). Declaration order matters: partial
# matching returns the first entry whose label overlaps the input.
LABEL_TO_CANONICAL: Tuple[Tuple[str, str, str], ...] = (
    # Financials (project-level)
    ("gdv", "financials.gdv", SCOPE_PROJECT),
    ("gross development value", "financials.gdv", SCOPE_PROJECT),
    ("loan amount", "financials.loanAmount", SCOPE_PROJECT),
    ("loan", "financials.loanAmount", SCOPE_PROJECT),
    ("facility", "financials.loanAmount", SCOPE_PROJECT),
    ("ltv", "financials.ltv", SCOPE_PROJECT),
    ("loan to value", "financials.ltv", SCOPE_PROJECT),
    ("ltc", "financials.ltc", SCOPE_PROJECT),
    ("loan to cost", "financials.ltc", SCOPE_PROJECT),
    ("purchase price", "financials.purchasePrice", SCOPE_PROJECT),
    ("acquisition price", "financials.purchasePrice", SCOPE_PROJECT),
    ("total development cost", "financials.totalDevelopmentCost", SCOPE_PROJECT),
    ("tdc", "financials.totalDevelopmentCost", SCOPE_PROJECT),
    ("construction cost", "financials.constructionCost", SCOPE_PROJECT),
    ("build cost", "financials.constructionCost", SCOPE_PROJECT),
    ("profit margin", "financials.profitMargin", SCOPE_PROJECT),
    ("profit", "financials.profitMargin", SCOPE_PROJECT),
    ("equity", "financials.equityContribution", SCOPE_PROJECT),
    ("equity contribution", "financials.equityContribution", SCOPE_PROJECT),
    ("current value", "financials.currentValue", SCOPE_PROJECT),
    ("market value", "financials.currentValue", SCOPE_PROJECT),

    # Timeline (project-level)
    ("completion", "timeline.practicalCompletion", SCOPE_PROJECT),
    ("practical completion", "timeline.practicalCompletion", SCOPE_PROJECT),
    ("pc date", "timeline.practicalCompletion", SCOPE_PROJECT),
    ("start date", "timeline.constructionStart", SCOPE_PROJECT),
    ("construction start", "timeline.constructionStart", SCOPE_PROJECT),
    ("acquisition date", "timeline.acquisitionDate", SCOPE_PROJECT),
    ("exchange", "timeline.acquisitionDate", SCOPE_PROJECT),
    ("duration", "timeline.projectDuration", SCOPE_PROJECT),
    ("project duration", "timeline.projectDuration", SCOPE_PROJECT),
    ("term", "timeline.projectDuration", SCOPE_PROJECT),

    # Location (project-level)
    ("site address", "location.siteAddress", SCOPE_PROJECT),
    ("address", "location.siteAddress", SCOPE_PROJECT),
    ("property address", "location.siteAddress", SCOPE_PROJECT),
    ("postcode", "location.postcode", SCOPE_PROJECT),
    ("title number", "location.titleNumber", SCOPE_PROJECT),
    ("local authority", "location.localAuthority", SCOPE_PROJECT),

    # Overview (project-level)
    ("project name", "overview.projectName", SCOPE_PROJECT),
    ("scheme", "overview.projectName", SCOPE_PROJECT),
    ("development", "overview.projectName", SCOPE_PROJECT),
    ("unit count", "overview.unitCount", SCOPE_PROJECT),
    ("units", "overview.unitCount", SCOPE_PROJECT),
    ("number of units", "overview.unitCount", SCOPE_PROJECT),
    ("total sqft", "overview.totalSqft", SCOPE_PROJECT),
    ("square footage", "overview.totalSqft", SCOPE_PROJECT),
    ("gifa", "overview.totalSqft", SCOPE_PROJECT),

    # Company (client-level)
    ("company name", "company.name", SCOPE_CLIENT),
    ("company", "company.name", SCOPE_CLIENT),
    ("borrower", "company.name", SCOPE_CLIENT),
    ("registration number", "company.registrationNumber", SCOPE_CLIENT),
    ("company number", "company.registrationNumber", SCOPE_CLIENT),
    ("crn", "company.registrationNumber", SCOPE_CLIENT),
    ("registered address", "company.registeredAddress", SCOPE_CLIENT),
    ("incorporation date", "company.incorporationDate", SCOPE_CLIENT),

    # Contact (client-level)
    ("contact name", "contact.primaryName", SCOPE_CLIENT),
    ("contact", "contact.primaryName", SCOPE_CLIENT),
    ("name", "contact.primaryName", SCOPE_CLIENT),
    ("email", "contact.email", SCOPE_CLIENT),
    ("phone", "contact.phone", SCOPE_CLIENT),
    ("telephone", "contact.phone", SCOPE_CLIENT),

    # Client financial position (client-level)
    ("net worth", "financial.netWorth", SCOPE_CLIENT),
    ("liquid assets", "financial.liquidAssets", SCOPE_CLIENT),
    ("annual income", "financial.annualIncome", SCOPE_CLIENT),
    ("portfolio value", "financial.propertyPortfolioValue", SCOPE_CLIENT),
)

_EXACT_LOOKUP = {label: (path, scope) for label, path, scope in reversed(LABEL_TO_CANONICAL)}

# Document categories whose context-dependent facts describe the client
CLIENT_LEVEL_CATEGORIES: Tuple[str, ...] = (
    "KYC",
    "Background",
    "Corporate",
    "Identity",
    "Financial Statement",
    "Bank Statement",
    "Tax",
    "CV",
    "Track Record",
)

EXACT_MATCH_CONFIDENCE = 0.95
PARTIAL_MATCH_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.5
FALLBACK_PREFIX = "extracted"


@dataclass(frozen=True)
class LabelMatch:
    """Result of canonicalizing one label."""
    path: str
    is_canonical: bool
    scope: str
    confidence: float

    @property
    def category(self) -> str:
        return category_from_path(self.path)


def category_from_path(path: str) -> str:
    """First segment of a dot path."""
    return path.split(".")[0]


def slugify_label(label: str, max_length: int) -> str:
    """Build the key used for labels with no canonical mapping."""
    slug = re.sub(r"[^a-z0-9\s]", "", label.lower()).strip()
    slug = re.sub(r"\s+", "_", slug)
    return slug[:max_length]


@lru_cache(maxsize=2048)
def _canonicalize(label: str, slug_max_length: int) -> LabelMatch:
    normalized = label.lower().strip()

    exact = _EXACT_LOOKUP.get(normalized)
    if exact is not None:
        path, scope = exact
        return LabelMatch(path, True, scope, EXACT_MATCH_CONFIDENCE)

    # An empty label is contained in every key, so it takes the first entry
    for key, path, scope in LABEL_TO_CANONICAL:
        if key in normalized or normalized in key:
            return LabelMatch(path, True, scope, PARTIAL_MATCH_CONFIDENCE)

    slug = slugify_label(label, slug_max_length)
    return LabelMatch(f"{FALLBACK_PREFIX}.{slug}", False, SCOPE_CONTEXT, FALLBACK_CONFIDENCE)


class LabelCanonicalizationService:
    """Maps free-text labels to canonical knowledge field paths.

    Matching is rules-based: exact table lookup, then first partial match in
    table order, then a slug under extracted.*.
    """

    def __init__(self, slug_max_length: Optional[int] = None):
        self.slug_max_length = slug_max_length or settings.intelligence.fallback_slug_max_length

    def canonicalize(self, label: str) -> LabelMatch:
        """Map a label to its canonical path, natural scope and confidence.

        Args:
            label: Label text as written in the document analysis

        Returns:
            LabelMatch for the label
        """
        match = _canonicalize(label or "", self.slug_max_length)

        LOGGER.debug(
            f"Canonicalized label {label!r} -> {match.path}",
            extra={"confidence": match.confidence, "scope": match.scope}
        )
        return match

    @staticmethod
    def is_client_level_category(document_category: Optional[str]) -> bool:
        """Check whether a document category describes the client itself."""
        if not document_category:
            return False
        category = document_category.lower()
        return any(keyword.lower() in category for keyword in CLIENT_LEVEL_CATEGORIES)

    def determine_scope(
        self,
        field_scope: str,
        has_project_context: bool,
        document_category: Optional[str] = None,
    ) -> str:
        """Resolve a natural scope to the level the fact is stored at.

        Args:
            field_scope: client, project or context
            has_project_context: Whether the document belongs to a project
            document_category: Filing category of the source document

        Returns:
            "client" or "project"
        """
        if field_scope == SCOPE_CLIENT:
            return SCOPE_CLIENT
        if field_scope == SCOPE_PROJECT:
            return SCOPE_PROJECT if has_project_context else SCOPE_CLIENT

        if self.is_client_level_category(document_category):
            return SCOPE_CLIENT

        return SCOPE_PROJECT if has_project_context else SCOPE_CLIENT
