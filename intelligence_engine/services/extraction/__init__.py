"""Extraction of canonical fields from document analysis."""

from intelligence_engine.services.extraction.contracts import ExtractedField
from intelligence_engine.services.extraction.intelligence_extractor import IntelligenceExtractor
from intelligence_engine.services.extraction.label_canonicalization_service import (
    LabelCanonicalizationService,
    LabelMatch,
)

__all__ = [
    "ExtractedField",
    "IntelligenceExtractor",
    "LabelCanonicalizationService",
    "LabelMatch",
]
