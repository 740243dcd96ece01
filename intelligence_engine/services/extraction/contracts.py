"""Contracts (input/output schemas) for the extraction stage."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

# Value types an extracted field can carry
VALUE_TYPES = (
    "string",
    "number",
    "currency",
    "date",
    "percentage",
    "array",
    "text",
    "boolean",
)

# Origin tags attached to extracted fields
TAG_KEY_AMOUNT = "key_amount"
TAG_KEY_DATE = "key_date"
TAG_ENTITY = "entity"
TAG_INSIGHT = "insight"


@dataclass
class ExtractedField:
    """A single canonical fact extracted from a document analysis."""
    field_path: str
    label: str
    value: Any
    value_type: str
    is_canonical: bool
    confidence: float
    scope: str
    category: str
    source_text: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
