"""
Document analysis payload schemas.

These models describe the loosely-structured output of the upstream
document-analysis step. Keys arrive in camelCase from the collaborator;
snake_case is accepted as well. Every section is optional.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentEntities(BaseModel):
    """Named entities mentioned in a document."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    companies: Optional[List[str]] = Field(default=None, description="Company names, most relevant first")
    people: Optional[List[str]] = Field(default=None, description="People named in the document")
    locations: Optional[List[str]] = Field(default=None, description="Addresses or places")
    projects: Optional[List[str]] = Field(default=None, description="Project or scheme names")


class DocumentAnalysis(BaseModel):
    """AI-derived analysis of a single document."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    key_amounts: Optional[List[str]] = Field(
        default=None,
        alias="keyAmounts",
        description='Raw amount strings of the form "<label>: <value>"'
    )
    key_dates: Optional[List[str]] = Field(
        default=None,
        alias="keyDates",
        description='Raw date strings of the form "<label>: <value>"'
    )
    key_terms: Optional[List[str]] = Field(default=None, alias="keyTerms")
    entities: Optional[DocumentEntities] = None
    executive_summary: Optional[str] = Field(default=None, alias="executiveSummary")
