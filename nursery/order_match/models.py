"""
Data models for order extraction matching.

Pydantic models so extraction documents (from the PDF extraction service or
the CSV parser) and catalog exports are validated at the boundary, and
results serialize straight to JSON with model_dump(mode="json").
Money values use Decimal for precision.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MatchConfidence(str, Enum):
    """
    How trustworthy an automatic catalog match is.

    Strictly ordered: EXACT > HIGH > LOW > NONE. Anything below HIGH goes
    to human review.
    """
    EXACT = "exact"
    HIGH = "high"
    LOW = "low"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]

    @property
    def is_confident(self) -> bool:
        return self >= MatchConfidence.HIGH

    def __lt__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, MatchConfidence):
            return NotImplemented
        return self.rank >= other.rank


_CONFIDENCE_RANK = {
    MatchConfidence.NONE: 0,
    MatchConfidence.LOW: 1,
    MatchConfidence.HIGH: 2,
    MatchConfidence.EXACT: 3,
}


# ---------------------------------------------------------------------------
# Extraction (input)
# ---------------------------------------------------------------------------

class OrderLineItem(BaseModel):
    """One line of a supplier order as extracted from the document."""
    quantity: int = 0
    variety_name: Optional[str] = None
    genus: Optional[str] = None
    species: Optional[str] = None
    cultivar: Optional[str] = None
    size_description: Optional[str] = None
    cell_multiple: Optional[int] = None
    container_type: Optional[str] = None
    unit_price: Optional[Decimal] = None
    line_total: Optional[Decimal] = None


class OrderExtraction(BaseModel):
    """Structured result of parsing a supplier order document."""
    supplier_name: Optional[str] = None
    order_reference: Optional[str] = None
    document_date: Optional[date] = None
    line_items: list[OrderLineItem] = []
    total_amount: Optional[Decimal] = None


# ---------------------------------------------------------------------------
# Reference catalogs
# ---------------------------------------------------------------------------

class PlantVariety(BaseModel):
    """A variety in the reference catalog."""
    id: str
    name: str
    genus: Optional[str] = None
    family: Optional[str] = None


class PlantSize(BaseModel):
    """A container/tray size in the reference catalog."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    cell_multiple: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("cell_multiple", "cellMultiple")
    )
    container_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("container_type", "containerType")
    )


class Supplier(BaseModel):
    """A supplier in the reference catalog."""
    id: str
    name: str


class ReferenceData(BaseModel):
    """The three read-only catalogs a match runs against."""
    varieties: list[PlantVariety] = []
    sizes: list[PlantSize] = []
    suppliers: list[Supplier] = []


# ---------------------------------------------------------------------------
# Match results (output)
# ---------------------------------------------------------------------------

class VarietyMatch(BaseModel):
    """Best catalog variety for a line, and how sure we are."""
    variety: Optional[PlantVariety] = None
    confidence: MatchConfidence = MatchConfidence.NONE


class SizeMatch(BaseModel):
    """Best catalog size for a line, and how sure we are."""
    size: Optional[PlantSize] = None
    confidence: MatchConfidence = MatchConfidence.NONE


class MatchedLineItem(BaseModel):
    """An extracted line echoed back with its variety and size matches."""
    extracted_quantity: int
    extracted_variety_name: Optional[str] = None
    extracted_size: Optional[str] = None
    extracted_genus: Optional[str] = None
    extracted_cultivar: Optional[str] = None
    extracted_cell_multiple: Optional[int] = None
    extracted_container_type: Optional[str] = None
    unit_price: Optional[Decimal] = None
    line_total: Optional[Decimal] = None

    matched_variety_id: Optional[str] = None
    matched_variety_name: Optional[str] = None
    matched_variety_family: Optional[str] = None
    variety_match_confidence: MatchConfidence = MatchConfidence.NONE

    matched_size_id: Optional[str] = None
    matched_size_name: Optional[str] = None
    size_match_confidence: MatchConfidence = MatchConfidence.NONE

    @property
    def is_matched(self) -> bool:
        """Both variety and size resolved at HIGH or better."""
        return self.variety_match_confidence.is_confident and self.size_match_confidence.is_confident

    @property
    def needs_review(self) -> bool:
        return not self.is_matched


class MatchedExtraction(BaseModel):
    """
    An extraction matched against the catalogs.

    Supplier matching is binary (found / not found). Line items keep input
    order; matched_items counts lines where both matches are HIGH or EXACT.
    """
    extracted_supplier_name: Optional[str] = None
    matched_supplier_id: Optional[str] = None
    matched_supplier_name: Optional[str] = None
    order_reference: Optional[str] = None
    expected_date: Optional[date] = None
    total_amount: Optional[Decimal] = None

    line_items: list[MatchedLineItem] = []
    total_items: int = 0
    matched_items: int = 0
    needs_review_items: int = 0
