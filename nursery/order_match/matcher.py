"""
Extraction Matcher - Resolve extracted order lines against the catalogs.

Each line is matched independently. Variety passes run in order and the
first hit wins:

| Pass | Test                                              | Confidence |
|------|---------------------------------------------------|------------|
| 1    | normalized names equal                            | exact      |
| 2    | genus matches and name contains parsed cultivar   | high       |
| 3    | either name contains the other                    | low        |
| 4    | word overlap score >= threshold                   | low        |
| -    | nothing                                           | none       |

Size passes: cell multiple (+ container type) -> exact, cell multiple alone
-> high, first integer in the size text vs cell multiple -> high.

Supplier matching is binary and runs once per extraction.
"""

import logging
from typing import Optional, Sequence

from .config import MatchConfig, MatchSettings, resolve_supplier_alias
from .models import (
    MatchConfidence,
    MatchedExtraction,
    MatchedLineItem,
    OrderExtraction,
    OrderLineItem,
    PlantSize,
    PlantVariety,
    ReferenceData,
    SizeMatch,
    Supplier,
    VarietyMatch,
)
from .normalize import first_integer, normalize_name, tokenize

logger = logging.getLogger(__name__)


def match_variety(
    item: OrderLineItem,
    varieties: Sequence[PlantVariety],
    settings: Optional[MatchSettings] = None,
) -> VarietyMatch:
    """
    Find the best catalog variety for an extracted line.

    Catalog order is preserved, so ties always go to the earlier entry.
    """
    settings = settings or MatchSettings()
    extracted = normalize_name(item.variety_name)
    if not extracted:
        return VarietyMatch()

    catalog = [(variety, normalize_name(variety.name)) for variety in varieties]

    # 1. Exact
    for variety, name in catalog:
        if name == extracted:
            return VarietyMatch(variety=variety, confidence=MatchConfidence.EXACT)

    # 2. Genus + cultivar
    genus = normalize_name(item.genus)
    cultivar = normalize_name(item.cultivar)
    if genus and cultivar:
        for variety, name in catalog:
            same_genus = normalize_name(variety.genus) == genus or name.startswith(genus)
            if same_genus and cultivar in name:
                return VarietyMatch(variety=variety, confidence=MatchConfidence.HIGH)

    # 3. Substring containment, either direction
    for variety, name in catalog:
        if name and (name in extracted or extracted in name):
            return VarietyMatch(variety=variety, confidence=MatchConfidence.LOW)

    # 4. Word overlap
    best = _best_word_overlap(extracted, catalog, settings)
    if best is not None:
        return VarietyMatch(variety=best, confidence=MatchConfidence.LOW)

    logger.debug("No variety match for %r", item.variety_name)
    return VarietyMatch()


def word_overlap_score(extracted_words: list[str], catalog_words: list[str]) -> float:
    """
    Share of words that relate across the two names.

    A word counts when it is a substring of some catalog word or vice versa.
    Divided by the longer word list so extra words on either side cost.
    """
    if not extracted_words or not catalog_words:
        return 0.0
    overlap = sum(
        1 for word in extracted_words
        if any(word in other or other in word for other in catalog_words)
    )
    return overlap / max(len(extracted_words), len(catalog_words))


def _best_word_overlap(
    extracted: str,
    catalog: list[tuple[PlantVariety, str]],
    settings: MatchSettings,
) -> Optional[PlantVariety]:
    """Highest-scoring variety at or above the threshold, or None."""
    words = tokenize(extracted, settings.min_word_length)
    if not words:
        return None

    best = None
    best_score = 0.0
    for variety, name in catalog:
        score = word_overlap_score(words, tokenize(name, settings.min_word_length))
        if score > best_score:
            best, best_score = variety, score

    if best is not None and best_score >= settings.word_overlap_threshold:
        return best
    return None


def match_size(item: OrderLineItem, sizes: Sequence[PlantSize]) -> SizeMatch:
    """
    Find the catalog size for an extracted line.

    With a cell multiple and container type, both must agree for EXACT;
    without a container type the cell multiple alone is EXACT. Otherwise
    the cell multiple alone, or the first integer in the size text, gives HIGH.
    """
    if item.cell_multiple is not None:
        container = normalize_name(item.container_type)
        for size in sizes:
            if size.cell_multiple != item.cell_multiple:
                continue
            if not container or normalize_name(size.container_type) == container:
                return SizeMatch(size=size, confidence=MatchConfidence.EXACT)

        for size in sizes:
            if size.cell_multiple == item.cell_multiple:
                return SizeMatch(size=size, confidence=MatchConfidence.HIGH)

    parsed = first_integer(item.size_description)
    if parsed is not None:
        for size in sizes:
            if size.cell_multiple == parsed:
                return SizeMatch(size=size, confidence=MatchConfidence.HIGH)

    return SizeMatch()


def match_supplier(
    supplier_name: Optional[str],
    suppliers: Sequence[Supplier],
    config: Optional[MatchConfig] = None,
) -> Optional[Supplier]:
    """
    Find the catalog supplier for an extraction.

    Case-insensitive exact name, then containment either direction, then
    configured aliases. Binary: the supplier or None.
    """
    extracted = normalize_name(supplier_name)
    if not extracted:
        return None

    for supplier in suppliers:
        if normalize_name(supplier.name) == extracted:
            return supplier

    for supplier in suppliers:
        name = normalize_name(supplier.name)
        if name and (name in extracted or extracted in name):
            return supplier

    alias_target = normalize_name(resolve_supplier_alias(supplier_name, config))
    if alias_target:
        for supplier in suppliers:
            if normalize_name(supplier.name) == alias_target:
                return supplier

    return None


def match_line_item(
    item: OrderLineItem,
    reference_data: ReferenceData,
    settings: Optional[MatchSettings] = None,
) -> MatchedLineItem:
    """Match one line's variety and size and echo the extracted fields."""
    variety_match = match_variety(item, reference_data.varieties, settings)
    size_match = match_size(item, reference_data.sizes)
    variety = variety_match.variety
    size = size_match.size

    return MatchedLineItem(
        extracted_quantity=item.quantity,
        extracted_variety_name=item.variety_name,
        extracted_size=item.size_description,
        extracted_genus=item.genus,
        extracted_cultivar=item.cultivar,
        extracted_cell_multiple=item.cell_multiple,
        extracted_container_type=item.container_type,
        unit_price=item.unit_price,
        line_total=item.line_total,
        matched_variety_id=variety.id if variety else None,
        matched_variety_name=variety.name if variety else None,
        matched_variety_family=variety.family if variety else None,
        variety_match_confidence=variety_match.confidence,
        matched_size_id=size.id if size else None,
        matched_size_name=size.name if size else None,
        size_match_confidence=size_match.confidence,
    )


def match_extraction(
    extraction: OrderExtraction,
    reference_data: ReferenceData,
    config: Optional[MatchConfig] = None,
) -> MatchedExtraction:
    """
    Match a whole extraction against the reference catalogs.

    Args:
        extraction: Supplier order as extracted from a PDF or CSV
        reference_data: Variety, size and supplier catalogs
        config: Thresholds and supplier aliases (default: built-in defaults)

    Returns:
        MatchedExtraction with line items in input order and review counts
    """
    config = config or MatchConfig()

    supplier = match_supplier(extraction.supplier_name, reference_data.suppliers, config)
    line_items = [
        match_line_item(item, reference_data, config.settings)
        for item in extraction.line_items
    ]
    matched_count = sum(1 for line in line_items if line.is_matched)

    logger.info(
        "Matched %d/%d order lines (supplier %s)",
        matched_count,
        len(line_items),
        "found" if supplier else "not found",
    )

    return MatchedExtraction(
        extracted_supplier_name=extraction.supplier_name,
        matched_supplier_id=supplier.id if supplier else None,
        matched_supplier_name=supplier.name if supplier else None,
        order_reference=extraction.order_reference,
        expected_date=extraction.document_date,
        total_amount=extraction.total_amount,
        line_items=line_items,
        total_items=len(line_items),
        matched_items=matched_count,
        needs_review_items=len(line_items) - matched_count,
    )


def summarize_extraction(matched: MatchedExtraction) -> dict:
    """Generate summary statistics for a matched extraction."""
    counts = {
        "total": matched.total_items,
        "matched": matched.matched_items,
        "needs_review": matched.needs_review_items,
        "supplier_matched": matched.matched_supplier_id is not None,
        "variety": {confidence.value: 0 for confidence in MatchConfidence},
        "size": {confidence.value: 0 for confidence in MatchConfidence},
    }

    for line in matched.line_items:
        counts["variety"][line.variety_match_confidence.value] += 1
        counts["size"][line.size_match_confidence.value] += 1

    return counts
