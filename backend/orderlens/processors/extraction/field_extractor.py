"""
Field Extraction: quantity + product-name guess for one logical row.
"""
from typing import Optional, Union

from ...config import Settings
from ..core.structures import ExtractedLineItem, LogicalRow
from .name_extractor import extract_product_name
from .quantity_extractor import extract_quantity


def extract_line_item(row: Union[LogicalRow, str], settings: Optional[Settings] = None) -> ExtractedLineItem:
    """Run the quantity ladder, then cut the product name using that quantity as a stop hint."""
    raw = row.raw_text if isinstance(row, LogicalRow) else row
    quantity = extract_quantity(raw, settings)
    return ExtractedLineItem(
        raw_text=raw,
        quantity=quantity,
        product_name_guess=extract_product_name(raw, quantity),
    )
