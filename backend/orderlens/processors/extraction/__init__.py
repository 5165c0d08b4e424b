"""
Extraction: logical rows from positioned tokens, and per-row field guesses.
"""
from .row_reconstructor import (
    build_logical_rows, tokens_from_sheet_rows, merge_split_rows, looks_like_qty_price_line,
)
from .quantity_extractor import extract_quantity
from .name_extractor import extract_product_name
from .field_extractor import extract_line_item
from .line_classifier import is_hard_junk, is_summary_line, looks_like_product
from .customer_detector import detect_customer_name
from .sheet_columns import SheetColumns, detect_sheet_columns, extract_sheet_items, sheet_row_text

__all__ = [
    "build_logical_rows", "tokens_from_sheet_rows", "merge_split_rows", "looks_like_qty_price_line",
    "extract_quantity", "extract_product_name", "extract_line_item",
    "is_hard_junk", "is_summary_line", "looks_like_product",
    "detect_customer_name",
    "SheetColumns", "detect_sheet_columns", "extract_sheet_items", "sheet_row_text",
]
