"""
Text: normalization helpers shared by every stage.
"""
from .normalizer import (
    ProductParts, normalize_text, compact, tokenize, fix_typos,
    normalize_product_name, clean_invoice_desc, normalize_customer_name,
    normalize_strength, extract_strength, extract_variants, extract_form, extract_base_name,
    split_product,
)

__all__ = [
    "ProductParts", "normalize_text", "compact", "tokenize", "fix_typos",
    "normalize_product_name", "clean_invoice_desc", "normalize_customer_name",
    "normalize_strength", "extract_strength", "extract_variants", "extract_form",
    "extract_base_name", "split_product",
]
