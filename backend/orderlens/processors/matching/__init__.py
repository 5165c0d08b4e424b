"""
Matching: resolve extracted lines to master customers/products and apply schemes.
"""
from .gates import ProductView, passes_gates, strength_compatible, variant_compatible, brand_block
from .customer_resolver import resolve_customer, score_customer_names
from .product_resolver import (
    ProductIndex, resolve_product, resolve_products_batch, resolve_by_code, reverse_lookup,
    fuzzy_similarity, STRATEGY_CHAIN,
)
from .scheme_evaluator import apply_scheme, find_upsell_opportunity, scheme_percent

__all__ = [
    "ProductView", "passes_gates", "strength_compatible", "variant_compatible", "brand_block",
    "resolve_customer", "score_customer_names",
    "ProductIndex", "resolve_product", "resolve_products_batch", "resolve_by_code", "reverse_lookup",
    "fuzzy_similarity", "STRATEGY_CHAIN",
    "apply_scheme", "find_upsell_opportunity", "scheme_percent",
]
