"""
Compatibility Gates: vetoes applied before any product is scored.

A candidate failing a gate is removed from consideration no matter how similar its name
is; a wrong strength or variant on a pharmacy order is a dispensing error.
"""
from dataclasses import dataclass, replace
from typing import FrozenSet, List, Optional, Tuple
import logging
import re

from ...models import MasterProduct
from ..text.normalizer import (
    STRICT_VARIANTS, normalize_text, normalize_product_name, normalize_strength,
    extract_strength, extract_variants, extract_base_name, extract_form,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductView:
    """Pre-computed comparison features of one product description."""
    raw: str
    first_token: str
    text: str
    cleaned: str
    base: str
    strength: Optional[str]
    variants: FrozenSet[str]
    form: Optional[str]

    @classmethod
    def of(cls, text: str) -> "ProductView":
        plain = normalize_text(text)
        return cls(
            raw=text,
            first_token=plain.split()[0] if plain else "",
            text=plain,
            cleaned=normalize_product_name(text),
            base=extract_base_name(text),
            strength=extract_strength(text),
            variants=frozenset(extract_variants(text)),
            form=extract_form(text),
        )

    @classmethod
    def of_product(cls, product: MasterProduct) -> "ProductView":
        """
        View of a master product. Stored base name, dosage, variant and cleaned name take
        precedence over what the product name alone would give.
        """
        derived = cls.of(product.product_name)
        cleaned = normalize_product_name(product.cleaned_product_name or "") or derived.cleaned
        variants = derived.variants
        if product.variant:
            variants = frozenset(t for t in normalize_text(product.variant).split() if t in STRICT_VARIANTS)
        return replace(
            derived,
            cleaned=cleaned,
            base=normalize_text(product.base_name or "") or derived.base,
            strength=normalize_strength(product.dosage) or derived.strength,
            variants=variants,
            form=extract_form(cleaned) or derived.form,
        )


def brand_block(inp: ProductView, cand: ProductView, noise_brands: FrozenSet[str]) -> bool:
    """Input led by a distributor prefix (MICRO, MICRO1, RAJ) only matches candidates led by the same token."""
    if re.sub(r"\d+$", "", inp.first_token) in noise_brands and cand.first_token != inp.first_token:
        return False
    return True


def strength_compatible(inp: ProductView, cand: ProductView) -> bool:
    """Both strengths equal, or both absent."""
    if inp.strength is None and cand.strength is None:
        return True
    return inp.strength == cand.strength


def variant_compatible(inp: ProductView, cand: ProductView) -> bool:
    """Every strict variant on either side must be present on the other."""
    return inp.variants == cand.variants


def passes_gates(
    inp: ProductView,
    cand: ProductView,
    noise_brands: FrozenSet[str],
) -> Tuple[bool, str]:
    """
    Run all gates in order.

    Returns:
        (passed, name of the failing gate or "")
    """
    if not brand_block(inp, cand, noise_brands):
        return False, "brand"
    if not strength_compatible(inp, cand):
        return False, "strength"
    if not variant_compatible(inp, cand):
        return False, "variant"
    return True, ""


def filter_candidates(
    inp: ProductView,
    products: List[Tuple[MasterProduct, ProductView]],
    noise_brands: FrozenSet[str],
) -> List[Tuple[MasterProduct, ProductView]]:
    kept = []
    for product, view in products:
        ok, gate = passes_gates(inp, view, noise_brands)
        if ok:
            kept.append((product, view))
        else:
            logger.debug(f"[GATE] {gate} veto: {inp.text!r} vs {product.product_name!r}")
    return kept
