"""
Product Name Extraction: cut the product-name substring out of one reconstructed line.

"1 205116 ARBITEL 40MG 15'S 15'S 742.60 10 0 0" → "ARBITEL 40MG"
"""
from typing import List, Optional
import logging
import re

from ..text.normalizer import FORM_SYNONYMS, FORM_WORDS

logger = logging.getLogger(__name__)

PRICE_TOKEN_RE = re.compile(r"^\d+\.\d{2}$")
LEADING_CODE_RE = re.compile(r"^(?:\d{1,3}|\d{5,8})\s+")
PACK_RE = re.compile(r"^\d+S$")
NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")

KEEP_PATTERNS = [
    re.compile(r"^[A-Z0-9\-+/]+$"),
    re.compile(r"^\d+\.\d+$"),
    re.compile(r"^\d+(?:\.\d+)?(?:/\d+(?:\.\d+)?)?[A-Z]*$"),
]


def _strip_leading_codes(text: str) -> str:
    """Drop serial numbers (1-3 digits) and SAP codes (5-8 digits) in front of the name."""
    while True:
        stripped = LEADING_CODE_RE.sub("", text, count=1)
        if stripped == text:
            return text
        text = stripped


def _clean_symbols(text: str) -> str:
    # Quotes are glued away ("15'S" → "15S"); / - + . carry meaning and survive
    text = re.sub(r"['\"`]", "", text)
    text = re.sub(r"[^A-Z0-9/\-+.\s]", " ", text)
    text = re.sub(r"(?<!\d)\.|\.(?!\d)", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def _is_keepable(token: str) -> bool:
    return any(p.match(token) for p in KEEP_PATTERNS)


def _ends_at_quantity(tok: str, quantity: Optional[int], kept: List[str], rest: List[str]) -> bool:
    """True when tok opens the quantity column instead of continuing the name."""
    if quantity is None or not kept or tok != str(quantity):
        return False
    if any(re.search(r"\d", k) for k in kept):
        return True
    if FORM_SYNONYMS.get(kept[-1], kept[-1]) in FORM_WORDS:
        return True
    return not any(re.search(r"[A-Z]", t) for t in rest)


def extract_product_name(text: str, quantity: Optional[int] = None) -> str:
    """
    Extract the product-name guess from a line.

    Args:
        text: Logical row text
        quantity: Quantity already extracted from the same line, if any. A bare token equal
            to it ends the name once a strength or form word has been kept, or when no
            word follows it.

    Returns:
        Joined name tokens ("" when nothing product-like is found)
    """
    if not text:
        return ""
    upper = text.upper()

    tokens = [t for t in _clean_symbols(upper).split() if not PRICE_TOKEN_RE.match(t)]
    tokens = _strip_leading_codes(" ".join(tokens)).split()

    kept: List[str] = []
    for i, tok in enumerate(tokens):
        nxt = tokens[i + 1] if i + 1 < len(tokens) else ""
        if tok == "0":
            break
        if PACK_RE.match(tok):
            break
        if NUMBER_RE.match(tok) and nxt == "S":
            break
        if _ends_at_quantity(tok, quantity, kept, tokens[i + 1:]):
            break
        if _is_keepable(tok):
            kept.append(tok)
        elif kept:
            break

    name = " ".join(kept)
    logger.debug(f"[NAME] {text[:80]!r} → {name!r}")
    return name
