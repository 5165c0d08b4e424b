"""
Quantity Extraction: find the ordered quantity in one reconstructed line.

Strategies are tried in order, first hit wins:
1. Label     - "QTY: 20", "ORD QTY 20"
2. Smart scan - numeric tokens filtered by rejection rules, right-most survivor preferred
3. Amount     - search backward from the first two-decimal amount (qty/price column layouts)
"""
from typing import Callable, List, Optional, Tuple
import logging
import re

from ...config import Settings, get_settings

logger = logging.getLogger(__name__)

LABEL_RE = re.compile(r"\b(?:QTY|QUANTITY|ORD\s*QTY)[:\s]+(\d+)\b")
UNIT_TOKEN_RE = re.compile(r"^(?:MG|ML|MCG|GM|G|IU|KG)$")
PACK_TOKEN_RE = re.compile(r"^\d+['\"`]?S$")
AMOUNT_TOKEN_RE = re.compile(r"^\d+\.\d{2}$")

# Strength values misread as quantities when they directly follow a product word
COMMON_STRENGTHS = frozenset({500, 250, 1000, 125})
SERIAL_LIMIT = 10


def extract_by_label(text: str, settings: Settings) -> Optional[int]:
    m = LABEL_RE.search(text)
    if not m:
        return None
    qty = int(m.group(1))
    if settings.qty_min <= qty <= settings.qty_max:
        logger.debug(f"[QTY] label: {qty}")
        return qty
    return None


def _scan_tokens(text: str) -> List[str]:
    cleaned = re.sub(r"\b\d{6,}\b", " ", text)          # item codes
    cleaned = re.sub(r"\b\d+\.\d+\b", " ", cleaned)      # amounts
    cleaned = re.sub(r"\+\s*\d*\s*(?:FREE|F)\b.*$", " ", cleaned)
    return cleaned.split()


def extract_by_smart_scan(text: str, settings: Settings) -> Optional[int]:
    """
    Score every plausible numeric token and keep the best.

    Rejected: a number followed by a unit (dosage), pack shapes (10'S, "10" + "'S"),
    a first-token serial below 10, values outside [qty_min, qty_max], and a common strength
    (500, 250, 1000, 125) right after a word within the first three tokens.
    Later positions score higher; ties go to the right-most token.
    """
    tokens = _scan_tokens(text)
    candidates: List[Tuple[int, int, int]] = []  # (score, position, value)

    for i, tok in enumerate(tokens):
        if not tok.isdigit():
            continue
        prev = tokens[i - 1] if i > 0 else ""
        nxt = tokens[i + 1] if i + 1 < len(tokens) else ""
        val = int(tok)

        if UNIT_TOKEN_RE.match(nxt):
            continue
        if PACK_TOKEN_RE.match(tok + nxt) or re.fullmatch(r"['\"`]S", nxt):
            continue
        if i == 0 and val < SERIAL_LIMIT:
            continue
        if val > settings.qty_max or val < settings.qty_min:
            continue
        if i <= 2 and prev.isalpha() and val in COMMON_STRENGTHS:
            continue

        candidates.append((2 if i > 2 else 1, i, val))

    if not candidates:
        return None
    score, pos, val = max(candidates)
    logger.debug(f"[QTY] smart scan: {val} (pos={pos}, candidates={len(candidates)})")
    return val


def extract_by_amount(text: str, settings: Settings) -> Optional[int]:
    """
    Quantity is the last plain integer before the first two-decimal amount.

    Accepts up to settings.qty_max_amount_mode; 4-digit values in positions 0-1 are item
    codes, and a leading single digit is a serial number.
    """
    tokens = text.split()
    amount_idx = next((i for i, t in enumerate(tokens) if AMOUNT_TOKEN_RE.match(t)), None)
    if amount_idx is None:
        return None

    for i in range(amount_idx - 1, -1, -1):
        tok = tokens[i]
        if not tok.isdigit():
            continue
        val = int(tok)
        nxt = tokens[i + 1] if i + 1 < len(tokens) else ""
        if UNIT_TOKEN_RE.match(nxt) or PACK_TOKEN_RE.match(tok + nxt):
            continue
        if i <= 1 and 1000 <= val <= 9999:
            logger.debug(f"[QTY] amount mode: blocked leading item code {val}")
            continue
        if i == 0 and val < SERIAL_LIMIT and amount_idx > 1:
            continue
        if settings.qty_min <= val <= settings.qty_max_amount_mode:
            logger.debug(f"[QTY] amount mode: {val}")
            return val
    return None


STRATEGIES: List[Tuple[str, Callable[[str, Settings], Optional[int]]]] = [
    ("label", extract_by_label),
    ("smart_scan", extract_by_smart_scan),
    ("amount", extract_by_amount),
]


def extract_quantity(text: str, settings: Optional[Settings] = None) -> Optional[int]:
    """
    Extract the ordered quantity from one line.

    Args:
        text: Logical row text
        settings: Optional settings snapshot

    Returns:
        Quantity, or None when no strategy finds a plausible value
    """
    if not text or not text.strip():
        return None
    cfg = get_settings(settings)
    upper = text.upper()
    for name, strategy in STRATEGIES:
        qty = strategy(upper, cfg)
        if qty is not None:
            return qty
    logger.debug(f"[QTY] no quantity in {text[:80]!r}")
    return None
