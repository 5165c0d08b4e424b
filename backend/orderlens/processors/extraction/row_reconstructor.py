"""
Row Reconstruction: Build logical rows from positioned text tokens.

This module implements Step 1 of the order processing pipeline. Tokens arrive in any
order from a PDF text layer, an OCR engine or the spreadsheet adapter; rows are formed by
vertical clustering and each row is joined left-to-right.
"""
from typing import Iterable, List, Optional, Sequence
import logging
import re

from ...config import Settings, get_settings
from ..core.structures import PositionedToken, LogicalRow
from .line_classifier import looks_like_product
from .quantity_extractor import extract_quantity
from .sheet_columns import sheet_row_text

logger = logging.getLogger(__name__)

# Extra separator appended when two cells are visually far apart
WIDE_SEPARATOR = "  "


def _join_row(tokens: List[PositionedToken], column_gap: float) -> str:
    """Join one row's tokens left-to-right; adjacent cells always get at least one space."""
    ordered = sorted(tokens, key=lambda t: (t.x, t.text))
    parts = [ordered[0].text.strip()]
    for prev, tok in zip(ordered, ordered[1:]):
        sep = " "
        if tok.x - prev.x > column_gap:
            sep += WIDE_SEPARATOR
        parts.append(sep)
        parts.append(tok.text.strip())
    return "".join(parts)


def build_logical_rows(
    tokens: Iterable[PositionedToken],
    settings: Optional[Settings] = None,
) -> List[LogicalRow]:
    """
    Group tokens into logical rows by vertical position.

    A new row starts whenever the vertical distance to the previous token exceeds
    settings.row_y_tolerance. Tokens are ordered by (y, x, text) first, so the same token
    set yields the same rows whatever order it was supplied in.

    Args:
        tokens: Positioned tokens for one page or document
        settings: Optional settings snapshot (defaults to the module singleton)

    Returns:
        Logical rows top-to-bottom; rows shorter than settings.row_min_length are dropped
    """
    cfg = get_settings(settings)
    usable = [t for t in tokens if t.text and t.text.strip()]
    if not usable:
        logger.info("Built 0 logical rows from 0 tokens")
        return []

    usable.sort(key=lambda t: (t.y, t.x, t.text))

    groups: List[List[PositionedToken]] = [[usable[0]]]
    for prev, tok in zip(usable, usable[1:]):
        if tok.y - prev.y > cfg.row_y_tolerance:
            groups.append([tok])
        else:
            groups[-1].append(tok)

    rows: List[LogicalRow] = []
    for group in groups:
        text = _join_row(group, cfg.row_column_gap)
        if len(text.strip()) < cfg.row_min_length:
            logger.debug(f"Dropped short row: {text!r}")
            continue
        rows.append(LogicalRow(raw_text=text, y=group[0].y))

    logger.info(f"Built {len(rows)} logical rows from {len(usable)} tokens")
    return rows


def tokens_from_sheet_rows(
    rows: Sequence[Sequence[object]],
    settings: Optional[Settings] = None,
) -> List[PositionedToken]:
    """
    Spreadsheet adapter: one token per sheet row.

    Non-empty cells are joined by a single space; y grows by more than the row tolerance
    per row so sheet rows never merge, and x is always 0.
    """
    cfg = get_settings(settings)
    pitch = cfg.row_y_tolerance + 1.0
    tokens = []
    for index, row in enumerate(rows):
        text = sheet_row_text(row)
        if not text:
            continue
        tokens.append(PositionedToken(text=text, x=0.0, y=index * pitch))
    return tokens


# ==================== Split-row merging ====================

_AMOUNT_RE = re.compile(r"^\d+\.\d{2}$")
_PACK_TOKEN_RE = re.compile(r"^\d+['\"`]?S$", re.IGNORECASE)


def looks_like_qty_price_line(text: str) -> bool:
    """A numeric-only line with at least two numbers, one of them a two-decimal amount ("120 0 81.19 9742.80")."""
    tokens = text.split()
    if not tokens or any(re.search(r"[A-Z]", t, re.IGNORECASE) for t in tokens):
        return False
    numeric = [t for t in tokens if re.fullmatch(r"\d+(?:\.\d+)?", t)]
    return len(numeric) >= 2 and any(_AMOUNT_RE.match(t) for t in numeric)


def merge_split_rows(rows: List[LogicalRow], settings: Optional[Settings] = None) -> List[LogicalRow]:
    """
    Re-join order lines that the document layout split over several rows.

    Patterns handled:
    - 2-row: product line without quantity + qty/price line
    - 3-row: product line + pack line ("15'S ...") + qty/price line
    Qty/price lines not absorbed by a product line are dropped.
    """
    merged: List[LogicalRow] = []
    i = 0
    while i < len(rows):
        text = rows[i].raw_text.strip()
        if looks_like_qty_price_line(text):
            logger.debug(f"Dropped orphan qty/price line: {text!r}")
            i += 1
            continue

        if looks_like_product(text) and extract_quantity(text, settings) is None:
            r2 = rows[i + 1].raw_text.strip() if i + 1 < len(rows) else ""
            r3 = rows[i + 2].raw_text.strip() if i + 2 < len(rows) else ""
            if r2 and r3 and _PACK_TOKEN_RE.match(r2.split()[0]) and looks_like_qty_price_line(r3):
                logger.debug(f"3-row merge: {text!r} + {r2!r} + {r3!r}")
                merged.append(LogicalRow(raw_text=f"{text} {r2} {r3}", y=rows[i].y))
                i += 3
                continue
            if r2 and looks_like_qty_price_line(r2):
                logger.debug(f"2-row merge: {text!r} + {r2!r}")
                merged.append(LogicalRow(raw_text=f"{text} {r2}", y=rows[i].y))
                i += 2
                continue

        merged.append(rows[i])
        i += 1

    if len(merged) != len(rows):
        logger.info(f"Merged split rows: {len(rows)} → {len(merged)}")
    return merged
