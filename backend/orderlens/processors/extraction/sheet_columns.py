"""
Spreadsheet Columns: read order lines straight from named sheet columns.

Spreadsheet orders usually carry a header row ("SL NO | ITEM NAME | QTY"). When one is
found, the quantity and the product name come from their own cells, so a strength in the
name column is never taken for the quantity. Sheets without such a header go through the
positioned-token path instead.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import logging
import re

from ...config import Settings, get_settings
from ..core.structures import ExtractedLineItem
from .name_extractor import extract_product_name

logger = logging.getLogger(__name__)

MAX_HEADER_ROWS = 20
MIN_NAME_LENGTH = 3

NAME_COLUMN_KEYS = ("itemname", "productname", "itemdesc", "description")
QTY_COLUMN_KEYS = ("orderqty", "ordqty")
CODE_COLUMN_KEYS = ("itemcode", "sapcode", "productcode")

# Repeated header rows inside the data block
HEADER_LIKE_NAME_RE = re.compile(r"^(?:ITEM|PRODUCT|NAME|DESCRIPTION|QTY|QUANTITY)\b")
LEADING_INT_RE = re.compile(r"\s*(\d+)")


def _cell(row: Sequence[object], col: Optional[int]) -> str:
    if col is None or col >= len(row) or row[col] is None:
        return ""
    return str(row[col]).strip()


def sheet_row_text(row: Sequence[object]) -> str:
    """Non-empty cells joined by a single space."""
    return " ".join(str(c).strip() for c in row if c is not None and str(c).strip())


def normalize_column_name(value: object) -> str:
    """Lower-case header cell without dots, spaces, underscores or dashes ("Item Name" → "itemname")."""
    return re.sub(r"[.\s_-]", "", str(value or "").lower())


@dataclass(frozen=True)
class SheetColumns:
    """Header row position and the column indexes read from it."""
    header_row: int
    name_col: int
    qty_col: int
    code_col: Optional[int] = None


def _is_name_column(key: str) -> bool:
    return key == "name" or any(k in key for k in NAME_COLUMN_KEYS)


def _is_qty_column(key: str) -> bool:
    return key in ("qty", "quantity") or any(k in key for k in QTY_COLUMN_KEYS)


def _is_code_column(key: str) -> bool:
    return key == "code" or any(k in key for k in CODE_COLUMN_KEYS)


def detect_sheet_columns(
    rows: Sequence[Sequence[object]],
    max_rows: int = MAX_HEADER_ROWS,
) -> Optional[SheetColumns]:
    """
    Find the header row naming both a product-name column and a quantity column.

    Args:
        rows: Sheet rows as cell lists
        max_rows: How many leading rows to inspect

    Returns:
        SheetColumns for the first qualifying row, or None
    """
    for index, row in enumerate(rows[:max_rows]):
        name_col = qty_col = code_col = None
        for col, value in enumerate(row):
            key = normalize_column_name(value)
            if not key:
                continue
            if name_col is None and _is_name_column(key):
                name_col = col
            elif qty_col is None and _is_qty_column(key):
                qty_col = col
            elif code_col is None and _is_code_column(key):
                code_col = col
        if name_col is not None and qty_col is not None:
            logger.info(f"Sheet header at row {index}: name={name_col}, qty={qty_col}, code={code_col}")
            return SheetColumns(header_row=index, name_col=name_col, qty_col=qty_col, code_col=code_col)
    return None


def extract_sheet_items(
    rows: Sequence[Sequence[object]],
    columns: SheetColumns,
    settings: Optional[Settings] = None,
) -> List[Tuple[int, ExtractedLineItem]]:
    """
    Read one line item per data row below the header.

    A row is kept when its quantity cell starts with an integer of at least
    settings.qty_min and its name cell yields a product-name guess.

    Returns:
        (row index, ExtractedLineItem) pairs in sheet order
    """
    cfg = get_settings(settings)
    items: List[Tuple[int, ExtractedLineItem]] = []
    for index in range(columns.header_row + 1, len(rows)):
        row = rows[index]
        name = _cell(row, columns.name_col)
        qty_match = LEADING_INT_RE.match(_cell(row, columns.qty_col))
        if not qty_match or len(name) < MIN_NAME_LENGTH:
            continue
        quantity = int(qty_match.group(1))
        if quantity < cfg.qty_min or HEADER_LIKE_NAME_RE.match(name.upper()):
            continue
        guess = extract_product_name(name)
        if not guess:
            continue
        items.append((index, ExtractedLineItem(
            raw_text=sheet_row_text(row),
            quantity=quantity,
            product_name_guess=guess,
            item_code=_cell(row, columns.code_col) or None,
        )))
    logger.info(f"Read {len(items)} items from sheet columns")
    return items
