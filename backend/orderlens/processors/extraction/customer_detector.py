"""
Customer Detection: guess the ordering pharmacy's name from document header rows.
"""
from typing import Iterable, Optional, Union
import logging
import re

from ..core.structures import LogicalRow

logger = logging.getLogger(__name__)

MAX_HEADER_ROWS = 40
MIN_NAME_LENGTH = 8

# Header lines that mention the supplier, the document or contact data, never the customer
BLOCKLIST = [
    "GSTIN", "DL NO", "SUPPLIER", "DISTRIBUTOR", "DISTRIBUTORS", "ORDER NO", "INVOICE", "BILL",
    "APPROX VALUE", "TOTAL", "PRINTED BY", "PHONE", "TIN", "RAJ DISTRIBUTORS", "BLUEFOX",
    "SOFTWARE",
]
_BLOCK_RE = re.compile(r"\b(?:" + "|".join(re.escape(b) for b in BLOCKLIST) + r")\b")

CUSTOMER_KEYWORD_RE = re.compile(
    r"\b(?:DRUG\s+LINES|MEDICALS|MEDICAL\s+STORE|PHARMA|ENTERPRISES|AGENCIES|TRADERS)\b"
)


def detect_customer_name(
    rows: Iterable[Union[LogicalRow, str]],
    max_rows: int = MAX_HEADER_ROWS,
) -> Optional[str]:
    """
    Return the first header row that reads like a pharmacy name.

    Args:
        rows: Logical rows (or plain strings) in document order
        max_rows: How many leading rows to inspect

    Returns:
        Upper-cased row text, or None
    """
    for index, row in enumerate(rows):
        if index >= max_rows:
            break
        raw = row.raw_text if isinstance(row, LogicalRow) else row
        if not isinstance(raw, str):
            continue
        text = re.sub(r"\s+", " ", raw).strip().upper()
        if len(text) < MIN_NAME_LENGTH or _BLOCK_RE.search(text):
            continue
        if CUSTOMER_KEYWORD_RE.search(text):
            logger.info(f"Detected customer name in header row {index}: {text}")
            return text
    return None
