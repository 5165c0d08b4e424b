"""
Line Classification: tell order lines apart from headers, footers and notes.
"""
import re

HARD_JUNK_PATTERNS = [
    re.compile(r"^(?:PAGE|PRINTED\s*BY|SIGNATURE|PREPARED\s*BY|CHECKED\s*BY)"),
    re.compile(r"^(?:GSTIN|DL\s*NO|FSSAI|LICENSE\s*NO)"),
    re.compile(r"^(?:PIN\s*CODE|PHONE|EMAIL|FAX)"),
    re.compile(r"^(?:NOTE|REMARK|COMMENT|KINDLY|PLEASE|REQUEST)[\s:]"),
    re.compile(r"^[-_=]+$"),
]

SUMMARY_PATTERNS = [
    re.compile(r"^(?:TOTAL|SUBTOTAL|SUB\s*TOTAL|GRAND\s*TOTAL|NET\s*AMOUNT)"),
    re.compile(r"^(?:CGST|SGST|IGST|GST|TAX)\b"),
    re.compile(r"^(?:DISCOUNT|LESS|BALANCE)\b"),
    re.compile(r"^(?:THANK\s*YOU|REGARDS)"),
    re.compile(r"^(?:CONTINUED|CARRIED\s*FORWARD)"),
]

INVALID_PRODUCT_PATTERNS = [
    re.compile(r"^(?:TAB|CAP|SYP)\s*\d+$"),
    re.compile(r"^\d+\s*(?:TAB|CAP)$"),
    re.compile(r"^[A-Z]{1,2}\s*\d+$"),
    re.compile(r"^\d+$"),
    re.compile(r"^(?:SEND|KINDLY|PLEASE)\s+"),
    re.compile(r"\b(?:ORDER\s*NO|INVOICE\s*NO|PO\s*NO|PURCHASE\s*ORDER|DELIVERY\s*NOTE|CHALLAN)\b"),
    re.compile(r"\bDATE\s+\d{1,2}\b"),
]

RELAXED_JUNK_PATTERNS = [
    re.compile(r"^(?:ORDER\s*DATE|DELIVERY\s*DATE|INVOICE\s*DATE)"),
    re.compile(r"^(?:SUPPLIER|CUSTOMER|BILL\s*TO|SHIP\s*TO)"),
    re.compile(r"^(?:SL\s*NO|CODE|PRODUCT\s*NAME|PACKING|QTY|AMOUNT)"),
    re.compile(r"^[A-Z\s]+\s*:$"),
    re.compile(r"^\d+/\d+"),
    re.compile(r"\b(?:ROAD|STREET|AVENUE|BUILDING|FLOOR)\b"),
    re.compile(r"\b(?:SYSTEMS|LIMITED|LTD|PVT)\b"),
]

FORM_RE = re.compile(r"\b(?:TAB|TABLET|TABS|CAP|CAPSULE|CAPS|INJ|SYRUP|SYP|DROPS|CREAM|GEL|OINT|VIAL|AMP)\b")
STRENGTH_RE = re.compile(r"\b\d+\s*(?:MG|ML|MCG|IU|GM)\b")
PACK_RE = re.compile(r"\d+['\"`]S\b")
TABLE_ROW_RE = re.compile(r"^\d{1,2}\s+\d{3,6}\s+\S")


def is_hard_junk(text: str) -> bool:
    upper = (text or "").strip().upper()
    return any(p.search(upper) for p in HARD_JUNK_PATTERNS)


def is_summary_line(text: str) -> bool:
    upper = (text or "").strip().upper()
    return any(p.search(upper) for p in SUMMARY_PATTERNS)


def looks_like_product(text: str, strict: bool = True) -> bool:
    """
    Decide whether a line carries a product.

    Strict mode needs a medicine signal: a form word, a strength with unit, a pack shape,
    or a "serial code name ... amount" table row. Relaxed mode also accepts upper-case
    brand-like names with at least three letters (PLAGERINE, VILDAPRIDE M).
    """
    if not text or len(text.strip()) < 3:
        return False
    upper = text.strip().upper()

    if is_hard_junk(upper) or is_summary_line(upper):
        return False
    if any(p.search(upper) for p in INVALID_PRODUCT_PATTERNS):
        return False

    if TABLE_ROW_RE.match(upper) and re.search(r"\d+\.\d{2}", upper) and re.search(r"[A-Z]{3,}", upper):
        return True
    if FORM_RE.search(upper) or STRENGTH_RE.search(upper) or PACK_RE.search(upper):
        return True
    if strict:
        return False

    if any(p.search(upper) for p in RELAXED_JUNK_PATTERNS):
        return False
    words = upper.split()
    if len(words) > 15:
        return False
    if re.fullmatch(r"[A-Z0-9\s\-]+", upper):
        return len(re.sub(r"[^A-Z]", "", upper)) >= 3
    return bool(re.search(r"[A-Z]{3,}.*\d{1,4}", upper))
