"""
Text Normalizer: pure string utilities shared by extractors and resolvers.

Examples:
- "Dolo-650 Tablets 15's"  → normalize_product_name → "DOLO 650 TAB"
- "M/S. Attupuram Enterprises Pvt Ltd, Kochi" → normalize_customer_name → "ATTUPURAM ENTERPRISES"
- "GLYCOMET GP 2 FORTE TAB" → split_product → ("GLYCOMET GP", "2", "FORTE")

Every public normalizer is idempotent: f(f(x)) == f(x).
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Set
import re
import unicodedata

# ==================== Vocabularies ====================

# Dosage-form synonyms → canonical abbreviation
FORM_SYNONYMS = {
    "TABLET": "TAB",
    "TABLETS": "TAB",
    "TABS": "TAB",
    "TBL": "TAB",
    "CAPSULE": "CAP",
    "CAPSULES": "CAP",
    "CAPS": "CAP",
    "CPS": "CAP",
    "INJECTION": "INJ",
    "SYRUP": "SYP",
    "SUSPENSION": "SUSP",
    "OINTMENT": "OINT",
    "DROP": "DROPS",
}

# Common OCR / data-entry abbreviation typos
TYPO_FIXES = {
    "TABLE": "TAB",
    "TABLT": "TAB",
    "CAPSUL": "CAP",
    "SUSPN": "SUSP",
    "SIRP": "SYP",
    "SYRP": "SYP",
    "INJN": "INJ",
    "OINMENT": "OINT",
}

UNIT_SYNONYMS = {
    "MILLIGRAM": "MG",
    "MILLIGRAMS": "MG",
    "MICROGRAM": "MCG",
    "MICROGRAMS": "MCG",
    "MILLILITRE": "ML",
    "MILLILITER": "ML",
    "MILLILITRES": "ML",
    "MILLILITERS": "ML",
    "GRAM": "GM",
    "GRAMS": "GM",
    "GMS": "GM",
}

FORM_WORDS = frozenset({
    "TAB", "CAP", "INJ", "SYP", "SUSP", "OINT", "DROPS", "CREAM", "GEL", "LOTION",
    "SPRAY", "POWDER", "SACHET", "INHALER", "SOL", "SOLUTION", "VIAL", "AMP",
})

UNITS = ("MG", "ML", "MCG", "GM", "G", "IU", "KG")
_UNIT_ALT = "|".join(UNITS)

# Modifier tokens that distinguish otherwise identical product names (ARBITEL vs ARBITEL MT)
STRICT_VARIANTS = frozenset({
    "FORTE", "PLUS", "TRIO", "CV", "CT", "MT", "DM", "GM", "SR", "XR", "CR", "MR", "OD",
    "ER", "HS", "XL", "AM", "H", "AT", "DS", "LS", "LV", "HV", "DC", "TH", "GOLD",
})
# Reported as variants but never used to veto a match
SOFT_VARIANTS = frozenset({"ADVANCE", "PRO", "NEW"})

# Standalone numbers accepted as a strength when no unit is present (DOLO 650)
VALID_STRENGTHS = frozenset({
    "0.2", "0.25", "0.3", "0.5", "1", "2", "2.5", "5", "10", "15", "20", "25", "30", "40",
    "50", "60", "75", "80", "100", "120", "150", "200", "250", "300", "325", "400", "500",
    "625", "650", "750", "875", "1000", "1500", "2000",
})

# Distributor prefixes that leak into invoice descriptions ("MICRO1 ARBITEL", "RAJ DIST")
DISTRIBUTOR_PREFIX_RE = re.compile(r"^(?:MICRO\d*|MICR)\s+")
DISTRIBUTOR_NOISE_RE = re.compile(r"\b(?:RAJ|DIST)\b")

_PACK_PATTERNS = [
    re.compile(r"\(\s*\d+\s*['\"`]?\s*S\s*\)"),    # (10'S)
    re.compile(r"\b\d+\s*['\"`,]\s*S\b"),          # 10'S, 10,S
    re.compile(r"\b\d+S\b"),                       # 10S
    re.compile(r"\b\d+\s*[X\*]\s*\d+[A-Z]?\b"),    # 1X10, 10X15T
]

CUSTOMER_PREFIX_RE = re.compile(r"^(?:M\s+S|MS|M)\s+")
CUSTOMER_LOCATION_RE = re.compile(
    r"\s+(?:EKM|PKD|TVM|KKD|CALICUT|KANNUR|ERNAKULAM|KOCHI|COCHIN|KERALA)$"
)
CUSTOMER_LEGAL_RE = re.compile(
    r"\s+(?:PVT\s+LTD|PRIVATE\s+LIMITED|PVT|LIMITED|LTD|LLP|LLC|INC|CORP|CORPORATION|CO)$"
)


@dataclass(frozen=True)
class ProductParts:
    """Compound product description split into identity parts."""
    name: str
    strength: Optional[str]
    variant: Optional[str]


# ==================== Generic normalization ====================

def _ascii_upper(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "")
    text = text.encode("ascii", "ignore").decode("ascii")
    return text.upper()


def collapse_spaces(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def normalize_text(text: str) -> str:
    """
    Uppercase, fold to ASCII, turn every non-alphanumeric into a space, collapse spaces.

    Args:
        text: Raw text

    Returns:
        Normalized text ("Dolo-650 Tab." → "DOLO 650 TAB")
    """
    if not text:
        return ""
    return collapse_spaces(re.sub(r"[^A-Z0-9]", " ", _ascii_upper(text)))


def compact(text: str) -> str:
    """Alphanumerics only, uppercase ("DOLO-650 TAB" → "DOLO650TAB")."""
    return re.sub(r"[^A-Z0-9]", "", _ascii_upper(text))


def tokenize(text: str) -> List[str]:
    return normalize_text(text).split()


def fix_typos(text: str) -> str:
    """Map abbreviation typos, form synonyms and unit words to canonical tokens."""
    out = []
    for tok in text.split():
        tok = TYPO_FIXES.get(tok, tok)
        tok = FORM_SYNONYMS.get(tok, tok)
        tok = UNIT_SYNONYMS.get(tok, tok)
        out.append(tok)
    return " ".join(out)


def strip_pack_info(text: str) -> str:
    for pattern in _PACK_PATTERNS:
        text = pattern.sub(" ", text)
    return collapse_spaces(text)


def strip_distributor_noise(text: str) -> str:
    text = DISTRIBUTOR_PREFIX_RE.sub("", text)
    return collapse_spaces(DISTRIBUTOR_NOISE_RE.sub(" ", text))


def _product_pass(text: str) -> str:
    text = strip_pack_info(text)
    # "500 MG" → "500MG", "50 / 500" → "50/500"
    text = re.sub(r"(\d+(?:\.\d+)?)\s*/\s*(\d+(?:\.\d+)?)", r"\1/\2", text)
    text = re.sub(r"[^A-Z0-9/.]", " ", text)
    # Keep '.' only as a decimal point, '/' only as a ratio
    text = re.sub(r"(?<!\d)\.|\.(?!\d)", " ", text)
    text = re.sub(r"(?<!\d)/|/(?!\d)", " ", text)
    text = fix_typos(collapse_spaces(text))
    text = re.sub(rf"\b(\d+(?:\.\d+)?(?:/\d+(?:\.\d+)?)?)\s+({_UNIT_ALT})\b", r"\1\2", text)
    text = strip_distributor_noise(text)
    return collapse_spaces(text)


def normalize_product_name(text: str) -> str:
    """
    Canonical product form used for scoring.

    Uppercases, removes pack info (10'S, (10'S), 1X10) and distributor noise (MICRO1, RAJ, DIST),
    canonicalizes form and unit words, glues numbers to their units and joins dose ratios.

    Args:
        text: Product name or invoice description

    Returns:
        Normalized name ("Glycomet-GP 2 Tablets (15's)" → "GLYCOMET GP 2 TAB")
    """
    if not text:
        return ""
    current = _ascii_upper(text)
    # Passes can expose new pack shapes (1 X 10 S); repeat until stable
    for _ in range(5):
        nxt = _product_pass(current)
        if nxt == current:
            break
        current = nxt
    return current


def clean_invoice_desc(text: str) -> str:
    """
    Light cleanup of an invoice description: distributor prefixes and pack info only.

    Strength, variants and form words are preserved ("MICRO1 DOLO-650 TAB 15'S" → "DOLO-650 TAB").
    """
    if not text:
        return ""
    current = collapse_spaces(_ascii_upper(text))
    for _ in range(5):
        nxt = strip_pack_info(strip_distributor_noise(current))
        if nxt == current:
            break
        current = nxt
    return current


# ==================== Product parts ====================

def _canonical_number(num: str) -> str:
    return format(Decimal(num).normalize(), "f")


def _canonical_strength(raw: str) -> str:
    return "/".join(_canonical_number(n) for n in raw.split("/"))


def extract_strength(text: str) -> Optional[str]:
    """
    Extract the numeric strength of a product description, units stripped.

    Order: dose ratio (50/500MG), number with unit (40MG), decimal before a form word
    (2.5 TAB), standalone common strength (DOLO 650). Pack counts never qualify.

    Returns:
        Canonical strength string ("40", "2.5", "50/500") or None
    """
    norm = normalize_product_name(text)
    if not norm:
        return None

    m = re.search(r"\b(\d+(?:\.\d+)?)/(\d+(?:\.\d+)?)(?:MG|ML|MCG)?\b", norm)
    if m:
        return _canonical_strength(f"{m.group(1)}/{m.group(2)}")

    m = re.search(rf"\b(\d+(?:\.\d+)?)(?:{_UNIT_ALT})\b", norm)
    if m:
        return _canonical_strength(m.group(1))

    forms = "|".join(sorted(FORM_WORDS))
    m = re.search(rf"\b(\d+\.\d+)\s+(?:{forms})\b", norm)
    if m:
        return _canonical_strength(m.group(1))

    for tok in norm.split():
        if re.fullmatch(r"\d+(?:\.\d+)?", tok) and _canonical_number(tok) in VALID_STRENGTHS:
            return _canonical_strength(tok)
    return None


def normalize_strength(value: Optional[str]) -> Optional[str]:
    """
    Canonical strength of a stored dosage value ("40MG" → "40", "50/500 MG" → "50/500", "37.50" → "37.5").

    Bare numbers are accepted whatever their value; a dosage field holds nothing else.
    """
    if not value:
        return None
    text = normalize_product_name(value).replace(" ", "")
    m = re.fullmatch(rf"(\d+(?:\.\d+)?(?:/\d+(?:\.\d+)?)?)(?:{_UNIT_ALT})?", text)
    if m:
        return _canonical_strength(m.group(1))
    return extract_strength(value)


def extract_variants(text: str, strict_only: bool = True) -> Set[str]:
    """
    Modifier tokens (SR, MT, FORTE, ...) after the first word.

    The first word is the brand and never counts as a variant.
    """
    tokens = normalize_product_name(text).split()
    vocab = STRICT_VARIANTS if strict_only else STRICT_VARIANTS | SOFT_VARIANTS
    return {t for t in tokens[1:] if t in vocab}


def extract_form(text: str) -> Optional[str]:
    for tok in normalize_product_name(text).split():
        if tok in FORM_WORDS:
            return tok
    return None


def extract_base_name(text: str) -> str:
    """Product name without strength, unit, form, variant and pack tokens ("ARBITEL 40MG MT TAB" → "ARBITEL")."""
    tokens = normalize_product_name(text).split()
    kept = []
    for i, tok in enumerate(tokens):
        if re.search(r"\d", tok):
            continue
        if tok in FORM_WORDS or tok in UNITS:
            continue
        if i > 0 and (tok in STRICT_VARIANTS or tok in SOFT_VARIANTS):
            continue
        kept.append(tok)
    return " ".join(kept)


def split_product(text: str) -> ProductParts:
    """Split "name + strength + variant" compound descriptions."""
    variants = [t for t in normalize_product_name(text).split()[1:]
                if t in STRICT_VARIANTS or t in SOFT_VARIANTS]
    return ProductParts(
        name=extract_base_name(text),
        strength=extract_strength(text),
        variant=" ".join(dict.fromkeys(variants)) or None,
    )


# ==================== Customer names ====================

def normalize_customer_name(text: str) -> str:
    """
    Normalize a customer (pharmacy) name for comparison.

    Strips "M/S", "M S", "MS", "M" prefixes, trailing location words (EKM, KOCHI, ...)
    and trailing legal suffixes (PVT LTD, LLP, ...). Stripping repeats until stable and
    never empties the name.

    Args:
        text: Free-text customer name

    Returns:
        Normalized name ("M/S. ABC Medicals Pvt Ltd, Kochi" → "ABC MEDICALS")
    """
    name = normalize_text(text)
    while True:
        before = name
        for pattern in (CUSTOMER_PREFIX_RE, CUSTOMER_LOCATION_RE, CUSTOMER_LEGAL_RE):
            stripped = pattern.sub("", name).strip()
            if stripped:
                name = stripped
        if name == before:
            return name


def significant_words(text: str, min_length: int = 4) -> List[str]:
    return [w for w in text.split() if len(w) >= min_length]
