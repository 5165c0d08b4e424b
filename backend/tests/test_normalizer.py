"""Text normalizer: canonical product and customer names, strength/variant parsing."""
from orderlens.processors.text import (
    normalize_text,
    normalize_product_name,
    normalize_customer_name,
    clean_invoice_desc,
    extract_strength,
    extract_variants,
    extract_base_name,
    normalize_strength,
    split_product,
)


def test_normalize_text_folds_symbols_and_case():
    assert normalize_text("Dolo-650 Tab.") == "DOLO 650 TAB"
    assert normalize_text("") == ""


def test_product_name_canonical_form():
    """Pack info, form synonyms and unit spacing are canonicalized."""
    assert normalize_product_name("Dolo-650 Tablets 15's") == "DOLO 650 TAB"
    assert normalize_product_name("Glycomet-GP 2 Tablets (15's)") == "GLYCOMET GP 2 TAB"
    assert normalize_product_name("METFORMIN 500 MG TABLE") == "METFORMIN 500MG TAB"
    assert normalize_product_name("MICRO1 ARBITEL 40MG TAB 1X10") == "ARBITEL 40MG TAB"


def test_normalizers_are_idempotent():
    samples = [
        "Dolo-650 Tablets 15's",
        "MICRO1 NITROFIX 30 MG SR CAPSULES (10'S)",
        "GLUCOVANCE 2.5 / 500 TAB",
        "M/S. Attupuram Enterprises Pvt Ltd, Kochi",
    ]
    for s in samples:
        once = normalize_product_name(s)
        assert normalize_product_name(once) == once
        cust = normalize_customer_name(s)
        assert normalize_customer_name(cust) == cust
        desc = clean_invoice_desc(s)
        assert clean_invoice_desc(desc) == desc


def test_customer_name_prefix_location_and_legal_suffix():
    assert normalize_customer_name("M/S. Attupuram Enterprises Pvt Ltd, Kochi") == "ATTUPURAM ENTERPRISES"
    assert normalize_customer_name("M ATTUPURAM ENTERPRISES") == "ATTUPURAM ENTERPRISES"
    assert normalize_customer_name("NEW LIFE PHARMA PVT LTD") == "NEW LIFE PHARMA"


def test_customer_name_never_emptied():
    """A name made only of strippable words is kept as is."""
    assert normalize_customer_name("LTD") == "LTD"


def test_clean_invoice_desc_keeps_strength_and_form():
    assert clean_invoice_desc("MICRO1 DOLO-650 TAB 15'S") == "DOLO-650 TAB"


def test_extract_strength():
    assert extract_strength("ARBITEL 40MG TAB") == "40"
    assert extract_strength("METFORMIN 500 MG") == "500"
    assert extract_strength("DOLO 650 TAB") == "650"
    assert extract_strength("GLUCOVANCE 2.5/500 TAB") == "2.5/500"
    assert extract_strength("NITROFIX 0.25MG") == "0.25"
    assert extract_strength("ARBITEL TAB 15'S") is None


def test_normalize_strength_of_stored_dosage():
    assert normalize_strength("40MG") == "40"
    assert normalize_strength("50/500 MG") == "50/500"
    assert normalize_strength("37.50") == "37.5"
    assert normalize_strength("") is None
    assert normalize_strength(None) is None


def test_extract_variants_skips_brand_token():
    assert extract_variants("ARBITEL 40MG MT TAB") == {"MT"}
    assert extract_variants("NITROFIX 30MG SR CAP") == {"SR"}
    # First word is the brand, never a variant
    assert extract_variants("DS TAB") == set()
    assert extract_variants("PAN 40 PRO") == set()
    assert extract_variants("PAN 40 PRO", strict_only=False) == {"PRO"}


def test_split_product():
    parts = split_product("GLYCOMET GP 2 FORTE TAB")
    assert parts.name == "GLYCOMET GP"
    assert parts.strength == "2"
    assert parts.variant == "FORTE"
    assert extract_base_name("ARBITEL 40MG MT TAB") == "ARBITEL"
