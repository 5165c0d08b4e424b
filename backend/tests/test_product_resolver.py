"""Product resolution: gates, strategy chain, candidate search, low-confidence floor, reverse lookup."""
import pytest

from orderlens.errors import MasterDataError
from orderlens.models import MasterProduct
from orderlens.processors.core import MatchSource
from orderlens.processors.matching import (
    ProductIndex, ProductView, passes_gates, resolve_product, resolve_products_batch, reverse_lookup,
)
from orderlens.processors.matching.product_resolver import (
    cleaned_strategy, form_aware_strategy, contains_strategy,
)
from orderlens.processors.text import extract_strength, extract_variants


def _product(code, name):
    return MasterProduct(product_code=code, product_name=name)


def test_exact_match(products, settings):
    result = resolve_product("ARBITEL 40MG TAB", products, settings)
    assert result.source is MatchSource.EXACT
    assert result.confidence == 1.0
    assert result.matched.product_code == "205116"


def test_exact_match_any_word_order(products, settings):
    result = resolve_product("TAB ARBITEL 40MG", products, settings)
    assert result.source is MatchSource.EXACT
    assert result.matched.product_code == "205116"


def test_near_exact_match(products, settings):
    result = resolve_product("ARBITEL 40MG", products, settings)
    assert result.source is MatchSource.FUZZY_AUTO
    assert result.match_type == "NEAR_EXACT"
    assert result.confidence == 1.0
    assert result.matched.product_code == "205116"


def test_strict_variant_selects_variant_product(products, settings):
    assert resolve_product("ARBITEL 40MG MT", products, settings).matched.product_code == "205117"


def test_strength_selects_product(products, settings):
    result = resolve_product("ARBITEL 80", products, settings)
    assert result.matched.product_code == "205118"
    assert result.confidence == pytest.approx(0.95)


def test_strength_gate_vetoes_everything(products, settings):
    """No product without a strength exists, so a strength-less name cannot match."""
    assert resolve_product("METFORMIN", products, settings).source is MatchSource.NONE


def test_base_strength_strategy(products, settings):
    result = resolve_product("TABLET DOLO 650", products, settings)
    assert result.match_type == "BASE_STRENGTH"
    assert result.confidence == pytest.approx(0.80)
    assert result.matched.product_code == "110011"


def test_later_strategies():
    glycomet = ProductView.of_product(_product("1", "GLYCOMET GP 2 FORTE TAB"))
    assert cleaned_strategy(ProductView.of("GLYCOMET-GP 2 FORTE TABLETS"), glycomet) == pytest.approx(0.90)
    nitrofix = ProductView.of_product(_product("2", "NITROFIX 30MG SR CAP"))
    assert form_aware_strategy(ProductView.of("NITROFIX SR CAP"), nitrofix) == pytest.approx(0.88)
    shelcal = ProductView.of_product(_product("3", "SHELCAL 500 TAB"))
    assert contains_strategy(ProductView.of("SHELCAL"), shelcal) == pytest.approx(0.55)


def test_accepted_matches_respect_gates(products, settings):
    lines = ["ARBITEL 40MG", "ARBITEL 40MG MT", "ARBITEL 80", "TABLET DOLO 650", "NITROFIX 30MG SR CAP", "ARBITOL 40MG"]
    for line, result in zip(lines, resolve_products_batch(lines, products, settings)):
        assert result.matched is not None
        assert extract_strength(line) == extract_strength(result.matched.product_name)
        assert extract_variants(line) == extract_variants(result.matched.product_name)


def test_gate_reports_failing_gate(settings):
    noise = settings.noise_brand_set
    base = ProductView.of("ARBITEL 40MG TAB")
    assert passes_gates(ProductView.of("ARBITEL 80MG TAB"), base, noise) == (False, "strength")
    assert passes_gates(ProductView.of("ARBITEL 40MG MT TAB"), base, noise) == (False, "variant")
    assert passes_gates(ProductView.of("MICRO1 ARBITEL 40MG TAB"), base, noise) == (False, "brand")
    assert passes_gates(ProductView.of("TAB ARBITEL 40MG"), base, noise) == (True, "")


def test_candidate_search_unique_survivor(settings):
    result = resolve_product("ECO", [_product("E1", "ECO TAB")], settings)
    assert result.source is MatchSource.FUZZY_AUTO
    assert result.match_type == "CANDIDATE_SEARCH"
    assert result.confidence == pytest.approx(0.70)
    assert result.matched.product_code == "E1"


def test_candidate_search_several_survivors(settings):
    result = resolve_product("ECO", [_product("E1", "ECO TAB"), _product("E2", "ECO CAP")], settings)
    assert result.source is MatchSource.MANUAL_REQUIRED
    assert {c.record.product_code for c in result.candidates} == {"E1", "E2"}


def test_low_confidence_best_guess(products, settings):
    result = resolve_product("ARBITOL 40MG", products, settings)
    assert result.source is MatchSource.FUZZY_AUTO
    assert result.low_confidence
    assert result.needs_review
    assert result.matched.product_code == "205116"
    assert 0.20 <= result.confidence < 0.70


def test_low_confidence_can_be_disabled(products, settings):
    strict = settings.model_copy(update={"product_low_confidence_enabled": False})
    result = resolve_product("ARBITOL 40MG", products, strict)
    assert result.source is MatchSource.NONE
    assert result.matched is None


def test_duplicate_names_need_manual_selection(settings):
    result = resolve_product("DOLO 650 TAB", [_product("D1", "DOLO 650 TAB"), _product("D2", "DOLO 650 TAB")], settings)
    assert result.source is MatchSource.MANUAL_REQUIRED
    assert len(result.candidates) == 2


def test_distributor_prefix_blocks_direct_match_but_reverse_lookup_finds_it(products, settings):
    assert resolve_product("MICRO ARBITEL 40MG TAB", products, settings).source is MatchSource.NONE
    result = reverse_lookup("MICRO ARBITEL 40MG TAB", products, settings)
    assert result.source is MatchSource.REVERSE_LOOKUP
    assert result.matched.product_code == "205116"
    assert result.confidence == pytest.approx(0.85)


def test_reverse_lookup_on_raw_line(products, settings):
    result = reverse_lookup("1 205116 ARBITEL 40MG 15'S 15'S 742.60 80 0 0", products, settings)
    assert result.source is MatchSource.REVERSE_LOOKUP
    assert result.matched.product_code == "205116"
    assert result.confidence == pytest.approx(0.75)


def test_reverse_lookup_no_hit(products, settings):
    assert reverse_lookup("4 999999 ARBITOL 40MG 10 0 12.00 120.00", products, settings).source is MatchSource.NONE


def test_shared_index_and_missing_master(products, settings):
    index = ProductIndex.build(products)
    assert resolve_product("DOLO 650 TAB", index, settings).matched.product_code == "110011"
    with pytest.raises(MasterDataError):
        resolve_product("DOLO 650 TAB", None, settings)
    assert resolve_product("", products, settings).source is MatchSource.NONE


def test_reverse_lookup_ignores_trailing_quantity_column(settings):
    products = [_product("E1", "ECOSPRIN TAB")]
    result = reverse_lookup("1 305001 ECOSPRIN TAB 20 0 12.50 250.00", products, settings)
    assert result.source is MatchSource.REVERSE_LOOKUP
    assert result.matched.product_code == "E1"
    assert result.confidence == pytest.approx(0.85)


def test_reverse_lookup_still_vetoes_strength_inside_name(settings):
    products = [_product("E1", "ECOSPRIN TAB")]
    assert reverse_lookup("1 305001 ECOSPRIN 75 TAB 20 0 12.50 250.00", products, settings).source is MatchSource.NONE


def test_stored_dosage_and_variant_feed_the_gates(settings):
    stored = MasterProduct(product_code="S1", product_name="ARBITEL TAB", dosage="40MG")
    view = ProductView.of_product(stored)
    assert view.strength == "40"

    result = resolve_product("ARBITEL 40MG TAB", [stored], settings)
    assert result.matched.product_code == "S1"
    assert result.match_type == "BASE_STRENGTH"

    sr = MasterProduct(product_code="N1", product_name="NITROFIX 30MG CAP", variant="SR")
    assert ProductView.of_product(sr).variants == frozenset({"SR"})
    assert ProductView.of_product(_product("N2", "NITROFIX 30MG CAP")).variants == frozenset()


def test_stored_base_and_cleaned_names_take_precedence():
    stored = MasterProduct(
        product_code="G1",
        product_name="GLYCOMET-GP 2 FORTE TABLETS",
        base_name="glycomet gp",
        cleaned_product_name="GLYCOMET GP 2 FORTE TAB",
    )
    view = ProductView.of_product(stored)
    assert view.base == "GLYCOMET GP"
    assert view.cleaned == "GLYCOMET GP 2 FORTE TAB"
    assert view.form == "TAB"
